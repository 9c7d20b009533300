"""PostgreSQL adapter on an asyncpg connection pool."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any, AsyncIterator, List, Optional, Sequence

import asyncpg

from ...codegen.statements import Dialect
from .base import DatabaseAdapter, Row

logger = logging.getLogger(__name__)


def _rowcount(status: str) -> int:
    # asyncpg returns command tags such as "DELETE 1" or "UPDATE 0".
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


class PostgresAdapter(DatabaseAdapter):
    """Run ``$n``-placeholder statements through an asyncpg pool."""

    dialect = Dialect.POSTGRES

    def __init__(self, dsn: str, *, min_size: int = 1, max_size: int = 10):
        super().__init__()
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.pool: Optional[asyncpg.Pool] = None
        self._current: ContextVar[Optional[asyncpg.Connection]] = ContextVar(
            f"codeless_pg_tx_{id(self)}", default=None
        )

    async def connect(self) -> None:
        if self.pool is not None:
            return
        self.pool = await asyncpg.create_pool(self.dsn, min_size=self.min_size, max_size=self.max_size)
        logger.info("Connected to PostgreSQL pool (max_size=%d)", self.max_size)

    async def close(self) -> None:
        if self.pool is not None:
            await self.pool.close()
            self.pool = None

    def _require_pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise RuntimeError("PostgresAdapter.connect() must be awaited before use")
        return self.pool

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        current = self._current.get()
        if current is not None:
            yield current
            return
        async with self._require_pool().acquire() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["PostgresAdapter"]:
        if self._current.get() is not None:
            yield self
            return
        async with self._require_pool().acquire() as conn:
            async with conn.transaction():
                token = self._current.set(conn)
                try:
                    yield self
                finally:
                    self._current.reset(token)

    async def execute_ddl(self, statements: Sequence[str]) -> None:
        async with self._connection() as conn:
            for sql in statements:
                logger.debug("DDL: %s", sql)
                await conn.execute(sql)

    async def _execute(self, sql: str, params: Sequence[Any]) -> int:
        async with self._connection() as conn:
            return _rowcount(await conn.execute(sql, *params))

    async def _insert(self, sql: str, params: Sequence[Any]) -> Any:
        async with self._connection() as conn:
            return await conn.fetchval(sql, *params)

    async def _fetch(self, sql: str, params: Sequence[Any]) -> List[Row]:
        async with self._connection() as conn:
            records = await conn.fetch(sql, *params)
            return [dict(record) for record in records]


__all__ = ["PostgresAdapter"]
