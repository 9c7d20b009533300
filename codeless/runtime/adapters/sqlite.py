"""SQLite adapter on SQLAlchemy's async engine with aiosqlite."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any, AsyncIterator, List, Optional, Sequence

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from ...codegen.statements import Dialect
from .base import DatabaseAdapter, Row

logger = logging.getLogger(__name__)


class SqliteAdapter(DatabaseAdapter):
    """Run ``?``-placeholder statements against a SQLite file."""

    dialect = Dialect.SQLITE

    def __init__(self, path: str = "codeless.db", *, echo: bool = False):
        super().__init__()
        self.path = path
        self.echo = echo
        self.engine: Optional[AsyncEngine] = None
        self._current: ContextVar[Optional[AsyncConnection]] = ContextVar(
            f"codeless_sqlite_tx_{id(self)}", default=None
        )

    async def connect(self) -> None:
        if self.engine is not None:
            return
        in_memory = self.path in (":memory:", "")
        self.engine = create_async_engine(
            f"sqlite+aiosqlite:///{self.path or ':memory:'}",
            echo=self.echo,
            poolclass=StaticPool if in_memory else NullPool,
        )
        event.listen(self.engine.sync_engine, "connect", _enable_foreign_keys)
        logger.info("Connected to SQLite database at %s", self.path or ":memory:")

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None

    def _require_engine(self) -> AsyncEngine:
        if self.engine is None:
            raise RuntimeError("SqliteAdapter.connect() must be awaited before use")
        return self.engine

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[AsyncConnection]:
        current = self._current.get()
        if current is not None:
            yield current
            return
        async with self._require_engine().begin() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SqliteAdapter"]:
        if self._current.get() is not None:
            yield self
            return
        async with self._require_engine().begin() as conn:
            token = self._current.set(conn)
            try:
                yield self
            finally:
                self._current.reset(token)

    async def execute_ddl(self, statements: Sequence[str]) -> None:
        async with self._connection() as conn:
            for sql in statements:
                logger.debug("DDL: %s", sql)
                await conn.exec_driver_sql(sql)

    async def _execute(self, sql: str, params: Sequence[Any]) -> int:
        async with self._connection() as conn:
            result = await conn.exec_driver_sql(sql, tuple(params))
            return result.rowcount

    async def _insert(self, sql: str, params: Sequence[Any]) -> Any:
        async with self._connection() as conn:
            result = await conn.exec_driver_sql(sql, tuple(params))
            return result.lastrowid

    async def _fetch(self, sql: str, params: Sequence[Any]) -> List[Row]:
        async with self._connection() as conn:
            result = await conn.exec_driver_sql(sql, tuple(params))
            return [dict(row) for row in result.mappings().all()]


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


__all__ = ["SqliteAdapter"]
