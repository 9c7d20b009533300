"""Storage adapter interface shared by every dialect."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, Dict, List, Mapping, Optional, Sequence, Tuple

from ...codegen.statements import Dialect, ListQuery, StatementError, build_list_query

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


class DatabaseAdapter(ABC):
    """Execute the statements a generated server module was compiled with.

    Adapters only run SQL text produced by the compiler: every table-scoped
    call looks the table up in the prepared statement map and refuses names
    it was not given at :meth:`prepare` time.
    """

    dialect: Dialect

    def __init__(self) -> None:
        self.statements: Dict[str, Mapping[str, str]] = {}
        self.columns: Dict[str, Tuple[str, ...]] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    async def connect(self) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    def prepare(
        self,
        statements: Mapping[str, Mapping[str, str]],
        table_columns: Mapping[str, Sequence[str]],
    ) -> None:
        """Register the per-table statement text and column allowlists."""
        self.statements = {table: dict(entry) for table, entry in statements.items()}
        self.columns = {table: tuple(columns) for table, columns in table_columns.items()}
        logger.debug("Prepared statements for %d table(s)", len(self.statements))

    @abstractmethod
    def transaction(self) -> AsyncContextManager["DatabaseAdapter"]:
        """Run the enclosed calls on one connection inside a transaction."""

    @abstractmethod
    async def execute_ddl(self, statements: Sequence[str]) -> None:
        ...

    # ------------------------------------------------------------------
    # Dialect primitives
    # ------------------------------------------------------------------

    @abstractmethod
    async def _execute(self, sql: str, params: Sequence[Any]) -> int:
        """Run a write statement and return the affected row count."""

    @abstractmethod
    async def _insert(self, sql: str, params: Sequence[Any]) -> Any:
        """Run an insert statement and return the new primary key."""

    @abstractmethod
    async def _fetch(self, sql: str, params: Sequence[Any]) -> List[Row]:
        ...

    # ------------------------------------------------------------------
    # Table-scoped operations
    # ------------------------------------------------------------------

    def _statement(self, table: str, kind: str) -> str:
        entry = self.statements.get(table)
        if entry is None:
            raise StatementError(f"Unknown table '{table}'")
        return entry[kind]

    def _data_columns(self, table: str) -> Tuple[str, ...]:
        return tuple(column for column in self.columns.get(table, ()) if column != "id")

    async def insert(self, table: str, values: Mapping[str, Any]) -> Optional[Row]:
        sql = self._statement(table, "insert")
        params = [values.get(column) for column in self._data_columns(table)]
        key = await self._insert(sql, params)
        return await self.find_by_key(table, key)

    async def update(self, table: str, key: Any, values: Mapping[str, Any]) -> Optional[Row]:
        sql = self._statement(table, "update")
        current = await self.find_by_key(table, key)
        if current is None:
            return None
        merged = {**current, **values}
        params = [merged.get(column) for column in self._data_columns(table)]
        params.append(key)
        await self._execute(sql, params)
        return await self.find_by_key(table, key)

    async def delete(self, table: str, key: Any) -> bool:
        count = await self._execute(self._statement(table, "delete"), [key])
        return count > 0

    async def find_by_key(self, table: str, key: Any) -> Optional[Row]:
        rows = await self._fetch(self._statement(table, "find_by_key"), [key])
        return rows[0] if rows else None

    async def find_all(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        sort: Any = None,
    ) -> List[Row]:
        if table not in self.statements:
            raise StatementError(f"Unknown table '{table}'")
        query: ListQuery = build_list_query(table, self.columns[table], self.dialect, filters, sort)
        return await self._fetch(query.sql, query.params)

    async def raw_select(self, sql: str, params: Sequence[Any] = ()) -> List[Row]:
        return await self._fetch(sql, list(params))


__all__ = ["DatabaseAdapter", "Row"]
