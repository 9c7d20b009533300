"""Table-allowlisted data access handed to action bodies as ``db``."""

from __future__ import annotations

import logging
from typing import Any, AsyncContextManager, Dict, List, Mapping, Optional, Sequence

from ..codegen.statements import StatementError
from .adapters.base import DatabaseAdapter, Row
from .errors import CodelessError, Forbidden, NotFound

logger = logging.getLogger(__name__)


def _key(key: Any) -> Any:
    """Path parameters arrive as text; integer keys are matched as ints."""
    if isinstance(key, str) and key.isascii() and key.isdigit():
        return int(key)
    return key


class TableStore:
    """CRUD helpers bound to one compiled table."""

    def __init__(self, adapter: DatabaseAdapter, table: str, columns: Sequence[str]):
        self.adapter = adapter
        self.table = table
        self.columns = tuple(columns)

    def __repr__(self) -> str:
        return f"TableStore({self.table!r})"

    def _values(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        if not isinstance(record, Mapping):
            raise CodelessError(f"{self.table}: record must be a mapping", 400)
        values = {key: value for key, value in record.items() if key in self.columns and key != "id"}
        dropped = sorted(set(record) - set(values) - {"id"})
        if dropped:
            logger.debug("Ignoring unknown %s column(s): %s", self.table, ", ".join(map(str, dropped)))
        return values

    async def save(self, record: Mapping[str, Any]) -> Optional[Row]:
        return await self.adapter.insert(self.table, self._values(record))

    async def update(self, key: Any, changes: Mapping[str, Any]) -> Row:
        row = await self.adapter.update(self.table, _key(key), self._values(changes))
        if row is None:
            raise NotFound(f"{self.table} {key} not found")
        return row

    async def remove(self, key: Any) -> bool:
        return await self.adapter.delete(self.table, _key(key))

    async def find(self, key: Any) -> Optional[Row]:
        return await self.adapter.find_by_key(self.table, _key(key))

    async def get(self, key: Any) -> Row:
        """Like :meth:`find` but raises :class:`NotFound` for a missing row."""
        row = await self.find(key)
        if row is None:
            raise NotFound(f"{self.table} {key} not found")
        return row

    async def find_all(self, where: Optional[Mapping[str, Any]] = None, order_by: Any = None) -> List[Row]:
        try:
            return await self.adapter.find_all(self.table, where, order_by)
        except StatementError as exc:
            raise CodelessError(str(exc), 400) from exc


class Database:
    """Registry of :class:`TableStore` objects, one per compiled schema.

    Tables are reached as attributes (``db.User``) or through :meth:`table`.
    Unknown names are rejected, so action bodies can never address a table
    the compiler did not emit.
    """

    def __init__(self, adapter: DatabaseAdapter, table_columns: Mapping[str, Sequence[str]]):
        self.adapter = adapter
        self.tables: Dict[str, TableStore] = {
            name: TableStore(adapter, name, columns) for name, columns in table_columns.items()
        }

    def table(self, name: str) -> TableStore:
        store = self.tables.get(name)
        if store is None:
            raise StatementError(f"Unknown table '{name}'. Allowed: {', '.join(self.tables)}")
        return store

    def __getattr__(self, name: str) -> TableStore:
        tables = self.__dict__.get("tables") or {}
        if name in tables:
            return tables[name]
        raise AttributeError(f"{type(self).__name__!s} has no table {name!r}")

    async def query(self, sql: str, *params: Any) -> List[Row]:
        """Run a read-only statement. Writes must go through the table helpers."""
        if not isinstance(sql, str) or not sql.strip().upper().startswith("SELECT"):
            raise Forbidden("db.query() is restricted to SELECT statements; use the table helpers for writes")
        return await self.adapter.raw_select(sql, params)

    def transaction(self) -> AsyncContextManager[DatabaseAdapter]:
        return self.adapter.transaction()


__all__ = ["Database", "TableStore"]
