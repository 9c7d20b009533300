"""Parameterized SQL text for schema-backed tables.

Shared between the code generator, which bakes the statements into the
generated server module, and the runtime table store, which builds list
queries against the column allowlist the generator emitted.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from ..ast import BOOLEAN_TYPES, FieldDecl, MigrationDecl, NUMERIC_TYPES, SchemaDecl

logger = logging.getLogger(__name__)

ID_COLUMN = "id"
SORT_DIRECTIONS = ("asc", "desc")


class StatementError(ValueError):
    """Raised when a table or column name falls outside the allowlist."""


class Dialect(Enum):
    SQLITE = "sqlite"
    POSTGRES = "postgres"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Union[str, "Dialect"]) -> "Dialect":
        if isinstance(value, Dialect):
            return value
        normalized = str(value).strip().lower()
        if normalized in ("postgresql", "pg"):
            normalized = "postgres"
        try:
            return cls(normalized)
        except ValueError:
            raise StatementError(
                f"Unknown dialect '{value}'. Expected one of: {', '.join(d.value for d in cls)}"
            ) from None


class DialectRules(ABC):
    """Placeholder and DDL conventions of one relational engine."""

    dialect: Dialect

    @abstractmethod
    def placeholder(self, index: int) -> str:
        """Marker for the 1-based ``index``-th bound parameter."""

    @property
    def returning_id(self) -> str:
        return ""

    @property
    @abstractmethod
    def id_column(self) -> str:
        ...

    @abstractmethod
    def column_type(self, kind: str) -> str:
        ...


class SqliteRules(DialectRules):
    dialect = Dialect.SQLITE

    def placeholder(self, index: int) -> str:
        return "?"

    @property
    def id_column(self) -> str:
        return "id INTEGER PRIMARY KEY AUTOINCREMENT"

    def column_type(self, kind: str) -> str:
        if kind in ("int", "integer") or kind in BOOLEAN_TYPES:
            return "INTEGER"
        if kind in NUMERIC_TYPES:
            return "REAL"
        return "TEXT"


class PostgresRules(DialectRules):
    dialect = Dialect.POSTGRES

    def placeholder(self, index: int) -> str:
        return f"${index}"

    @property
    def returning_id(self) -> str:
        return " RETURNING id"

    @property
    def id_column(self) -> str:
        return "id SERIAL PRIMARY KEY"

    def column_type(self, kind: str) -> str:
        if kind in ("int", "integer"):
            return "BIGINT"
        if kind in NUMERIC_TYPES:
            return "DOUBLE PRECISION"
        if kind in BOOLEAN_TYPES:
            return "BOOLEAN"
        return "TEXT"


_RULES: Dict[Dialect, DialectRules] = {
    Dialect.SQLITE: SqliteRules(),
    Dialect.POSTGRES: PostgresRules(),
}


def get_rules(dialect: Union[str, Dialect]) -> DialectRules:
    return _RULES[Dialect.parse(dialect)]


def quote_identifier(name: str) -> str:
    if not name or "\x00" in name:
        raise StatementError(f"Invalid SQL identifier {name!r}")
    return '"{}"'.format(name.replace('"', '""'))


@dataclass(frozen=True)
class StatementSet:
    """Prepared statement text for one table."""

    table: str
    columns: Tuple[str, ...]
    insert: str
    update: str
    delete: str
    find_by_key: str

    def as_dict(self) -> Dict[str, str]:
        return {
            "insert": self.insert,
            "update": self.update,
            "delete": self.delete,
            "find_by_key": self.find_by_key,
        }


def table_statements(table: str, columns: Sequence[str], dialect: Union[str, Dialect]) -> StatementSet:
    """Build the four statements for ``table`` with data ``columns`` in order."""
    rules = get_rules(dialect)
    qtable = quote_identifier(table)
    quoted = [quote_identifier(column) for column in columns]

    if quoted:
        markers = ",".join(rules.placeholder(i) for i in range(1, len(quoted) + 1))
        insert = f"INSERT INTO {qtable} ({','.join(quoted)}) VALUES ({markers}){rules.returning_id}"
        assignments = ",".join(f"{column}={rules.placeholder(i)}" for i, column in enumerate(quoted, start=1))
        update = f"UPDATE {qtable} SET {assignments} WHERE id={rules.placeholder(len(quoted) + 1)}"
    else:
        insert = f"INSERT INTO {qtable} DEFAULT VALUES{rules.returning_id}"
        update = f"UPDATE {qtable} SET id=id WHERE id={rules.placeholder(1)}"

    return StatementSet(
        table=table,
        columns=tuple(columns),
        insert=insert,
        update=update,
        delete=f"DELETE FROM {qtable} WHERE id={rules.placeholder(1)}",
        find_by_key=f"SELECT * FROM {qtable} WHERE id={rules.placeholder(1)}",
    )


def lower_statements(schema: SchemaDecl, dialect: Union[str, Dialect]) -> StatementSet:
    """Statement templates for ``schema`` under ``dialect``."""
    return table_statements(schema.name, schema.field_names, dialect)


def schema_columns(schema: SchemaDecl) -> Tuple[str, ...]:
    """Column allowlist for ``schema``: the primary key plus every field."""
    return (ID_COLUMN, *schema.field_names)


# ====================================================================
# Dynamic list queries
# ====================================================================


@dataclass(frozen=True)
class SortSpec:
    field: str
    direction: str = "asc"

    @classmethod
    def coerce(cls, value: Union["SortSpec", Mapping[str, Any], str, None]) -> Optional["SortSpec"]:
        if value is None or isinstance(value, SortSpec):
            return value
        if isinstance(value, str):
            return cls(field=value)
        if isinstance(value, Mapping):
            if not isinstance(value.get("field"), str):
                raise StatementError("sort field must be a string")
            return cls(field=value["field"], direction=str(value.get("direction") or "asc"))
        raise StatementError(f"Unsupported sort specification {value!r}")


@dataclass(frozen=True)
class ListQuery:
    sql: str
    params: List[Any] = field(default_factory=list)


def build_list_query(
    table: str,
    columns: Sequence[str],
    dialect: Union[str, Dialect],
    filters: Optional[Mapping[str, Any]] = None,
    sort: Union[SortSpec, Mapping[str, Any], str, None] = None,
) -> ListQuery:
    """
    Build ``SELECT * FROM table [WHERE ...] [ORDER BY ...]``.

    Every filter key and the sort field must appear in ``columns``; the only
    identifiers that reach the SQL text are those taken from the allowlist.
    Filter values are always bound as parameters.

    Raises:
        StatementError: On an unknown column or sort direction.
    """
    rules = get_rules(dialect)
    allowed = set(columns)
    clauses: List[str] = []
    params: List[Any] = []

    for key, value in (filters or {}).items():
        if key not in allowed:
            raise StatementError(
                f"Unknown filter column '{key}' for table '{table}'. Allowed: {', '.join(columns)}"
            )
        if value is None:
            clauses.append(f"{quote_identifier(key)} IS NULL")
            continue
        params.append(value)
        clauses.append(f"{quote_identifier(key)}={rules.placeholder(len(params))}")

    sql = f"SELECT * FROM {quote_identifier(table)}"
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)

    spec = SortSpec.coerce(sort)
    if spec is not None:
        if spec.field not in allowed:
            raise StatementError(
                f"Unknown sort column '{spec.field}' for table '{table}'. Allowed: {', '.join(columns)}"
            )
        direction = spec.direction.lower()
        if direction not in SORT_DIRECTIONS:
            raise StatementError('sort direction must be "asc" or "desc"')
        sql += f" ORDER BY {quote_identifier(spec.field)} {direction.upper()}"

    return ListQuery(sql=sql, params=params)


# ====================================================================
# DDL
# ====================================================================


def _field_column(item: FieldDecl, rules: DialectRules, schema_names: Sequence[str]) -> str:
    if item.type_name in schema_names:
        definition = f"{quote_identifier(item.name)} INTEGER REFERENCES {quote_identifier(item.type_name)}(id)"
    else:
        kind = "string" if item.is_string_like else item.kind
        definition = f"{quote_identifier(item.name)} {rules.column_type(kind)}"
    if not item.optional:
        definition += " NOT NULL"
    return definition


def lower_create_table(
    schema: SchemaDecl,
    dialect: Union[str, Dialect],
    schema_names: Sequence[str] = (),
) -> str:
    """``CREATE TABLE IF NOT EXISTS`` statement for ``schema``."""
    rules = get_rules(dialect)
    columns = [rules.id_column]
    columns.extend(_field_column(item, rules, schema_names) for item in schema.fields)
    return f"CREATE TABLE IF NOT EXISTS {quote_identifier(schema.name)} ({', '.join(columns)})"


def lower_migration(
    migration: MigrationDecl,
    dialect: Union[str, Dialect],
    schemas: Optional[Mapping[str, SchemaDecl]] = None,
) -> List[str]:
    """DDL statements for one migration, in operation order."""
    rules = get_rules(dialect)
    schemas = schemas or {}
    names = list(schemas)
    statements: List[str] = []
    for op in migration.operations:
        table = quote_identifier(op.table)
        if op.operation == "addColumn":
            kind = (op.type_name or "string").lower()
            column_type = "INTEGER" if op.type_name in schemas else rules.column_type(kind)
            statements.append(f"ALTER TABLE {table} ADD COLUMN {quote_identifier(op.column)} {column_type}")
        elif op.operation == "dropColumn":
            statements.append(f"ALTER TABLE {table} DROP COLUMN {quote_identifier(op.column)}")
        elif op.operation == "createTable":
            schema = schemas.get(op.table)
            if schema is not None:
                statements.append(lower_create_table(schema, rules.dialect, names))
            else:
                statements.append(f"CREATE TABLE IF NOT EXISTS {table} ({rules.id_column})")
        elif op.operation == "dropTable":
            statements.append(f"DROP TABLE IF EXISTS {table}")
        else:
            raise StatementError(f"Unknown migration operation '{op.operation}'")
    logger.debug("Lowered migration %s into %d statement(s)", migration.version, len(statements))
    return statements


__all__ = [
    "Dialect",
    "DialectRules",
    "ID_COLUMN",
    "ListQuery",
    "PostgresRules",
    "SortSpec",
    "SqliteRules",
    "StatementError",
    "StatementSet",
    "build_list_query",
    "get_rules",
    "lower_create_table",
    "lower_migration",
    "lower_statements",
    "quote_identifier",
    "schema_columns",
    "table_statements",
]
