"""Lowering passes and the server module emitter."""

from .schemas import render_type_declarations
from .server import EmitOptions, EmitResult, emit
from .statements import (
    Dialect,
    ListQuery,
    SortSpec,
    StatementError,
    StatementSet,
    build_list_query,
    lower_create_table,
    lower_migration,
    lower_statements,
    schema_columns,
)
from .validation import GeneratedFunction, lower_validation

__all__ = [
    "Dialect",
    "EmitOptions",
    "EmitResult",
    "GeneratedFunction",
    "ListQuery",
    "SortSpec",
    "StatementError",
    "StatementSet",
    "build_list_query",
    "emit",
    "lower_create_table",
    "lower_migration",
    "lower_statements",
    "lower_validation",
    "render_type_declarations",
    "schema_columns",
]
