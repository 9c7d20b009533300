"""Runtime support imported by generated server modules."""

from .adapters import DatabaseAdapter, PostgresAdapter, SqliteAdapter
from .auth import AuthGate
from .context import RequestContext
from .errors import (
    AuthFailure,
    CodelessError,
    Forbidden,
    NotFound,
    StorageFailure,
    ValidationFailure,
    normalize_error,
)
from .server import mount_routes, to_fastapi_path
from .store import Database, TableStore

__all__ = [
    "AuthFailure",
    "AuthGate",
    "CodelessError",
    "Database",
    "DatabaseAdapter",
    "Forbidden",
    "NotFound",
    "PostgresAdapter",
    "RequestContext",
    "SqliteAdapter",
    "StorageFailure",
    "TableStore",
    "ValidationFailure",
    "mount_routes",
    "normalize_error",
    "to_fastapi_path",
]
