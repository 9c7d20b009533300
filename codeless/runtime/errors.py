"""Request-time errors and storage error normalization."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, Optional

logger = logging.getLogger(__name__)


class CodelessError(Exception):
    """Error carrying the HTTP status it should be reported with."""

    status: int = 500
    error: str = "Execution Error"

    def __init__(self, message: str, status: Optional[int] = None, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        self.details = dict(details or {})

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.error, "message": self.message}
        payload.update(self.details)
        return payload


class ValidationFailure(CodelessError):
    """Raised by generated validators; always a client error."""

    status = 400
    error = "Validation Error"

    def __init__(self, message: str, *, schema: Optional[str] = None, field: Optional[str] = None):
        details = {"field": field} if field is not None else None
        super().__init__(message, details=details)
        self.schema = schema
        self.field = field


class AuthFailure(CodelessError):
    status = 401
    error = "Unauthorized"


class Forbidden(CodelessError):
    status = 403
    error = "Forbidden"


class NotFound(CodelessError):
    status = 404
    error = "Not Found"


class StorageFailure(CodelessError):
    """A database error translated into a client-facing status."""

    error = "Storage Error"


# SQLite extended result names and Postgres SQLSTATE codes.
_UNIQUE_CODES = frozenset({"SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY", "23505"})
_FOREIGN_KEY_CODES = frozenset({"SQLITE_CONSTRAINT_FOREIGNKEY", "23503"})
_NOT_NULL_CODES = frozenset({"SQLITE_CONSTRAINT_NOTNULL", "23502"})
_BUSY_CODES = frozenset({"SQLITE_BUSY", "SQLITE_LOCKED", "55P03", "40P01"})

_MESSAGE_MARKERS = (
    ("UNIQUE constraint failed", "SQLITE_CONSTRAINT_UNIQUE"),
    ("FOREIGN KEY constraint failed", "SQLITE_CONSTRAINT_FOREIGNKEY"),
    ("NOT NULL constraint failed", "SQLITE_CONSTRAINT_NOTNULL"),
    ("database is locked", "SQLITE_BUSY"),
)


def _error_chain(exc: BaseException) -> Iterator[BaseException]:
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        orig = getattr(current, "orig", None)
        current = orig if isinstance(orig, BaseException) else current.__cause__


def _storage_code(exc: BaseException) -> Optional[str]:
    for item in _error_chain(exc):
        for attr in ("sqlite_errorname", "sqlstate", "pgcode"):
            code = getattr(item, attr, None)
            if isinstance(code, str) and code:
                return code
    text = str(exc)
    for marker, code in _MESSAGE_MARKERS:
        if marker in text:
            return code
    return None


def _is_connection_failure(exc: BaseException) -> bool:
    for item in _error_chain(exc):
        if isinstance(item, (ConnectionError, TimeoutError)):
            return True
        if "ECONNREFUSED" in str(item) or "Connection refused" in str(item):
            return True
    return False


def normalize_error(exc: BaseException) -> CodelessError:
    """Translate any exception raised by a pipeline into a :class:`CodelessError`."""
    if isinstance(exc, CodelessError):
        return exc

    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        detail = getattr(exc, "detail", None)
        return CodelessError(str(detail if detail is not None else exc), status)

    message = str(exc) or exc.__class__.__name__
    code = _storage_code(exc)
    if code in _UNIQUE_CODES:
        return StorageFailure("Resource already exists", 409)
    if code in _FOREIGN_KEY_CODES:
        return StorageFailure("Invalid reference", 400)
    if code in _NOT_NULL_CODES:
        return StorageFailure(message or "Required value missing", 400)
    if code in _BUSY_CODES:
        return StorageFailure("Database busy, please retry", 503)
    if _is_connection_failure(exc):
        return StorageFailure("Service temporarily unavailable", 503)
    return CodelessError(message or "Internal server error", 500)


__all__ = [
    "AuthFailure",
    "CodelessError",
    "Forbidden",
    "NotFound",
    "StorageFailure",
    "ValidationFailure",
    "normalize_error",
]
