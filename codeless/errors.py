"""Unified compile-time error model for codeless."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence


@dataclass
class ErrorLocation:
    path: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None

    def describe(self) -> str:
        if self.path and self.line is not None and self.column is not None:
            return f"{self.path}:{self.line}:{self.column}"
        if self.path and self.line is not None:
            return f"{self.path}:{self.line}"
        if self.line is not None and self.column is not None:
            return f"line {self.line}, column {self.column}"
        if self.path:
            return self.path
        return "unknown location"


class CodelessCompileError(Exception):
    """Base class for every error that aborts a build."""

    code: Optional[str] = None
    hint: Optional[str] = None

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        line: Optional[int] = None,
        column: Optional[int] = None,
        code: Optional[str] = None,
        hint: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.location = ErrorLocation(path=path, line=line, column=column)
        self.path = path
        self.line = line
        self.column = column
        if code is not None:
            self.code = code
        if hint is not None:
            self.hint = hint

    def format(self) -> str:
        components = [self.message]
        meta_parts = []
        location_desc = self.location.describe()
        if location_desc != "unknown location":
            meta_parts.append(location_desc)
        if self.code:
            meta_parts.append(self.code)
        if meta_parts:
            components[-1] = f"{components[-1]} ({'; '.join(meta_parts)})"
        if self.hint:
            components.append(f"Hint: {self.hint}")
        return " ".join(part for part in components if part)


class ParseError(CodelessCompileError):
    """Raised when the token stream does not match the grammar."""

    code = "CLS_PARSE"

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        line: Optional[int] = None,
        column: Optional[int] = None,
        expected: Optional[Sequence[str]] = None,
        found: Optional[str] = None,
        hint: Optional[str] = None,
    ) -> None:
        super().__init__(message, path=path, line=line, column=column, hint=hint)
        self.expected: List[str] = list(expected or [])
        self.found = found

    def __str__(self) -> str:
        parts = [self.format()]
        if self.expected:
            parts.append(f"Expected one of: {', '.join(self.expected)}")
        if self.found is not None:
            parts.append(f"Found: {self.found}")
        return "\n".join(parts)


class ExtractionError(CodelessCompileError):
    """Raised when a raw action body cannot be sliced out of the source."""


class PositionNotFound(ExtractionError):
    code = "CLS_POSITION"


class UnbalancedDelimiters(ExtractionError):
    code = "CLS_UNBALANCED"


class ResolutionError(CodelessCompileError):
    """Raised when module or import resolution fails."""


class CircularImport(ResolutionError):
    code = "CLS_CIRCULAR_IMPORT"

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = list(cycle)
        super().__init__(
            "Circular import detected: " + " -> ".join(self.cycle),
            path=self.cycle[-1] if self.cycle else None,
        )


class UnresolvedImport(ResolutionError):
    code = "CLS_UNRESOLVED_IMPORT"

    def __init__(self, target: str, *, imported_from: Optional[str] = None, line: Optional[int] = None) -> None:
        self.target = target
        self.imported_from = imported_from
        message = f"Cannot resolve import '{target}'"
        if imported_from:
            message += f" imported from {imported_from}"
        super().__init__(message, path=imported_from, line=line)


class EmitError(CodelessCompileError):
    """Raised when the syntax tree cannot be lowered into a server module."""

    code = "CLS_EMIT"


class CheckFailed(CodelessCompileError):
    """Raised when static checks report errors for the merged tree."""

    code = "CLS_CHECK"

    def __init__(self, issues) -> None:
        self.issues = list(issues)
        lines = [f"Found {len(self.issues)} issue(s):"]
        lines.extend(f"  {issue}" for issue in self.issues)
        super().__init__("\n".join(lines))


class ConfigError(CodelessCompileError):
    """Raised when codeless.toml or the environment holds invalid settings."""

    code = "CLS_CONFIG"


__all__ = [
    "ErrorLocation",
    "CodelessCompileError",
    "ParseError",
    "ExtractionError",
    "PositionNotFound",
    "UnbalancedDelimiters",
    "ResolutionError",
    "CircularImport",
    "UnresolvedImport",
    "EmitError",
    "CheckFailed",
    "ConfigError",
]
