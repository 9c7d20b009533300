"""AST nodes for ``migration`` blocks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

MIGRATION_OPERATIONS = ("addColumn", "dropColumn", "createTable", "dropTable")


@dataclass
class MigrationOp:
    """A single schema change, e.g. ``addColumn "User" age Number``."""

    operation: str
    table: str
    column: Optional[str] = None
    type_name: Optional[str] = None
    line: Optional[int] = None


@dataclass
class MigrationDecl:
    version: str
    operations: List[MigrationOp] = field(default_factory=list)
    line: Optional[int] = None


__all__ = ["MIGRATION_OPERATIONS", "MigrationOp", "MigrationDecl"]
