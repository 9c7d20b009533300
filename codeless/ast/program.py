"""Top-level syntax tree for one file or a merged project."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .actions import ActionDecl
from .migrations import MigrationDecl
from .routes import RouteDecl
from .schemas import SchemaDecl


@dataclass
class ImportDecl:
    path: str
    line: Optional[int] = None


@dataclass
class SyntaxTree:
    schemas: List[SchemaDecl] = field(default_factory=list)
    actions: List[ActionDecl] = field(default_factory=list)
    routes: List[RouteDecl] = field(default_factory=list)
    migrations: List[MigrationDecl] = field(default_factory=list)
    imports: List[ImportDecl] = field(default_factory=list)
    path: Optional[str] = None

    def schema_map(self) -> Dict[str, SchemaDecl]:
        return {schema.name: schema for schema in self.schemas}

    def action_map(self) -> Dict[str, ActionDecl]:
        return {action.name: action for action in self.actions}


__all__ = ["ImportDecl", "SyntaxTree"]
