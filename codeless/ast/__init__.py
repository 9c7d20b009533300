"""Syntax tree nodes produced by the codeless parser."""

from .actions import ActionDecl
from .migrations import MIGRATION_OPERATIONS, MigrationDecl, MigrationOp
from .program import ImportDecl, SyntaxTree
from .routes import PipelineStep, RouteDecl, StepKind
from .schemas import (
    BOOLEAN_TYPES,
    NUMERIC_TYPES,
    PRIMITIVE_TYPES,
    RESERVED_TABLE_NAMES,
    STRING_TYPES,
    ArgValue,
    FieldDecl,
    SchemaDecl,
)

__all__ = [
    "ActionDecl",
    "ArgValue",
    "BOOLEAN_TYPES",
    "FieldDecl",
    "ImportDecl",
    "MIGRATION_OPERATIONS",
    "MigrationDecl",
    "MigrationOp",
    "NUMERIC_TYPES",
    "PipelineStep",
    "PRIMITIVE_TYPES",
    "RESERVED_TABLE_NAMES",
    "RouteDecl",
    "SchemaDecl",
    "StepKind",
    "STRING_TYPES",
    "SyntaxTree",
]
