"""AST nodes for ``data`` blocks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

ArgValue = Union[int, float, str, List[str]]

STRING_TYPES = frozenset({"string", "password", "date", "enum"})
NUMERIC_TYPES = frozenset({"number", "int", "integer", "float"})
BOOLEAN_TYPES = frozenset({"boolean", "bool"})
PRIMITIVE_TYPES = STRING_TYPES | NUMERIC_TYPES | BOOLEAN_TYPES

# Attributes of the runtime table registry that would hide a table of the same name.
RESERVED_TABLE_NAMES = frozenset({"adapter", "tables", "table", "query", "transaction"})


@dataclass
class FieldDecl:
    """One field of a schema, e.g. ``username: String(min: 3)?``."""

    name: str
    type_name: str
    optional: bool = False
    args: Dict[str, ArgValue] = field(default_factory=dict)
    line: Optional[int] = None

    @property
    def kind(self) -> str:
        return self.type_name.lower()

    @property
    def enum_values(self) -> Optional[List[str]]:
        values = self.args.get("enum")
        if isinstance(values, list):
            return values
        return None

    @property
    def is_string_like(self) -> bool:
        return self.kind in STRING_TYPES or self.enum_values is not None

    @property
    def is_numeric(self) -> bool:
        return not self.is_string_like and self.kind in NUMERIC_TYPES

    @property
    def is_boolean(self) -> bool:
        return not self.is_string_like and self.kind in BOOLEAN_TYPES

    @property
    def is_primitive(self) -> bool:
        return self.kind in PRIMITIVE_TYPES


@dataclass
class SchemaDecl:
    """A ``data`` block. Each schema becomes one storage table."""

    name: str
    fields: List[FieldDecl] = field(default_factory=list)
    line: Optional[int] = None

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def get_field(self, name: str) -> Optional[FieldDecl]:
        for item in self.fields:
            if item.name == name:
                return item
        return None


__all__ = [
    "ArgValue",
    "FieldDecl",
    "SchemaDecl",
    "STRING_TYPES",
    "NUMERIC_TYPES",
    "BOOLEAN_TYPES",
    "PRIMITIVE_TYPES",
    "RESERVED_TABLE_NAMES",
]
