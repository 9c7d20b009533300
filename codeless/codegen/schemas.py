"""Render the type-declaration artifact: one Pydantic model per schema."""

from __future__ import annotations

import textwrap
from typing import List, Sequence

from ..ast import FieldDecl, SchemaDecl, SyntaxTree

__all__ = ["render_type_declarations", "field_annotation"]


def field_annotation(item: FieldDecl, schema_names: Sequence[str]) -> str:
    members = item.enum_values
    if members is not None:
        return "Literal[{}]".format(", ".join(repr(member) for member in members))
    if item.is_string_like:
        return "str"
    if item.is_numeric:
        return "int" if item.kind in ("int", "integer") else "float"
    if item.is_boolean:
        return "bool"
    if item.type_name in schema_names:
        return f"Union[int, {item.type_name}]"
    return "Any"


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _field_constraints(item: FieldDecl) -> List[str]:
    constraints: List[str] = []
    if item.enum_values is not None:
        return constraints
    low, high = item.args.get("min"), item.args.get("max")
    if item.is_string_like:
        if _is_number(low):
            constraints.append(f"min_length={low!r}")
        if _is_number(high):
            constraints.append(f"max_length={high!r}")
        if isinstance(item.args.get("pattern"), str):
            constraints.append(f"pattern={item.args['pattern']!r}")
    elif item.is_numeric:
        if _is_number(low):
            constraints.append(f"ge={low!r}")
        if _is_number(high):
            constraints.append(f"le={high!r}")
    return constraints


def _render_field(item: FieldDecl, schema_names: Sequence[str]) -> str:
    annotation = field_annotation(item, schema_names)
    constraints = _field_constraints(item)
    if item.optional:
        annotation = f"Optional[{annotation}]"
        if constraints:
            return f"    {item.name}: {annotation} = Field(default=None, {', '.join(constraints)})"
        return f"    {item.name}: {annotation} = None"
    if constraints:
        return f"    {item.name}: {annotation} = Field(..., {', '.join(constraints)})"
    return f"    {item.name}: {annotation}"


def _render_model(schema: SchemaDecl, schema_names: Sequence[str]) -> str:
    lines = [
        f"class {schema.name}(BaseModel):",
        f'    """Record stored in the ``{schema.name}`` table."""',
        "",
        "    id: Optional[int] = None",
    ]
    lines.extend(_render_field(item, schema_names) for item in schema.fields)
    return "\n".join(lines)


def render_type_declarations(tree: SyntaxTree) -> str:
    """Render a module declaring a Pydantic model for every schema in ``tree``."""
    names = [schema.name for schema in tree.schemas]
    header = '''
    """Pydantic models describing the generated API's records.

    Generated by codeless. Do not edit by hand.
    """

    from __future__ import annotations

    from typing import Any, Literal, Optional, Union

    from pydantic import BaseModel, Field
    '''
    parts = [textwrap.dedent(header).strip()]
    parts.extend(_render_model(schema, names) for schema in tree.schemas)
    rebuild = [f"{name}.model_rebuild()" for name in names]
    exports = "__all__ = [{}]".format(", ".join(repr(name) for name in names))
    if rebuild:
        parts.append("\n".join(rebuild))
    parts.append(exports)
    return "\n\n\n".join(parts) + "\n"
