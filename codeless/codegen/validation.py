"""Lower ``data`` blocks into straight-line validator functions.

Every constraint is baked into the generated source as a literal: bounds,
enum members and patterns are never looked up from schema metadata at
request time. A validator either returns a fresh dict with exactly the
schema's fields or raises ``ValidationFailure``; the input is never
mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..ast import FieldDecl, SchemaDecl

FORMAT_PATTERNS = {
    "email": r"[^@\s]+@[^@\s]+\.[^@\s]+",
    "uuid": r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}",
    "date": r"\d{4}-\d{2}-\d{2}",
    "datetime": r"\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:?\d{2})?",
    "url": r"https?://[^\s/$.?#][^\s]*",
}


@dataclass
class GeneratedFunction:
    """Source of one generated top-level function.

    ``constants`` are module-level assignments the function depends on and
    ``imports`` the stdlib modules it needs; the emitter hoists both.
    """

    name: str
    source: str
    constants: List[str] = field(default_factory=list)
    imports: Tuple[str, ...] = ()


def _numeric_bound(value) -> Optional[str]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return repr(value)


class _ValidatorWriter:
    def __init__(self, schema: SchemaDecl):
        self.schema = schema
        self.lines: List[str] = []
        self.constants: List[str] = []
        self.imports = set()

    def emit(self, depth: int, text: str) -> None:
        self.lines.append("    " * depth + text)

    def fail(self, depth: int, message: str, field_name: Optional[str] = None, *, chain: bool = False) -> None:
        text = f"{self.schema.name}: {message}"
        args = f"{text!r}, schema={self.schema.name!r}"
        if field_name is not None:
            args += f", field={field_name!r}"
        suffix = " from None" if chain else ""
        self.emit(depth, f"raise ValidationFailure({args}){suffix}")

    def write(self, name: str) -> GeneratedFunction:
        self.emit(0, f"def {name}(data):")
        self.emit(1, "if not isinstance(data, dict):")
        self.fail(2, "body must be a plain object")
        self.emit(1, "result = {}")
        for item in self.schema.fields:
            self.write_field(item)
        self.emit(1, "return result")
        return GeneratedFunction(
            name=name,
            source="\n".join(self.lines) + "\n",
            constants=self.constants,
            imports=tuple(sorted(self.imports)),
        )

    def write_field(self, item: FieldDecl) -> None:
        key = item.name
        self.emit(1, f"value = data.get({key!r})")
        self.emit(1, "if value is None:")
        if item.optional:
            self.emit(2, f"result[{key!r}] = None")
            self.emit(1, "else:")
            depth = 2
        else:
            self.fail(2, f'missing required field "{key}"', key)
            depth = 1

        if item.is_string_like:
            self.write_string_checks(item, depth)
        elif item.is_numeric:
            self.write_number_checks(item, depth)
        elif item.is_boolean:
            self.emit(depth, f"result[{key!r}] = bool(value)")
        else:
            self.emit(depth, f"result[{key!r}] = value")

    def write_string_checks(self, item: FieldDecl, depth: int) -> None:
        key = item.name
        self.emit(depth, "if not isinstance(value, str):")
        self.fail(depth + 1, f'"{key}" must be a string', key)
        low = _numeric_bound(item.args.get("min"))
        if low is not None:
            self.emit(depth, f"if len(value) < {low}:")
            self.fail(depth + 1, f'"{key}" too short', key)
        high = _numeric_bound(item.args.get("max"))
        if high is not None:
            self.emit(depth, f"if len(value) > {high}:")
            self.fail(depth + 1, f'"{key}" too long', key)

        pattern = item.args.get("pattern")
        if isinstance(pattern, str):
            constant = self.add_pattern(f"_PATTERN_{self.schema.name}_{key}", pattern)
            self.emit(depth, f"if {constant}.fullmatch(value) is None:")
            self.fail(depth + 1, f'"{key}" does not match pattern', key)
        fmt = item.args.get("format")
        if isinstance(fmt, str) and fmt.lower() in FORMAT_PATTERNS:
            constant = self.add_pattern(f"_FORMAT_{self.schema.name}_{key}", FORMAT_PATTERNS[fmt.lower()])
            self.emit(depth, f"if {constant}.fullmatch(value) is None:")
            self.fail(depth + 1, f'"{key}" must be a valid {fmt.lower()}', key)

        members = item.enum_values
        if members is not None:
            self.emit(depth, f"if value not in {tuple(members)!r}:")
            self.fail(depth + 1, f'"{key}" invalid enum', key)
        self.emit(depth, f"result[{key!r}] = value")

    def write_number_checks(self, item: FieldDecl, depth: int) -> None:
        key = item.name
        self.imports.add("math")
        self.emit(depth, "if isinstance(value, bool):")
        self.fail(depth + 1, f'"{key}" must be a number', key)
        self.emit(depth, "try:")
        self.emit(depth + 1, "number = value if isinstance(value, int) else float(value)")
        # math.isfinite converts ints to float and overflows on huge ones.
        self.emit(depth + 1, "finite = math.isfinite(number)")
        self.emit(depth, "except (TypeError, ValueError, OverflowError):")
        self.fail(depth + 1, f'"{key}" must be a number', key, chain=True)
        self.emit(depth, "if not finite:")
        self.fail(depth + 1, f'"{key}" must be a number', key)
        if item.kind in ("int", "integer"):
            self.emit(depth, "if number != int(number):")
            self.fail(depth + 1, f'"{key}" must be an integer', key)
            self.emit(depth, "number = int(number)")
        low = _numeric_bound(item.args.get("min"))
        if low is not None:
            self.emit(depth, f"if number < {low}:")
            self.fail(depth + 1, f'"{key}" must be >= {low}', key)
        high = _numeric_bound(item.args.get("max"))
        if high is not None:
            self.emit(depth, f"if number > {high}:")
            self.fail(depth + 1, f'"{key}" must be <= {high}', key)
        self.emit(depth, f"result[{key!r}] = number")

    def add_pattern(self, name: str, pattern: str) -> str:
        self.imports.add("re")
        self.constants.append(f"{name} = re.compile({pattern!r})")
        return name


def validator_name(schema_name: str) -> str:
    return f"validate_{schema_name}"


def lower_validation(schema: SchemaDecl) -> GeneratedFunction:
    """Generate ``validate_<Schema>(data)`` for ``schema``."""
    return _ValidatorWriter(schema).write(validator_name(schema.name))


__all__ = ["FORMAT_PATTERNS", "GeneratedFunction", "lower_validation", "validator_name"]
