"""Static checks over a merged syntax tree.

These catch mistakes the parser accepts but the emitted server could not
run with: unknown field types, dangling route references, schema reference
cycles, reserved or repeated field names, invalid patterns, repeated
migration versions and obviously unsafe calls inside action bodies.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from .ast import PRIMITIVE_TYPES, RESERVED_TABLE_NAMES, StepKind, SyntaxTree
from .errors import CheckFailed

logger = logging.getLogger(__name__)

ERROR = "error"
WARNING = "warning"

FORBIDDEN_PATTERNS = (
    (re.compile(r"\beval\s*\("), "eval"),
    (re.compile(r"\bexec\s*\("), "exec"),
    (re.compile(r"\b__import__\b"), "__import__"),
    (re.compile(r"\bsubprocess\b"), "subprocess"),
    (re.compile(r"\bos\.system\b"), "os.system"),
    (re.compile(r"\bglobals\s*\("), "globals"),
)


@dataclass(frozen=True)
class Issue:
    rule: str
    message: str
    line: Optional[int] = None
    severity: str = ERROR

    def __str__(self) -> str:
        where = f"Line {self.line}: " if self.line else ""
        return f"{where}[{self.rule}] {self.message}"


def _check_schemas(tree: SyntaxTree, issues: List[Issue]) -> None:
    names = {schema.name for schema in tree.schemas}
    for schema in tree.schemas:
        if schema.name in RESERVED_TABLE_NAMES:
            issues.append(
                Issue("Schema Integrity", f"data {schema.name}: name is reserved by the db table registry", schema.line)
            )
        seen: Set[str] = set()
        for item in schema.fields:
            if item.name in seen:
                issues.append(Issue("Schema Integrity", f"data {schema.name}: field \"{item.name}\" is declared twice", item.line))
            seen.add(item.name)
            if item.name == "id":
                issues.append(
                    Issue("Schema Integrity", f"data {schema.name}: \"id\" is reserved for the primary key", item.line)
                )
            if item.type_name not in names and item.kind not in PRIMITIVE_TYPES:
                issues.append(
                    Issue(
                        "Schema Integrity",
                        f"data {schema.name}: field \"{item.name}\" has invalid type \"{item.type_name}\". "
                        f"Valid types: {', '.join(sorted(PRIMITIVE_TYPES))}, or another data block name.",
                        item.line,
                    )
                )
            pattern = item.args.get("pattern")
            if isinstance(pattern, str):
                try:
                    re.compile(pattern)
                except re.error as exc:
                    issues.append(
                        Issue("Schema Integrity", f"data {schema.name}: field \"{item.name}\" has invalid pattern: {exc}", item.line)
                    )


def _check_security(tree: SyntaxTree, issues: List[Issue]) -> None:
    for action in tree.actions:
        body_start = (action.line or 0) + 1
        for pattern, word in FORBIDDEN_PATTERNS:
            for match in pattern.finditer(action.body):
                line = body_start + action.body.count("\n", 0, match.start()) if action.line else None
                issues.append(
                    Issue("Security Scan", f"do {action.name}: forbidden call \"{word}\" is not allowed in action bodies", line)
                )


def _check_routes(tree: SyntaxTree, issues: List[Issue]) -> None:
    schemas = {schema.name for schema in tree.schemas}
    actions = {action.name for action in tree.actions}
    for route in tree.routes:
        where = f"Route {route.method} {route.path}"
        if not route.action_names:
            issues.append(Issue("Route Validation", f"{where}: pipeline has no action step", route.line))
        for step in route.steps:
            if step.kind is StepKind.ACTION and step.target not in actions:
                issues.append(
                    Issue("Route Validation", f"{where}: action \"{step.target}\" is not defined in any do block", route.line)
                )
            if step.kind is StepKind.VALIDATE and step.target not in schemas:
                issues.append(
                    Issue("Route Validation", f"{where}: validate({step.target}) references unknown schema", route.line)
                )


def _check_cycles(tree: SyntaxTree, issues: List[Issue]) -> None:
    names = {schema.name for schema in tree.schemas}
    refs: Dict[str, List[str]] = {
        schema.name: [f.type_name for f in schema.fields if f.type_name in names and f.type_name != schema.name]
        for schema in tree.schemas
    }
    visited: Set[str] = set()
    path: List[str] = []
    reported: Set[str] = set()

    def visit(name: str) -> None:
        if name in path:
            cycle = path[path.index(name):] + [name]
            key = "->".join(sorted(set(cycle)))
            if key not in reported:
                reported.add(key)
                issues.append(
                    Issue("Circular Dependency", f"Data blocks have a circular reference: {' -> '.join(cycle)}")
                )
            return
        if name in visited:
            return
        visited.add(name)
        path.append(name)
        for target in refs.get(name, ()):
            visit(target)
        path.pop()

    for schema in tree.schemas:
        visit(schema.name)


def _check_migrations(tree: SyntaxTree, issues: List[Issue]) -> None:
    seen: Set[str] = set()
    for migration in tree.migrations:
        if migration.version in seen:
            issues.append(
                Issue("Migrations", f"migration version \"{migration.version}\" is declared more than once", migration.line, WARNING)
            )
        seen.add(migration.version)


def check_tree(tree: SyntaxTree) -> List[Issue]:
    """Return every issue found in ``tree``, errors and warnings alike."""
    issues: List[Issue] = []
    _check_schemas(tree, issues)
    _check_security(tree, issues)
    _check_routes(tree, issues)
    _check_cycles(tree, issues)
    _check_migrations(tree, issues)
    return issues


def assert_clean(tree: SyntaxTree) -> List[Issue]:
    """Log warnings and raise :class:`CheckFailed` if any error was found."""
    issues = check_tree(tree)
    errors = [issue for issue in issues if issue.severity == ERROR]
    for issue in issues:
        if issue.severity == WARNING:
            logger.warning("%s", issue)
    if errors:
        raise CheckFailed(errors)
    return issues


__all__ = ["ERROR", "WARNING", "FORBIDDEN_PATTERNS", "Issue", "assert_clean", "check_tree"]
