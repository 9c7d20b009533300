"""Assemble the generated FastAPI server module.

The emitted module is deterministic: declarations appear in the order the
merged syntax tree lists them, and re-emitting an unchanged tree produces
byte-identical text. It contains, top to bottom:

* hoisted ``import`` lines found in action bodies
* ``DIALECT``, ``TABLE_COLUMNS``, ``STATEMENTS``, ``SCHEMA_DDL`` and
  ``MIGRATIONS`` literals
* one ``validate_<Schema>`` function per schema
* one ``action_<name>`` coroutine per ``do`` block
* one ``route_<method>_<path>`` coroutine per route, plus ``ROUTES``
* ``create_app()`` returning a fresh FastAPI application on every call
"""

from __future__ import annotations

import keyword
import logging
import re
import textwrap
from dataclasses import dataclass
from typing import List, Optional, Set, Tuple, Union

from ..ast import ActionDecl, RouteDecl, StepKind, SyntaxTree
from ..errors import EmitError
from .schemas import render_type_declarations
from .statements import Dialect, lower_create_table, lower_migration, lower_statements, schema_columns
from .validation import lower_validation, validator_name

logger = logging.getLogger(__name__)

__all__ = ["EmitOptions", "EmitResult", "emit", "action_function_name", "route_function_name"]

RESERVED_PARAMS = frozenset({"data", "ctx", "db"})


@dataclass(frozen=True)
class EmitOptions:
    dialect: Union[str, Dialect] = Dialect.SQLITE
    runtime_module: str = "codeless.runtime"
    engine_name: str = "codeless"
    title: str = "codeless API"


@dataclass(frozen=True)
class EmitResult:
    server_source: str
    type_declarations: str


def action_function_name(name: str) -> str:
    return f"action_{name}"


def route_function_name(route: RouteDecl) -> str:
    slug = re.sub(r"[^0-9A-Za-z]+", "_", route.path).strip("_") or "root"
    return f"route_{route.method.lower()}_{slug}"


def _extract_imports(body: str) -> Tuple[List[str], str]:
    """Split top-level import lines out of a dedented action body."""
    imports: List[str] = []
    kept: List[str] = []
    for line in body.splitlines():
        if line.startswith("import ") or (line.startswith("from ") and " import " in line):
            imports.append(line.strip())
        else:
            kept.append(line)
    return imports, "\n".join(kept)


def _normalize_body(action: ActionDecl) -> str:
    if not action.body:
        return ""
    if action.indent is not None:
        return textwrap.dedent(action.indent + action.body)
    first, _, rest = action.body.partition("\n")
    if not rest:
        return first
    return first + "\n" + textwrap.dedent(rest)


class _ModuleWriter:
    def __init__(self, tree: SyntaxTree, options: EmitOptions):
        self.tree = tree
        self.options = options
        self.dialect = Dialect.parse(options.dialect)
        self.schemas = tree.schema_map()
        self.actions = tree.action_map()
        self.stdlib_imports: Set[str] = set()
        self.body_imports: List[str] = []
        self.constants: List[str] = []

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def check_routes(self) -> None:
        for route in self.tree.routes:
            where = f"{route.method} {route.path}"
            if not route.action_names:
                raise EmitError(
                    f"Route {where} has no action step",
                    line=route.line,
                    hint="Add an action to the pipeline, e.g. => validate(User), createUser",
                )
            for step in route.steps:
                if step.kind is StepKind.VALIDATE and step.target not in self.schemas:
                    raise EmitError(f"Route {where} validates unknown schema '{step.target}'", line=route.line)
                if step.kind is StepKind.ACTION and step.target not in self.actions:
                    raise EmitError(f"Route {where} calls unknown action '{step.target}'", line=route.line)

    def check_action(self, action: ActionDecl) -> None:
        for param in action.params:
            if not param.isidentifier() or keyword.iskeyword(param):
                raise EmitError(
                    f"Action '{action.name}' has parameter '{param}' that is not a valid Python name",
                    line=action.line,
                )

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def render_tables(self) -> str:
        names = [schema.name for schema in self.tree.schemas]
        lines = [f"DIALECT = {self.dialect.value!r}", f"ENGINE = {self.options.engine_name!r}", ""]

        lines.append("TABLE_COLUMNS = {")
        for schema in self.tree.schemas:
            lines.append(f"    {schema.name!r}: {schema_columns(schema)!r},")
        lines.append("}")
        lines.append("")

        lines.append("STATEMENTS = {")
        for schema in self.tree.schemas:
            statements = lower_statements(schema, self.dialect)
            lines.append(f"    {schema.name!r}: {{")
            for kind, sql in statements.as_dict().items():
                lines.append(f"        {kind!r}: {sql!r},")
            lines.append("    },")
        lines.append("}")
        lines.append("")

        lines.append("SCHEMA_DDL = (")
        for schema in self.tree.schemas:
            lines.append(f"    {lower_create_table(schema, self.dialect, names)!r},")
        lines.append(")")
        lines.append("")

        lines.append("MIGRATIONS = (")
        for migration in self.tree.migrations:
            statements = lower_migration(migration, self.dialect, self.schemas)
            lines.append(f"    ({migration.version!r}, (")
            for sql in statements:
                lines.append(f"        {sql!r},")
            lines.append("    )),")
        lines.append(")")
        return "\n".join(lines)

    def render_validators(self) -> List[str]:
        sources = []
        for schema in self.tree.schemas:
            generated = lower_validation(schema)
            self.constants.extend(generated.constants)
            self.stdlib_imports.update(generated.imports)
            sources.append(generated.source.rstrip())
        return sources

    def render_action(self, action: ActionDecl) -> str:
        self.check_action(action)
        imports, body = _extract_imports(_normalize_body(action))
        for line in imports:
            if line not in self.body_imports:
                self.body_imports.append(line)

        lines = [f"async def {action_function_name(action.name)}(data, ctx):"]
        if action.line is not None:
            lines.append(f"    # do {action.name} (line {action.line})")
        lines.append("    db = ctx.db")
        for param in action.params:
            if param not in RESERVED_PARAMS:
                lines.append(f"    {param} = ctx.bind({param!r}, data)")
        if body.strip():
            lines.append(textwrap.indent(body, "    "))
        return "\n".join(lines)

    def render_route(self, route: RouteDecl, name: str) -> str:
        label = " ".join(f"{route.method} {route.path}".split())
        lines = [f"async def {name}(ctx):", f"    # {label}"]

        # The body is decoded at the first non-auth step, so leading auth
        # gates reject a request before its input is looked at.
        last_action = max(i for i, step in enumerate(route.steps) if step.kind is StepKind.ACTION)
        has_value = False
        for index, step in enumerate(route.steps):
            if step.kind is StepKind.AUTH:
                lines.append("    ctx.require_auth()")
                continue
            if not has_value:
                lines.append("    value = ctx.input")
                has_value = True
            if step.kind is StepKind.VALIDATE:
                validator = validator_name(step.target)
                if index > last_action:
                    lines.append("    if result is not None:")
                    lines.append(f"        result = {validator}(result)")
                else:
                    lines.append(f"    value = {validator}(value)")
                continue
            lines.append(f"    result = await {action_function_name(step.target)}(value, ctx)")
            if index != last_action:
                lines.append("    if result is not None:")
                lines.append("        value = result")
        lines.append("    if result is None:")
        lines.append('        return {"success": True}')
        lines.append("    return result")
        return "\n".join(lines)

    def render_create_app(self) -> str:
        template = f'''
        def create_app(adapter, *, auth=None, create_tables=False):
            """Build a new FastAPI application bound to ``adapter``.

            ``auth`` defaults to a gate reading ``CODELESS_JWT_SECRET``. With
            ``create_tables`` the schema DDL runs at startup.
            """
            db = Database(adapter, TABLE_COLUMNS)
            gate = auth if auth is not None else AuthGate.from_env()

            @asynccontextmanager
            async def lifespan(app):
                await adapter.connect()
                adapter.prepare(STATEMENTS, TABLE_COLUMNS)
                if create_tables:
                    await adapter.execute_ddl(SCHEMA_DDL)
                try:
                    yield
                finally:
                    await adapter.close()

            app = FastAPI(title={self.options.title!r}, lifespan=lifespan)

            @app.get("/__health")
            async def health():
                return {{"status": "ok", "engine": ENGINE}}

            mount_routes(app, ROUTES, db=db, auth=gate)
            return app
        '''
        return textwrap.dedent(template).strip()

    # ------------------------------------------------------------------
    # Module
    # ------------------------------------------------------------------

    def render(self) -> str:
        self.check_routes()
        tables = self.render_tables()
        validators = self.render_validators()
        actions = [self.render_action(action) for action in self.tree.actions]

        used: Set[str] = set()
        routes: List[str] = []
        entries: List[str] = []
        for route in self.tree.routes:
            base = route_function_name(route)
            name, suffix = base, 1
            while name in used:
                suffix += 1
                name = f"{base}_{suffix}"
            used.add(name)
            routes.append(self.render_route(route, name))
            entries.append(f"    ({route.method!r}, {route.path!r}, {name}),")

        header = [
            '"""Generated by codeless. Do not edit by hand."""',
            "",
            "from __future__ import annotations",
            "",
        ]
        stdlib = sorted(self.stdlib_imports)
        header.extend(f"import {name}" for name in stdlib)
        header.append("from contextlib import asynccontextmanager")
        header.append("")
        if self.body_imports:
            header.extend(self.body_imports)
            header.append("")
        header.append("from fastapi import FastAPI")
        header.append("")
        header.append(
            f"from {self.options.runtime_module} import (\n"
            "    AuthGate,\n"
            "    CodelessError,\n"
            "    Database,\n"
            "    NotFound,\n"
            "    ValidationFailure,\n"
            "    mount_routes,\n"
            ")"
        )

        sections = ["\n".join(header), tables]
        if self.constants:
            sections.append("\n".join(self.constants))
        sections.extend(validators)
        sections.extend(actions)
        sections.extend(routes)
        sections.append("ROUTES = (\n" + "\n".join(entries) + ("\n" if entries else "") + ")")
        sections.append(self.render_create_app())
        return "\n\n\n".join(sections) + "\n"


def emit(tree: SyntaxTree, options: Optional[EmitOptions] = None) -> EmitResult:
    """
    Lower a merged syntax tree into the server module and type declarations.

    Raises:
        EmitError: If a route has no action step, references an unknown
            schema or action, or an action declares an invalid parameter name.
    """
    options = options or EmitOptions()
    writer = _ModuleWriter(tree, options)
    server_source = writer.render()
    logger.debug(
        "Emitted server module: %d schema(s), %d action(s), %d route(s)",
        len(tree.schemas),
        len(tree.actions),
        len(tree.routes),
    )
    return EmitResult(server_source=server_source, type_declarations=render_type_declarations(tree))
