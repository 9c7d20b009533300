"""Multi-file module resolution for codeless projects."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .ast import ActionDecl, RouteDecl, SchemaDecl, SyntaxTree
from .errors import CircularImport, UnresolvedImport
from .lang import parse

logger = logging.getLogger(__name__)

SOURCE_SUFFIX = ".cls"

StrPath = Union[str, "PathLike[str]"]


def _with_suffix(target: str) -> str:
    return target if target.endswith(SOURCE_SUFFIX) else target + SOURCE_SUFFIX


@dataclass
class ModuleResolver:
    """Load an entry file and everything it imports.

    ``loading`` holds the files whose imports are still being resolved; seeing
    one of them again means the import graph has a cycle. ``resolved`` caches
    parsed trees so a file imported from several places is parsed once.
    ``order`` records files in pre-order: a file comes before its imports, and
    imports follow their source order.
    """

    root_dir: Path
    loading: List[Path] = field(default_factory=list)
    resolved: Dict[Path, SyntaxTree] = field(default_factory=dict)
    order: List[Path] = field(default_factory=list)

    def resolve_import(self, importer: Path, target: str) -> Path:
        candidate = Path(_with_suffix(target))
        if candidate.is_absolute():
            return candidate.resolve()
        if target.startswith("./") or target.startswith("../"):
            return (importer.parent / candidate).resolve()
        return (self.root_dir / candidate).resolve()

    def load(self, path: Path, *, imported_from: Optional[Path] = None, line: Optional[int] = None) -> SyntaxTree:
        if path in self.loading:
            chain = [str(item) for item in self.loading] + [str(path)]
            raise CircularImport(chain)
        cached = self.resolved.get(path)
        if cached is not None:
            return cached

        if not path.is_file():
            raise UnresolvedImport(
                str(path),
                imported_from=str(imported_from) if imported_from else None,
                line=line,
            )

        logger.debug("Loading module %s", path)
        tree = parse(path.read_text(encoding="utf-8"), str(path))
        self.order.append(path)
        self.loading.append(path)
        try:
            for item in tree.imports:
                target = self.resolve_import(path, item.path)
                self.load(target, imported_from=path, line=item.line)
        finally:
            self.loading.pop()
        self.resolved[path] = tree
        return tree

    def merged(self) -> SyntaxTree:
        return merge_trees([self.resolved[path] for path in self.order])


def merge_trees(trees: List[SyntaxTree]) -> SyntaxTree:
    """Combine trees in order, keeping the first declaration of each key.

    Schemas and actions are keyed by name, routes by ``(method, path)``.
    Migrations are concatenated. Imports are dropped.
    """
    schemas: Dict[str, SchemaDecl] = {}
    actions: Dict[str, ActionDecl] = {}
    routes: Dict[Tuple[str, str], RouteDecl] = {}
    merged = SyntaxTree()

    for tree in trees:
        for schema in tree.schemas:
            if _keep_first(schemas, schema.name, schema, "schema", tree.path):
                merged.schemas.append(schema)
        for action in tree.actions:
            if _keep_first(actions, action.name, action, "action", tree.path):
                merged.actions.append(action)
        for route in tree.routes:
            if _keep_first(routes, route.key, route, "route", tree.path):
                merged.routes.append(route)
        merged.migrations.extend(tree.migrations)
    return merged


def _keep_first(seen: Dict, key, value, label: str, path: Optional[str]) -> bool:
    if key in seen:
        shown = " ".join(key) if isinstance(key, tuple) else key
        logger.warning("Duplicate %s '%s' in %s ignored; first declaration wins", label, shown, path or "<source>")
        return False
    seen[key] = value
    return True


def resolve_modules(entry_path: StrPath, root_dir: Optional[StrPath] = None) -> SyntaxTree:
    """
    Parse ``entry_path`` and every file it transitively imports into one tree.

    Relative imports (``./`` or ``../``) resolve against the importing file's
    directory. Absolute imports are used as given. Anything else resolves
    against ``root_dir``, which defaults to the entry file's directory. The
    ``.cls`` suffix is appended when missing.

    Raises:
        CircularImport: If a file imports itself directly or transitively.
        UnresolvedImport: If the entry file or an imported file does not exist.
    """
    entry = Path(_with_suffix(str(entry_path))).resolve()
    root = Path(root_dir).resolve() if root_dir is not None else entry.parent
    resolver = ModuleResolver(root_dir=root)
    resolver.load(entry)
    logger.debug("Resolved %d module(s) from %s", len(resolver.order), entry)
    return resolver.merged()


__all__ = ["ModuleResolver", "merge_trees", "resolve_modules", "SOURCE_SUFFIX"]
