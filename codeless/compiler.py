"""End-to-end build: resolve, check, emit, write."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from .ast import SyntaxTree
from .checker import Issue, assert_clean
from .codegen import EmitOptions, EmitResult, emit
from .config import ProjectConfig, load_config
from .resolver import resolve_modules

logger = logging.getLogger(__name__)


@dataclass
class CompileResult:
    config: ProjectConfig
    tree: SyntaxTree
    output: EmitResult
    server_path: Path
    types_path: Path
    warnings: List[Issue] = field(default_factory=list)


def compile_tree(config: ProjectConfig) -> Tuple[SyntaxTree, EmitResult, List[Issue]]:
    """Resolve and check the project's entry file, then emit both artifacts."""
    tree = resolve_modules(config.entry, config.root)
    warnings = assert_clean(tree)
    output = emit(tree, EmitOptions(dialect=config.dialect))
    return tree, output, warnings


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(text, encoding="utf-8")
    tmp.replace(path)


def compile_project(root: Optional[Path] = None, *, config: Optional[ProjectConfig] = None) -> CompileResult:
    """
    Build the project rooted at ``root``.

    Both artifacts are rendered in memory before anything touches the disk,
    so a failing build leaves previous outputs untouched.

    Raises:
        CodelessCompileError: Any parse, resolution, check or emit failure.
    """
    config = config or load_config(root)
    logger.info("Compiling %s (%s)", config.entry, config.dialect.value)
    tree, output, warnings = compile_tree(config)

    _write(config.output.server, output.server_source)
    _write(config.output.types, output.type_declarations)
    logger.info("Wrote %s and %s", config.output.server, config.output.types)
    return CompileResult(
        config=config,
        tree=tree,
        output=output,
        server_path=config.output.server,
        types_path=config.output.types,
        warnings=warnings,
    )


__all__ = ["CompileResult", "compile_project", "compile_tree"]
