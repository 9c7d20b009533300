"""codeless: ahead-of-time compiler from a small backend DSL to FastAPI code."""

from .checker import Issue, check_tree
from .codegen import EmitOptions, EmitResult, emit
from .compiler import CompileResult, compile_project
from .config import ProjectConfig, configure_logging, load_config
from .errors import (
    CheckFailed,
    CircularImport,
    CodelessCompileError,
    ConfigError,
    EmitError,
    ParseError,
    PositionNotFound,
    UnbalancedDelimiters,
    UnresolvedImport,
)
from .lang import parse, tokenize
from .resolver import resolve_modules

__version__ = "0.1.0"

__all__ = [
    "CheckFailed",
    "CircularImport",
    "CodelessCompileError",
    "CompileResult",
    "ConfigError",
    "EmitError",
    "EmitOptions",
    "EmitResult",
    "Issue",
    "ParseError",
    "PositionNotFound",
    "ProjectConfig",
    "UnbalancedDelimiters",
    "UnresolvedImport",
    "check_tree",
    "compile_project",
    "configure_logging",
    "emit",
    "load_config",
    "parse",
    "resolve_modules",
    "tokenize",
]
