"""Project configuration: ``codeless.toml`` plus ``CODELESS_*`` overrides."""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .codegen.statements import Dialect, StatementError
from .errors import ConfigError

CONFIG_FILENAME = "codeless.toml"
LOG_LEVEL_ENV = "CODELESS_LOG_LEVEL"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass
class ProjectDefaults:
    """Values used when ``codeless.toml`` leaves a setting out."""

    entry: Path = Path("api.cls")
    server_out: Path = Path("generated/server.py")
    types_out: Path = Path("generated/schemas.py")
    dialect: Dialect = Dialect.SQLITE
    database_file: str = "codeless.db"
    port: int = 3000
    migrations_table: str = "_codeless_migrations"
    migrations_dir: Path = Path("migrations")


@dataclass
class OutputConfig:
    server: Path
    types: Path


@dataclass
class MigrationsConfig:
    table: str
    dir: Path


@dataclass
class ProjectConfig:
    """Resolved configuration for one project root."""

    root: Path
    entry: Path
    output: OutputConfig
    dialect: Dialect = Dialect.SQLITE
    database: Dict[str, Any] = field(default_factory=dict)
    port: int = ProjectDefaults.port
    migrations: Optional[MigrationsConfig] = None
    raw: Dict[str, Any] = field(default_factory=dict)


def _resolve(root: Path, value: Any, default: Path) -> Path:
    path = Path(str(value)) if value else default
    if not path.is_absolute():
        path = root / path
    return path.resolve()


def _read_toml_config(path: Path) -> Dict[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid {CONFIG_FILENAME}: {exc}", path=str(path)) from exc


def _parse_dialect(value: Any, source: str) -> Dialect:
    try:
        return Dialect.parse(value)
    except StatementError as exc:
        raise ConfigError(str(exc), path=source) from None


def load_config(root: Optional[Path] = None, *, env: Optional[Mapping[str, str]] = None) -> ProjectConfig:
    """Load ``codeless.toml`` from ``root`` (default: the working directory).

    ``CODELESS_ENTRY`` and ``CODELESS_DIALECT`` take precedence over the file.
    """
    root = Path(root or Path.cwd()).resolve()
    env = os.environ if env is None else env
    defaults = ProjectDefaults()
    config_path = root / CONFIG_FILENAME
    data = _read_toml_config(config_path) if config_path.is_file() else {}

    output_section = data.get("output") or {}
    migrations_section = data.get("migrations") or {}
    database = data.get("database") or {}
    if not isinstance(output_section, dict) or not isinstance(migrations_section, dict) or not isinstance(database, dict):
        raise ConfigError("'output', 'migrations' and 'database' must be tables", path=str(config_path))

    entry_value = env.get("CODELESS_ENTRY") or data.get("entry")
    dialect_value = env.get("CODELESS_DIALECT") or data.get("dialect") or data.get("adapter")
    dialect = _parse_dialect(dialect_value, str(config_path)) if dialect_value else defaults.dialect

    try:
        port = int(data.get("port") or defaults.port)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid port {data.get('port')!r}", path=str(config_path)) from None

    database = dict(database)
    if dialect is Dialect.SQLITE:
        database.setdefault("file", defaults.database_file)

    return ProjectConfig(
        root=root,
        entry=_resolve(root, entry_value, defaults.entry),
        output=OutputConfig(
            server=_resolve(root, output_section.get("server"), defaults.server_out),
            types=_resolve(root, output_section.get("types"), defaults.types_out),
        ),
        dialect=dialect,
        database=database,
        port=port,
        migrations=MigrationsConfig(
            table=str(migrations_section.get("table") or defaults.migrations_table),
            dir=_resolve(root, migrations_section.get("dir"), defaults.migrations_dir),
        ),
        raw=data,
    )


def configure_logging(level: Optional[str] = None) -> int:
    """Set the ``codeless`` logger level from ``level`` or ``CODELESS_LOG_LEVEL``."""
    name = (level or os.getenv(LOG_LEVEL_ENV, "info")).lower()
    numeric_level = _LEVELS.get(name, logging.INFO)
    logger = logging.getLogger("codeless")
    logger.setLevel(numeric_level)
    if not logger.handlers and not logging.getLogger().handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)
    return numeric_level


__all__ = [
    "CONFIG_FILENAME",
    "LOG_LEVEL_ENV",
    "MigrationsConfig",
    "OutputConfig",
    "ProjectConfig",
    "ProjectDefaults",
    "configure_logging",
    "load_config",
]
