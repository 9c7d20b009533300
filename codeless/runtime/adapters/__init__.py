"""Storage adapters, one per supported SQL dialect."""

from .base import DatabaseAdapter, Row
from .postgres import PostgresAdapter
from .sqlite import SqliteAdapter

__all__ = ["DatabaseAdapter", "PostgresAdapter", "Row", "SqliteAdapter"]
