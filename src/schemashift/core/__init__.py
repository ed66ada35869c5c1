"""Core schemashift functionality."""

from schemashift.core.connection import DatabaseConnection
from schemashift.core.dialect import (
    Dialect,
    PostgresDialect,
    SqliteDialect,
    D1Dialect,
    get_dialect,
)

__all__ = [
    "DatabaseConnection",
    "Dialect",
    "PostgresDialect",
    "SqliteDialect",
    "D1Dialect",
    "get_dialect",
]
