"""schemashift - Declarative schema diffing and migrations for SQL databases."""

from importlib.metadata import PackageNotFoundError, version

from schemashift.core.connection import DatabaseConnection
from schemashift.core.dialect import get_dialect
from schemashift.managers import (
    compute_diff,
    generate_migration_sql,
    migrate_dev,
    migrate_deploy,
    push,
    migrate_status,
    baseline,
    reset,
)
from schemashift.models import SchemaSnapshot

try:
    __version__ = version("schemashift")
except PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = [
    "DatabaseConnection",
    "get_dialect",
    "compute_diff",
    "generate_migration_sql",
    "migrate_dev",
    "migrate_deploy",
    "push",
    "migrate_status",
    "baseline",
    "reset",
    "SchemaSnapshot",
]
