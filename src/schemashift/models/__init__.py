"""Core data models for schemashift."""

from .base import SchemaShiftBaseModel, FrozenModel
from .schema_snapshot import (
    NOW,
    ColumnSnapshot,
    ForeignKeyAction,
    ForeignKeySnapshot,
    IndexSnapshot,
    SchemaSnapshot,
    TableSnapshot,
)
from .change import ChangeType, DiffResult, SchemaChange
from .migration import AppliedMigration, ApplyResult, MigrationFile, QueryFn, QueryResult
from .journal import Collision, Journal, JournalEntry
from .results import (
    BaselineResult,
    CodeChange,
    DeployFailure,
    DriftEntry,
    MigrateDeployResult,
    MigrateDevResult,
    MigrateStatusResult,
    MigrationPreview,
    PushResult,
    RenameSuggestion,
    ResetResult,
)

__all__ = [
    "SchemaShiftBaseModel",
    "FrozenModel",
    "NOW",
    "ColumnSnapshot",
    "ForeignKeyAction",
    "ForeignKeySnapshot",
    "IndexSnapshot",
    "SchemaSnapshot",
    "TableSnapshot",
    "ChangeType",
    "DiffResult",
    "SchemaChange",
    "AppliedMigration",
    "ApplyResult",
    "MigrationFile",
    "QueryFn",
    "QueryResult",
    "Collision",
    "Journal",
    "JournalEntry",
    "BaselineResult",
    "CodeChange",
    "DeployFailure",
    "DriftEntry",
    "MigrateDeployResult",
    "MigrateDevResult",
    "MigrateStatusResult",
    "MigrationPreview",
    "PushResult",
    "RenameSuggestion",
    "ResetResult",
]
