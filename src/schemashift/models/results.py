"""Result objects returned by the orchestration flows."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field

from .base import SchemaShiftBaseModel
from .change import ChangeType, SchemaChange
from .journal import Collision
from .migration import AppliedMigration, ApplyResult
from .schema_snapshot import SchemaSnapshot


class RenameSuggestion(SchemaShiftBaseModel):
    """A column rename inferred by the differ, surfaced for review."""

    table: str
    old_column: str
    new_column: str
    confidence: float

    @classmethod
    def from_change(cls, change: SchemaChange) -> "RenameSuggestion":
        return cls(
            table=change.table,
            old_column=change.old_column,
            new_column=change.new_column,
            confidence=change.confidence,
        )


class MigrateDevResult(SchemaShiftBaseModel):
    """Result of generating (and applying) a migration in development."""

    migration_file: Optional[str] = None
    sql: str = ""
    dry_run: bool = False
    applied_at: Optional[datetime] = None
    checksum: Optional[str] = None
    changes: List[SchemaChange] = Field(default_factory=list)
    collisions: List[Collision] = Field(default_factory=list)
    rename_suggestions: List[RenameSuggestion] = Field(default_factory=list)
    snapshot: SchemaSnapshot


class MigrationPreview(SchemaShiftBaseModel):
    """Statements a deploy would run for one file."""

    name: str
    statements: List[str]


class DeployFailure(SchemaShiftBaseModel):
    """The migration that stopped a deploy, and why."""

    name: str
    message: str


class MigrateDeployResult(SchemaShiftBaseModel):
    """Classification of migration files after a deploy."""

    applied: List[str] = Field(default_factory=list)
    already_applied: List[str] = Field(default_factory=list)
    drifted: List[str] = Field(default_factory=list)
    dry_run: bool = False
    migrations: List[MigrationPreview] = Field(default_factory=list)
    error: Optional[DeployFailure] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class PushResult(SchemaShiftBaseModel):
    """Result of pushing a schema directly without a migration file."""

    sql: str = ""
    tables_affected: List[str] = Field(default_factory=list)
    changes: List[SchemaChange] = Field(default_factory=list)
    rename_suggestions: List[RenameSuggestion] = Field(default_factory=list)


class CodeChange(SchemaShiftBaseModel):
    """A schema change present in code but not captured by any migration."""

    description: str
    type: ChangeType
    table: Optional[str] = None
    column: Optional[str] = None


DriftType = Literal[
    "extra_table",
    "missing_table",
    "extra_column",
    "missing_column",
    "column_type_mismatch",
]


class DriftEntry(SchemaShiftBaseModel):
    """One mismatch between an expected schema and a live database."""

    description: str
    type: DriftType
    table: str
    column: Optional[str] = None


class MigrateStatusResult(SchemaShiftBaseModel):
    """Applied and pending migrations plus detected drift."""

    applied: List[AppliedMigration] = Field(default_factory=list)
    pending: List[str] = Field(default_factory=list)
    drifted: List[str] = Field(default_factory=list)
    out_of_order: List[str] = Field(default_factory=list)
    code_changes: List[CodeChange] = Field(default_factory=list)
    drift: List[DriftEntry] = Field(default_factory=list)


class BaselineResult(SchemaShiftBaseModel):
    """Migrations recorded as applied without executing their SQL."""

    recorded: List[str] = Field(default_factory=list)
    already_applied: List[str] = Field(default_factory=list)


class ResetResult(SchemaShiftBaseModel):
    """Tables dropped and migrations re-applied by a reset."""

    dropped_tables: List[str] = Field(default_factory=list)
    applied: List[str] = Field(default_factory=list)
    results: List[ApplyResult] = Field(default_factory=list)
