"""Migration file and history models for schemashift."""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import Field, field_serializer

from .base import FrozenModel, SchemaShiftBaseModel


class QueryResult(SchemaShiftBaseModel):
    """Rows returned by the injected query function."""

    rows: List[Dict[str, Any]] = Field(default_factory=list)
    row_count: int = 0


# Executes one SQL text with positional parameters against the target database
QueryFn = Callable[[str, Sequence[Any]], QueryResult]


class AppliedMigration(FrozenModel):
    """A row of the migration history table."""

    name: str = Field(description="Migration file name")
    checksum: str = Field(description="SHA-256 hex digest of the migration SQL")
    applied_at: datetime = Field(description="When the migration was recorded")

    @field_serializer("applied_at")
    def serialize_datetime(self, dt: datetime, _info: Any) -> str:
        """Serialize datetime to ISO format."""
        return dt.isoformat()


class MigrationFile(FrozenModel):
    """A migration file, ``NNNN_description.sql``."""

    name: str = Field(description="File name")
    sql: str = Field(description="Full SQL text")
    timestamp: int = Field(description="Sequence number parsed from the name")


class ApplyResult(FrozenModel):
    """Result of applying (or dry-running) one migration."""

    name: str
    sql: str
    checksum: str
    dry_run: bool = False
    statements: List[str] = Field(
        default_factory=list,
        description="Statements that were (or would be) executed, in order",
    )
    applied_at: Optional[datetime] = None
