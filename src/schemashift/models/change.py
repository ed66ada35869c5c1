"""Schema change models for schemashift."""

from enum import Enum
from typing import List, Optional

from pydantic import Field

from .base import FrozenModel
from .schema_snapshot import DefaultValue, ForeignKeySnapshot


class ChangeType(str, Enum):
    """Types of schema changes."""

    # Table changes
    TABLE_ADDED = "table_added"
    TABLE_REMOVED = "table_removed"

    # Column changes
    COLUMN_ADDED = "column_added"
    COLUMN_REMOVED = "column_removed"
    COLUMN_RENAMED = "column_renamed"
    COLUMN_TYPE_CHANGED = "column_type_changed"

    # Index changes
    INDEX_ADDED = "index_added"
    INDEX_REMOVED = "index_removed"

    # Foreign key changes
    FOREIGN_KEY_ADDED = "foreign_key_added"
    FOREIGN_KEY_REMOVED = "foreign_key_removed"

    # Enum changes
    ENUM_ADDED = "enum_added"
    ENUM_CHANGED = "enum_changed"
    ENUM_REMOVED = "enum_removed"


# Changes that lose data when applied
DESTRUCTIVE_CHANGE_TYPES = frozenset(
    {
        ChangeType.TABLE_REMOVED.value,
        ChangeType.COLUMN_REMOVED.value,
        ChangeType.ENUM_REMOVED.value,
    }
)


class SchemaChange(FrozenModel):
    """One structural difference between two snapshots.

    Only the fields relevant to ``type`` are set. Column alterations record
    the old and new value of each attribute that changed; attributes left
    untouched stay None (``default_changed`` disambiguates a default that
    was removed).
    """

    type: ChangeType = Field(description="Type of change")
    table: Optional[str] = Field(default=None, description="Affected table")
    column: Optional[str] = Field(default=None, description="Affected column")

    # column_renamed
    old_column: Optional[str] = None
    new_column: Optional[str] = None
    confidence: Optional[float] = Field(
        default=None, description="Similarity score of a suggested rename, 0..1"
    )

    # column_type_changed
    old_type: Optional[str] = None
    new_type: Optional[str] = None
    old_nullable: Optional[bool] = None
    new_nullable: Optional[bool] = None
    old_default: Optional[DefaultValue] = None
    new_default: Optional[DefaultValue] = None
    default_changed: bool = False

    # index_added / index_removed
    index_name: Optional[str] = None
    columns: Optional[List[str]] = None
    unique: Optional[bool] = None

    # foreign_key_added / foreign_key_removed
    foreign_key: Optional[ForeignKeySnapshot] = None

    # enum_added / enum_changed / enum_removed
    enum_name: Optional[str] = None
    added_values: Optional[List[str]] = None
    removed_values: Optional[List[str]] = None

    @property
    def is_destructive(self) -> bool:
        return self.type in DESTRUCTIVE_CHANGE_TYPES

    @property
    def type_changed(self) -> bool:
        return self.new_type is not None and self.new_type != self.old_type

    @property
    def nullable_changed(self) -> bool:
        return self.new_nullable is not None and self.new_nullable != self.old_nullable

    @property
    def description(self) -> str:
        """Human-readable summary of the change."""
        t = self.type
        if t == ChangeType.TABLE_ADDED:
            return f"Added table '{self.table}'"
        if t == ChangeType.TABLE_REMOVED:
            return f"Removed table '{self.table}'"
        if t == ChangeType.COLUMN_ADDED:
            return f"Added column '{self.column}' to table '{self.table}'"
        if t == ChangeType.COLUMN_REMOVED:
            return f"Removed column '{self.column}' from table '{self.table}'"
        if t == ChangeType.COLUMN_RENAMED:
            return (
                f"Renamed column '{self.old_column}' to '{self.new_column}' in table "
                f"'{self.table}' (confidence {self.confidence:.2f})"
            )
        if t == ChangeType.COLUMN_TYPE_CHANGED:
            parts = []
            if self.type_changed:
                parts.append(f"type {self.old_type} -> {self.new_type}")
            if self.nullable_changed:
                parts.append("nullable" if self.new_nullable else "not null")
            if self.default_changed:
                parts.append("default")
            detail = f" ({', '.join(parts)})" if parts else ""
            return f"Altered column '{self.column}' in table '{self.table}'{detail}"
        if t == ChangeType.INDEX_ADDED:
            return f"Added index '{self.index_name}' on table '{self.table}'"
        if t == ChangeType.INDEX_REMOVED:
            return f"Removed index '{self.index_name}' from table '{self.table}'"
        if t == ChangeType.FOREIGN_KEY_ADDED:
            fk = self.foreign_key
            return (
                f"Added foreign key '{self.table}.{fk.column}' -> "
                f"'{fk.target_table}.{fk.target_column}'"
            )
        if t == ChangeType.FOREIGN_KEY_REMOVED:
            return f"Removed foreign key on '{self.table}.{self.foreign_key.column}'"
        if t == ChangeType.ENUM_ADDED:
            return f"Added enum type '{self.enum_name}'"
        if t == ChangeType.ENUM_CHANGED:
            return f"Altered enum type '{self.enum_name}'"
        if t == ChangeType.ENUM_REMOVED:
            return f"Removed enum type '{self.enum_name}'"
        return str(t)


class DiffResult(FrozenModel):
    """Ordered list of changes between two snapshots."""

    changes: List[SchemaChange] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.changes

    @property
    def destructive_changes(self) -> List[SchemaChange]:
        return [c for c in self.changes if c.is_destructive]

    @property
    def has_destructive_changes(self) -> bool:
        return bool(self.destructive_changes)

    @property
    def renames(self) -> List[SchemaChange]:
        return [c for c in self.changes if c.type == ChangeType.COLUMN_RENAMED]

    def tables_affected(self) -> List[str]:
        """Table names touched by the changes, in first-seen order."""
        seen: List[str] = []
        for change in self.changes:
            if change.table and change.table not in seen:
                seen.append(change.table)
        return seen
