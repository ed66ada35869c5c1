"""Schema snapshot models.

A snapshot is the complete, versioned description of a database schema at
one point in time. Snapshots are immutable values: the differ and the SQL
generator only ever read them, and two snapshots holding the same tables and
enums compare equal no matter in which order the tables were added.
"""

import json
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import Field

from .base import FrozenModel


# Sentinel default lowered to the dialect's current-timestamp function
NOW = "now"

# Foreign key actions
ForeignKeyAction = Literal["CASCADE", "SET NULL", "RESTRICT", "NO ACTION"]

DefaultValue = Union[bool, int, float, str]


class ColumnSnapshot(FrozenModel):
    """A single column definition."""

    type: str = Field(description="Logical type name, e.g. text, integer, uuid")
    nullable: bool = Field(default=True, description="Whether column allows NULL values")
    primary: bool = Field(default=False, description="Whether this is part of the primary key")
    unique: bool = Field(default=False, description="Whether values must be unique")
    default: Optional[DefaultValue] = Field(
        default=None, description="Literal default, or the 'now' sentinel"
    )
    sensitive: Optional[bool] = Field(
        default=None, description="Visibility annotation, not structural"
    )
    hidden: Optional[bool] = Field(
        default=None, description="Visibility annotation, not structural"
    )

    @property
    def default_is_now(self) -> bool:
        return self.default == NOW


class IndexSnapshot(FrozenModel):
    """An index over one or more columns."""

    columns: List[str] = Field(description="Indexed columns, in order")
    name: Optional[str] = Field(default=None, description="Index name")
    unique: bool = Field(default=False, description="Whether this is a unique index")

    def resolved_name(self, table: str) -> str:
        """Index name, derived from table and columns when not set explicitly."""
        if self.name:
            return self.name
        return f"idx_{table}_{'_'.join(self.columns)}"


class ForeignKeySnapshot(FrozenModel):
    """A foreign key from one column to a column of another table."""

    column: str = Field(description="Referencing column")
    target_table: str = Field(description="Referenced table name")
    target_column: str = Field(default="id", description="Referenced column name")
    on_delete: Optional[ForeignKeyAction] = Field(
        default=None, description="Action on delete of referenced row"
    )

    def constraint_name(self, table: str) -> str:
        return f"{table}_{self.column}_fkey"


class TableSnapshot(FrozenModel):
    """Columns, indexes and foreign keys of one table."""

    columns: Dict[str, ColumnSnapshot] = Field(default_factory=dict)
    indexes: List[IndexSnapshot] = Field(default_factory=list)
    foreign_keys: List[ForeignKeySnapshot] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Dialect or feature extensions, not interpreted by the differ",
    )

    @property
    def primary_key(self) -> List[str]:
        return [name for name, col in self.columns.items() if col.primary]

    def get_column(self, column_name: str) -> Optional[ColumnSnapshot]:
        return self.columns.get(column_name)


class SchemaSnapshot(FrozenModel):
    """Represents a complete schema snapshot.

    Maps table names to their definitions and enum names to their ordered
    values. Keys are case-preserving and compared exactly.
    """

    version: int = Field(default=1, description="Snapshot format version")
    tables: Dict[str, TableSnapshot] = Field(default_factory=dict)
    enums: Dict[str, List[str]] = Field(default_factory=dict)

    @classmethod
    def empty(cls) -> "SchemaSnapshot":
        """Snapshot of a database with no tables and no enums."""
        return cls()

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["SchemaSnapshot"]:
        """Create SchemaSnapshot from dict representation.

        Args:
            data: Dictionary with version, tables and enums keys

        Returns:
            SchemaSnapshot instance, or None if data is None
        """
        if data is None:
            return None
        return cls.model_validate(data)

    @classmethod
    def from_json(cls, text: str) -> "SchemaSnapshot":
        """Parse the JSON snapshot file format."""
        return cls.model_validate(json.loads(text))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict representation for JSON serialization."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        """Serialize to the JSON snapshot file format."""
        return json.dumps(self.to_dict(), indent=2) + "\n"

    def get_table(self, table_name: str) -> Optional[TableSnapshot]:
        return self.tables.get(table_name)

    def has_table(self, table_name: str) -> bool:
        """Check if a table exists in the snapshot.

        Args:
            table_name: Name of the table

        Returns:
            True if table exists
        """
        return table_name in self.tables

    def list_tables(self) -> List[str]:
        """Get list of all table names in the snapshot."""
        return list(self.tables.keys())

    def with_table(self, table_name: str, table: TableSnapshot) -> "SchemaSnapshot":
        """Return a copy of this snapshot with a table added or replaced."""
        tables = dict(self.tables)
        tables[table_name] = table
        return self.model_copy(update={"tables": tables})

    def without_table(self, table_name: str) -> "SchemaSnapshot":
        """Return a copy of this snapshot without the given table."""
        tables = {name: t for name, t in self.tables.items() if name != table_name}
        return self.model_copy(update={"tables": tables})
