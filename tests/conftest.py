"""Pytest configuration and shared fixtures."""

import pytest

from schemashift.core.connection import DatabaseConnection
from schemashift.models import (
    ColumnSnapshot,
    ForeignKeySnapshot,
    IndexSnapshot,
    QueryResult,
    SchemaSnapshot,
    TableSnapshot,
)


class RecordingQuery:
    """Query function that records every call instead of touching a database.

    Wraps another query function when given one, so calls both run and get
    recorded.
    """

    def __init__(self, target=None, rows=None):
        self.target = target
        self.rows = rows or []
        self.calls = []

    def __call__(self, sql, params):
        self.calls.append((sql, list(params)))
        if self.target is not None:
            return self.target(sql, params)
        return QueryResult(rows=self.rows, row_count=len(self.rows))

    @property
    def statements(self):
        return [sql for sql, _ in self.calls]

    def writes(self):
        """Calls that are not plain reads."""
        return [
            sql
            for sql in self.statements
            if not sql.lstrip().upper().startswith(("SELECT", "PRAGMA TABLE_INFO", "PRAGMA INDEX", "PRAGMA FOREIGN_KEY_LIST"))
        ]


class MemoryFiles:
    """In-memory stand-in for the engine's read_file/write_file callables."""

    def __init__(self, files=None):
        self.files = dict(files or {})
        self.writes = []

    def read(self, path):
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    def write(self, path, content):
        self.writes.append(path)
        self.files[path] = content


@pytest.fixture
def db():
    """In-memory SQLite database."""
    connection = DatabaseConnection(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def memory_files():
    return MemoryFiles()


def make_snapshot(tables=None, enums=None):
    """Build a snapshot from plain dicts: {table: {column: type or dict}}."""
    built = {}
    for table_name, definition in (tables or {}).items():
        if isinstance(definition, TableSnapshot):
            built[table_name] = definition
            continue
        columns = {}
        for col_name, col in definition.items():
            if isinstance(col, str):
                columns[col_name] = ColumnSnapshot(type=col)
            else:
                columns[col_name] = ColumnSnapshot(**col)
        built[table_name] = TableSnapshot(columns=columns)
    return SchemaSnapshot(tables=built, enums=enums or {})


@pytest.fixture
def users_snapshot():
    """users(id uuid primary, email text unique, name text)."""
    return make_snapshot(
        {
            "users": {
                "id": {"type": "uuid", "primary": True, "nullable": False},
                "email": {"type": "text", "unique": True, "nullable": False},
                "name": "text",
            }
        }
    )


@pytest.fixture
def blog_snapshot():
    """users and posts, posts.author_id referencing users.id."""
    users = TableSnapshot(
        columns={
            "id": ColumnSnapshot(type="integer", primary=True, nullable=False),
            "email": ColumnSnapshot(type="text", nullable=False),
        },
        indexes=[IndexSnapshot(columns=["email"], unique=True)],
    )
    posts = TableSnapshot(
        columns={
            "id": ColumnSnapshot(type="integer", primary=True, nullable=False),
            "author_id": ColumnSnapshot(type="integer", nullable=False),
            "title": ColumnSnapshot(type="text", nullable=False),
        },
        foreign_keys=[
            ForeignKeySnapshot(column="author_id", target_table="users", on_delete="CASCADE")
        ],
    )
    return SchemaSnapshot(tables={"users": users, "posts": posts})


@pytest.fixture(name="make_snapshot")
def make_snapshot_fixture():
    return make_snapshot


@pytest.fixture
def recording_query():
    """Factory for RecordingQuery instances."""
    return RecordingQuery
