"""SQLite connection management for schemashift."""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional, Sequence, Union

from schemashift.models import QueryResult

logger = logging.getLogger(__name__)

MEMORY_DATABASE = ":memory:"

_ROW_RETURNING_PREFIXES = ("SELECT", "PRAGMA", "WITH", "EXPLAIN")


def _returns_rows(sql: str) -> bool:
    text = sql.strip()
    # A migration script may start with a PRAGMA and still hold more statements
    if ";" in text.rstrip(";"):
        return False
    return text.upper().startswith(_ROW_RETURNING_PREFIXES)


class DatabaseConnection:
    """Manages a SQLite database connection with WAL mode.

    ``query`` matches the query function the migration engine expects, so
    ``connection.query`` can be passed wherever a ``query_fn`` is needed.
    """

    def __init__(self, path: Union[str, Path] = MEMORY_DATABASE):
        """Initialize database connection.

        Args:
            path: Path to SQLite database file, or ":memory:"
        """
        self.path = path if str(path) == MEMORY_DATABASE else Path(path)
        self._conn: Optional[sqlite3.Connection] = None
        self._connect()

    @property
    def is_memory(self) -> bool:
        return str(self.path) == MEMORY_DATABASE

    def _connect(self) -> None:
        """Establish database connection and configure WAL mode."""
        if not self.is_memory:
            self.path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(str(self.path))

        try:
            if not self.is_memory:
                self._conn.execute("PRAGMA journal_mode = WAL")
                self._conn.execute("PRAGMA synchronous = NORMAL")
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.commit()
        except sqlite3.OperationalError:
            self._conn.close()
            raise

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> sqlite3.Cursor:
        """Execute a single SQL statement.

        Args:
            sql: SQL statement to execute
            params: Optional parameters for parameterized queries

        Returns:
            Cursor with results
        """
        if not self._conn:
            raise RuntimeError("Connection is closed")

        if params:
            return self._conn.execute(sql, tuple(params))
        return self._conn.execute(sql)

    @contextmanager
    def transaction(self):
        """Context manager for database transactions.

        Automatically commits on success or rolls back on exception.
        """
        if not self._conn:
            raise RuntimeError("Connection is closed")

        try:
            yield self
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> QueryResult:
        """Run SQL and return its rows.

        Parameterized statements and queries run as one statement. Anything
        else may hold several statements (a migration file) and runs as a
        script. Changes are committed before returning. On failure they are
        rolled back and foreign key enforcement is switched back on.
        """
        if not self._conn:
            raise RuntimeError("Connection is closed")

        try:
            with self.transaction():
                if params or _returns_rows(sql):
                    cursor = self.execute(sql, params)
                else:
                    cursor = self._conn.executescript(sql)
                rows = [dict(row) for row in cursor.fetchall()] if cursor.description else []
        except sqlite3.Error:
            self._conn.execute("PRAGMA foreign_keys = ON")
            raise

        row_count = len(rows) if rows else max(cursor.rowcount, 0)
        return QueryResult(rows=rows, row_count=row_count)

    def commit(self) -> None:
        """Commit the current transaction."""
        if self._conn:
            self._conn.commit()

    def rollback(self) -> None:
        """Rollback the current transaction."""
        if self._conn:
            self._conn.rollback()

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager."""
        self.close()
        return False
