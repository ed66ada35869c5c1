"""Migration runner: history table, applying migrations, checksum drift."""

import hashlib
import logging
import re
from datetime import datetime
from typing import Iterable, List, Optional

from schemashift.core.dialect import (
    DEFAULT_HISTORY_TABLE,
    Dialect,
    default_dialect,
    quote_identifier,
)
from schemashift.models import AppliedMigration, ApplyResult, MigrationFile, QueryFn

logger = logging.getLogger(__name__)

MIGRATION_NAME_PATTERN = re.compile(r"^(\d+)_(.+)\.sql$")


class MigrationError(Exception):
    """Exception raised when a migration cannot be run or tracked."""

    pass


class MigrationQueryError(MigrationError):
    """A query issued while running a migration failed.

    The driver's exception is available as ``__cause__``.
    """

    def __init__(self, message: str, sql: Optional[str] = None):
        super().__init__(message)
        self.sql = sql


class JournalError(MigrationError):
    """Exception raised when the migration journal cannot be read."""

    pass


def compute_checksum(sql: str) -> str:
    """SHA-256 hex digest of a migration's SQL text."""
    return hashlib.sha256(sql.encode("utf-8")).hexdigest()


def parse_migration_name(filename: str) -> Optional[MigrationFile]:
    """Parse ``NNNN_description.sql`` into a MigrationFile without SQL.

    Returns:
        MigrationFile with the sequence number as ``timestamp``, or None if
        the name does not follow the migration file pattern
    """
    match = MIGRATION_NAME_PATTERN.match(filename)
    if not match:
        return None
    return MigrationFile(name=filename, sql="", timestamp=int(match.group(1)))


def _parse_timestamp(value) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


class MigrationRunner:
    """Applies migrations and keeps the history table."""

    def __init__(
        self,
        dialect: Optional[Dialect] = None,
        history_table: str = DEFAULT_HISTORY_TABLE,
    ):
        """Initialize the runner.

        Args:
            dialect: Dialect used for DDL and parameter placeholders
                (Postgres when omitted)
            history_table: Name of the migration history table
        """
        self.dialect = dialect or default_dialect()
        self.history_table = history_table

    @property
    def record_sql(self) -> str:
        p1 = self.dialect.placeholder(1)
        p2 = self.dialect.placeholder(2)
        return (
            f'INSERT INTO {quote_identifier(self.history_table)} ("name", "checksum") '
            f"VALUES ({p1}, {p2})"
        )

    def create_history_table(self, query_fn: QueryFn) -> None:
        """Create the history table if it does not exist."""
        sql = self.dialect.history_table_ddl(self.history_table)
        try:
            query_fn(sql, [])
        except Exception as e:
            logger.error(f"Failed to create migration history table: {e}")
            raise MigrationQueryError(
                "Failed to create migration history table", sql=sql
            ) from e

    def history_table_exists(self, query_fn: QueryFn) -> bool:
        return self.dialect.history_table_exists(query_fn, self.history_table)

    def get_applied(self, query_fn: QueryFn) -> List[AppliedMigration]:
        """Applied migrations in the order they were recorded."""
        sql = (
            f'SELECT "name", "checksum", "applied_at" '
            f'FROM {quote_identifier(self.history_table)} ORDER BY "id" ASC'
        )
        try:
            result = query_fn(sql, [])
        except Exception as e:
            raise MigrationQueryError(
                "Failed to retrieve applied migrations", sql=sql
            ) from e

        return [
            AppliedMigration(
                name=row["name"],
                checksum=row["checksum"],
                applied_at=_parse_timestamp(row["applied_at"]),
            )
            for row in result.rows
        ]

    def get_pending(
        self, files: Iterable[MigrationFile], applied: Iterable[AppliedMigration]
    ) -> List[MigrationFile]:
        """Files without a history row, by sequence number."""
        applied_names = {a.name for a in applied}
        pending = [f for f in files if f.name not in applied_names]
        return sorted(pending, key=lambda f: f.timestamp)

    def apply(
        self, query_fn: QueryFn, sql: str, name: str, dry_run: bool = False
    ) -> ApplyResult:
        """Execute a migration's SQL, then record it in the history table.

        Args:
            query_fn: Executes SQL against the target database
            sql: The migration SQL
            name: Migration file name recorded in the history table
            dry_run: If True, issue no queries and only report the statements

        Returns:
            ApplyResult with the checksum and the executed statements

        Raises:
            MigrationQueryError: If executing or recording fails. The
                migration is then not recorded.
        """
        checksum = compute_checksum(sql)
        record_sql = self.record_sql
        statements = [sql, record_sql]

        if dry_run:
            return ApplyResult(
                name=name, sql=sql, checksum=checksum, dry_run=True, statements=statements
            )

        try:
            if sql.strip():
                logger.debug(f"Executing migration {name}")
                query_fn(sql, [])
            query_fn(record_sql, [name, checksum])
        except Exception as e:
            logger.error(f"Failed to apply migration {name}: {e}")
            raise MigrationQueryError(f"Failed to apply migration: {name}", sql=sql) from e

        logger.info(f"Applied migration {name}")
        return ApplyResult(
            name=name,
            sql=sql,
            checksum=checksum,
            dry_run=False,
            statements=statements,
            applied_at=datetime.now(),
        )

    def record(self, query_fn: QueryFn, name: str, checksum: str) -> None:
        """Insert a history row without executing anything."""
        try:
            query_fn(self.record_sql, [name, checksum])
        except Exception as e:
            raise MigrationQueryError(
                f"Failed to record migration: {name}", sql=self.record_sql
            ) from e
        logger.info(f"Recorded migration {name} as applied")

    def detect_drift(
        self, files: Iterable[MigrationFile], applied: Iterable[AppliedMigration]
    ) -> List[str]:
        """Applied migrations whose file no longer matches the recorded checksum."""
        recorded = {a.name: a.checksum for a in applied}
        drifted = []
        for file in files:
            checksum = recorded.get(file.name)
            if checksum and checksum != compute_checksum(file.sql):
                logger.warning(f"Migration {file.name} changed after it was applied")
                drifted.append(file.name)
        return drifted

    def detect_out_of_order(
        self, files: Iterable[MigrationFile], applied: List[AppliedMigration]
    ) -> List[str]:
        """Pending files numbered below the last applied migration."""
        if not applied:
            return []
        files = list(files)
        applied_names = {a.name for a in applied}
        last_name = applied[-1].name
        last_file = next((f for f in files if f.name == last_name), None)
        if last_file is None:
            return []
        return [
            f.name
            for f in files
            if f.name not in applied_names and f.timestamp < last_file.timestamp
        ]
