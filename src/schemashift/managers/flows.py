"""Orchestration flows: dev, deploy, push, status, drift, baseline and reset.

Each flow composes the differ, SQL generator, runner and journal. None of
them diff or render SQL on their own; they decide which steps run and
whether anything is written.
"""

import logging
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Callable, List, Optional, Sequence

from schemashift.core.dialect import DEFAULT_HISTORY_TABLE, Dialect
from schemashift.managers.differ import compute_diff
from schemashift.managers.journal import (
    JOURNAL_FILENAME,
    add_journal_entry,
    create_journal,
    detect_collisions,
    format_migration_name,
    next_migration_number,
    read_journal,
    write_journal,
)
from schemashift.managers.runner import (
    MigrationError,
    MigrationQueryError,
    MigrationRunner,
    compute_checksum,
)
from schemashift.managers.sql_generator import generate_migration_sql
from schemashift.models import (
    BaselineResult,
    CodeChange,
    DeployFailure,
    DiffResult,
    DriftEntry,
    JournalEntry,
    MigrateDeployResult,
    MigrateDevResult,
    MigrateStatusResult,
    MigrationFile,
    MigrationPreview,
    PushResult,
    QueryFn,
    RenameSuggestion,
    ResetResult,
    SchemaSnapshot,
)
from schemashift.utils.naming import auto_migration_name, validate_migration_name

logger = logging.getLogger(__name__)

SNAPSHOT_FILENAME = "_snapshot.json"

ReadFile = Callable[[str], str]
WriteFile = Callable[[str, str], None]


def _join(directory: str, filename: str) -> str:
    return str(PurePosixPath(directory) / filename)


def _warn_about(diff: DiffResult) -> List[RenameSuggestion]:
    """Log destructive changes and inferred renames; return the renames."""
    for change in diff.destructive_changes:
        logger.warning(f"Destructive change: {change.description}")
    suggestions = [RenameSuggestion.from_change(c) for c in diff.renames]
    for suggestion in suggestions:
        logger.warning(
            f"Column '{suggestion.old_column}' in table '{suggestion.table}' looks renamed "
            f"to '{suggestion.new_column}' (confidence {suggestion.confidence:.2f}); "
            f"review the generated SQL"
        )
    return suggestions


def _sorted_files(files: Sequence[MigrationFile]) -> List[MigrationFile]:
    return sorted(files, key=lambda f: f.timestamp)


def migrate_dev(
    query_fn: QueryFn,
    current_snapshot: SchemaSnapshot,
    previous_snapshot: SchemaSnapshot,
    migration_name: Optional[str] = None,
    existing_files: Sequence[str] = (),
    migrations_dir: str = "migrations",
    write_file: Optional[WriteFile] = None,
    read_file: Optional[ReadFile] = None,
    dry_run: bool = False,
    dialect: Optional[Dialect] = None,
    history_table: str = DEFAULT_HISTORY_TABLE,
) -> MigrateDevResult:
    """Generate a migration from the schema diff, then write and apply it.

    Args:
        query_fn: Executes SQL against the development database
        current_snapshot: Schema as defined now
        previous_snapshot: Schema the database matches (the saved snapshot,
            or empty)
        migration_name: Description for the file name; derived from the
            changes when omitted
        existing_files: Migration file names already in ``migrations_dir``
        migrations_dir: Directory for the migration, journal and snapshot files
        write_file: Writes a text file; required unless ``dry_run``
        read_file: Reads a text file, raising FileNotFoundError if missing;
            used for the journal
        dry_run: If True, return the preview without writing or executing
        dialect: Target dialect
        history_table: Name of the migration history table

    Returns:
        MigrateDevResult. ``applied_at`` is None for dry runs and when there
        was nothing to migrate.

    Raises:
        InvalidNameError: If ``migration_name`` is not a valid description
        MigrationQueryError: If the generated SQL fails to execute
    """
    diff = compute_diff(previous_snapshot, current_snapshot)
    renames = _warn_about(diff)
    sql = generate_migration_sql(diff, current_snapshot, dialect, previous_snapshot)

    if diff.is_empty and not dry_run:
        logger.info("Schema unchanged, no migration generated")
        return MigrateDevResult(snapshot=current_snapshot)

    description = migration_name or auto_migration_name(diff.changes)
    validate_migration_name(description)
    filename = format_migration_name(next_migration_number(existing_files), description)

    journal_path = _join(migrations_dir, JOURNAL_FILENAME)
    journal = read_journal(read_file, journal_path) if read_file else create_journal()
    collisions = detect_collisions(journal, existing_files)
    checksum = compute_checksum(sql)

    result = MigrateDevResult(
        migration_file=filename,
        sql=sql,
        dry_run=dry_run,
        checksum=checksum,
        changes=diff.changes,
        collisions=collisions,
        rename_suggestions=renames,
        snapshot=current_snapshot,
    )
    if dry_run:
        return result

    if write_file is None:
        raise MigrationError("write_file is required unless dry_run is set")

    write_file(_join(migrations_dir, filename), sql)
    journal = add_journal_entry(
        journal,
        JournalEntry(
            name=filename,
            description=description,
            created_at=datetime.now(timezone.utc).isoformat(),
            checksum=checksum,
        ),
    )
    write_journal(write_file, journal_path, journal)
    write_file(_join(migrations_dir, SNAPSHOT_FILENAME), current_snapshot.to_json())
    logger.info(f"Generated migration {filename}")

    runner = MigrationRunner(dialect, history_table)
    runner.create_history_table(query_fn)
    applied = runner.apply(query_fn, sql, filename)

    return result.model_copy(update={"applied_at": applied.applied_at})


def migrate_deploy(
    query_fn: QueryFn,
    migration_files: Sequence[MigrationFile],
    dry_run: bool = False,
    dialect: Optional[Dialect] = None,
    history_table: str = DEFAULT_HISTORY_TABLE,
) -> MigrateDeployResult:
    """Apply every migration file not yet recorded in the history table.

    Files run in sequence order. The first failure stops the run: files
    applied before it stay applied and the failure is reported in
    ``error``. A dry run only reads the history and lists what would run.
    """
    runner = MigrationRunner(dialect, history_table)

    if dry_run:
        applied = runner.get_applied(query_fn) if runner.history_table_exists(query_fn) else []
    else:
        runner.create_history_table(query_fn)
        applied = runner.get_applied(query_fn)

    result = MigrateDeployResult(dry_run=dry_run)
    result.drifted = runner.detect_drift(migration_files, applied)
    applied_names = {a.name for a in applied}

    for file in _sorted_files(migration_files):
        if file.name in applied_names:
            result.already_applied.append(file.name)
            continue

        if dry_run:
            preview = runner.apply(query_fn, file.sql, file.name, dry_run=True)
            result.migrations.append(
                MigrationPreview(name=file.name, statements=preview.statements)
            )
            result.applied.append(file.name)
            continue

        try:
            runner.apply(query_fn, file.sql, file.name)
        except MigrationQueryError as e:
            cause = e.__cause__ or e
            logger.error(
                f"Deploy stopped at {file.name}; {len(result.applied)} migration(s) applied before it"
            )
            result.error = DeployFailure(name=file.name, message=f"{e}: {cause}")
            break
        result.applied.append(file.name)

    return result


def push(
    query_fn: QueryFn,
    current_snapshot: SchemaSnapshot,
    previous_snapshot: SchemaSnapshot,
    dialect: Optional[Dialect] = None,
) -> PushResult:
    """Apply the schema diff directly: no migration file, no history row."""
    diff = compute_diff(previous_snapshot, current_snapshot)
    if diff.is_empty:
        return PushResult()

    renames = _warn_about(diff)
    sql = generate_migration_sql(diff, current_snapshot, dialect, previous_snapshot)
    try:
        query_fn(sql, [])
    except Exception as e:
        logger.error(f"Failed to push schema changes: {e}")
        raise MigrationQueryError("Failed to push schema changes", sql=sql) from e

    tables = diff.tables_affected()
    logger.info(f"Pushed schema changes to {len(tables)} table(s)")
    return PushResult(
        sql=sql, tables_affected=tables, changes=diff.changes, rename_suggestions=renames
    )


def detect_schema_drift(
    expected: SchemaSnapshot,
    actual: SchemaSnapshot,
    dialect: Optional[Dialect] = None,
) -> List[DriftEntry]:
    """Compare the schema a database should have with what it has.

    Args:
        expected: Snapshot the database should match
        actual: Snapshot introspected from the database
        dialect: When given, expected column types are normalized to what
            introspection reports for them before comparing

    Returns:
        Extra and missing tables, extra and missing columns, and column
        type mismatches
    """
    drift: List[DriftEntry] = []

    for table_name in sorted(actual.tables):
        if table_name not in expected.tables:
            drift.append(
                DriftEntry(
                    description=f"Table '{table_name}' exists in database but not in schema",
                    type="extra_table",
                    table=table_name,
                )
            )

    for table_name in sorted(expected.tables):
        if table_name not in actual.tables:
            drift.append(
                DriftEntry(
                    description=f"Table '{table_name}' exists in schema but not in database",
                    type="missing_table",
                    table=table_name,
                )
            )

    for table_name in sorted(expected.tables):
        actual_table = actual.tables.get(table_name)
        if actual_table is None:
            continue
        expected_table = expected.tables[table_name]

        for col_name in actual_table.columns:
            if col_name not in expected_table.columns:
                drift.append(
                    DriftEntry(
                        description=(
                            f"Column '{col_name}' exists in database table '{table_name}' "
                            f"but not in schema"
                        ),
                        type="extra_column",
                        table=table_name,
                        column=col_name,
                    )
                )

        for col_name, expected_col in expected_table.columns.items():
            actual_col = actual_table.columns.get(col_name)
            if actual_col is None:
                drift.append(
                    DriftEntry(
                        description=(
                            f"Column '{col_name}' exists in schema table '{table_name}' "
                            f"but not in database"
                        ),
                        type="missing_column",
                        table=table_name,
                        column=col_name,
                    )
                )
                continue

            expected_type = expected_col.type
            if dialect is not None:
                expected_type = dialect.canonical_type(expected_type, expected.enums)
            if expected_type != actual_col.type:
                drift.append(
                    DriftEntry(
                        description=(
                            f"Column '{col_name}' in table '{table_name}' has type "
                            f"'{actual_col.type}' in database but '{expected_type}' in schema"
                        ),
                        type="column_type_mismatch",
                        table=table_name,
                        column=col_name,
                    )
                )

    return drift


def migrate_status(
    query_fn: QueryFn,
    migration_files: Sequence[MigrationFile],
    current_snapshot: Optional[SchemaSnapshot] = None,
    saved_snapshot: Optional[SchemaSnapshot] = None,
    dialect: Optional[Dialect] = None,
    detect_drift: bool = True,
    history_table: str = DEFAULT_HISTORY_TABLE,
) -> MigrateStatusResult:
    """Report applied and pending migrations, and what changed since.

    ``code_changes`` lists changes between the saved and the current
    snapshot that no migration captures yet. With a dialect and
    ``detect_drift``, the live database is introspected and compared with
    the saved snapshot (or the current one when nothing was saved).
    Nothing is written, not even the history table.
    """
    runner = MigrationRunner(dialect, history_table)
    applied = runner.get_applied(query_fn) if runner.history_table_exists(query_fn) else []

    result = MigrateStatusResult(
        applied=applied,
        pending=[f.name for f in runner.get_pending(migration_files, applied)],
        drifted=runner.detect_drift(migration_files, applied),
        out_of_order=runner.detect_out_of_order(migration_files, applied),
    )

    if saved_snapshot is not None and current_snapshot is not None:
        diff = compute_diff(saved_snapshot, current_snapshot)
        result.code_changes = [
            CodeChange(
                description=change.description,
                type=change.type,
                table=change.table,
                column=change.column or change.new_column,
            )
            for change in diff.changes
        ]

    expected = saved_snapshot or current_snapshot
    if dialect is not None and detect_drift and expected is not None:
        actual = dialect.introspect(query_fn, exclude=[history_table])
        result.drift = detect_schema_drift(expected, actual, dialect)

    return result


def baseline(
    query_fn: QueryFn,
    migration_files: Sequence[MigrationFile],
    dialect: Optional[Dialect] = None,
    history_table: str = DEFAULT_HISTORY_TABLE,
) -> BaselineResult:
    """Mark every migration file as applied without running its SQL.

    Used to adopt migrations for a database whose tables already exist.
    """
    runner = MigrationRunner(dialect, history_table)
    runner.create_history_table(query_fn)
    applied_names = {a.name for a in runner.get_applied(query_fn)}

    result = BaselineResult()
    for file in _sorted_files(migration_files):
        if file.name in applied_names:
            result.already_applied.append(file.name)
            continue
        runner.record(query_fn, file.name, compute_checksum(file.sql))
        result.recorded.append(file.name)

    logger.info(f"Baselined {len(result.recorded)} migration(s)")
    return result


def reset(
    query_fn: QueryFn,
    migration_files: Sequence[MigrationFile],
    dialect: Dialect,
    history_table: str = DEFAULT_HISTORY_TABLE,
) -> ResetResult:
    """Drop every user table and re-run all migrations from scratch.

    The history table and, where the dialect has them, enum types are
    dropped too.

    Raises:
        MigrationQueryError: If a drop or a migration fails
    """
    runner = MigrationRunner(dialect, history_table)
    tables = dialect.list_user_tables(query_fn, exclude=[history_table])

    statements = []
    disable = dialect.disable_constraints_statement()
    if disable:
        statements.append(disable)
    statements.extend(dialect.drop_statement(table) for table in tables)
    statements.append(dialect.drop_statement(history_table))
    for type_name in dialect.list_user_types(query_fn):
        statements.append(dialect.drop_type_statement(type_name))
    enable = dialect.enable_constraints_statement()
    if enable:
        statements.append(enable)

    for sql in statements:
        logger.debug(f"Reset: {sql}")
        try:
            query_fn(sql, [])
        except Exception as e:
            logger.error(f"Reset failed: {e}")
            raise MigrationQueryError("Failed to drop database objects", sql=sql) from e
    logger.info(f"Dropped {len(tables)} table(s)")

    runner.create_history_table(query_fn)
    result = ResetResult(dropped_tables=tables)
    for file in _sorted_files(migration_files):
        applied = runner.apply(query_fn, file.sql, file.name)
        result.results.append(applied)
        result.applied.append(file.name)

    return result
