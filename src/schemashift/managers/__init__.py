"""schemashift managers."""

from schemashift.managers.differ import compute_diff
from schemashift.managers.sql_generator import generate_migration_sql, generate_rollback_sql
from schemashift.managers.runner import (
    MigrationRunner,
    MigrationError,
    MigrationQueryError,
    JournalError,
    compute_checksum,
    parse_migration_name,
)
from schemashift.managers.journal import (
    create_journal,
    add_journal_entry,
    read_journal,
    write_journal,
    next_migration_number,
    format_migration_name,
    detect_collisions,
)
from schemashift.managers.flows import (
    migrate_dev,
    migrate_deploy,
    push,
    migrate_status,
    detect_schema_drift,
    baseline,
    reset,
)

__all__ = [
    "compute_diff",
    "generate_migration_sql",
    "generate_rollback_sql",
    "MigrationRunner",
    "MigrationError",
    "MigrationQueryError",
    "JournalError",
    "compute_checksum",
    "parse_migration_name",
    "create_journal",
    "add_journal_entry",
    "read_journal",
    "write_journal",
    "next_migration_number",
    "format_migration_name",
    "detect_collisions",
    "migrate_dev",
    "migrate_deploy",
    "push",
    "migrate_status",
    "detect_schema_drift",
    "baseline",
    "reset",
]
