"""Render schema changes into ordered, dialect-specific DDL."""

import logging
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Set, Union

from schemashift.core.dialect import Dialect, default_dialect, quote_identifier
from schemashift.models import (
    ChangeType,
    ColumnSnapshot,
    DiffResult,
    ForeignKeySnapshot,
    IndexSnapshot,
    SchemaChange,
    SchemaSnapshot,
    TableSnapshot,
)

logger = logging.getLogger(__name__)

STATEMENT_SEPARATOR = "\n\n"

# Execution phases
PHASE_ENUMS = 0
PHASE_CREATE_TABLES = 1
PHASE_ALTER = 2
PHASE_REMOVE = 3

# Ranks inside the removal phase
_DROP_INDEX = 0
_DROP_FOREIGN_KEY = 1
_DROP_COLUMN = 2
_DROP_TABLE = 3
_DROP_ENUM = 4

# Prefix of the temporary table used while rebuilding a table
REBUILD_PREFIX = "__new_"

Changes = Union[DiffResult, Sequence[SchemaChange]]


class Statement(NamedTuple):
    """One DDL statement tagged with where it runs."""

    phase: int
    rank: int
    sql: str


def _kind(change: SchemaChange) -> str:
    t = change.type
    return t.value if isinstance(t, ChangeType) else t


def _as_list(changes: Changes) -> List[SchemaChange]:
    if isinstance(changes, DiffResult):
        return list(changes.changes)
    return list(changes)


def dependency_order(names: Iterable[str], schema: Optional[SchemaSnapshot]) -> List[str]:
    """Order tables so that every table comes after the tables it references.

    Only foreign keys between tables in ``names`` count. Ties are broken by
    name; tables caught in a reference cycle keep name order at the end.
    """
    names = sorted(set(names))
    members = set(names)
    pending = list(names)
    ordered: List[str] = []
    placed: Set[str] = set()

    while pending:
        progressed = False
        for name in list(pending):
            table = schema.tables.get(name) if schema else None
            deps = {fk.target_table for fk in table.foreign_keys} if table else set()
            deps = (deps & members) - {name}
            if deps <= placed:
                ordered.append(name)
                placed.add(name)
                pending.remove(name)
                progressed = True
        if not progressed:
            ordered.extend(pending)
            break

    return ordered


# ---------------------------------------------------------------------------
# DDL fragments
# ---------------------------------------------------------------------------


def column_definition(
    name: str,
    column: ColumnSnapshot,
    dialect: Dialect,
    enums: Optional[Dict[str, List[str]]] = None,
) -> str:
    """``"name" TYPE [NOT NULL] [UNIQUE] [DEFAULT ...] [CHECK(...)]``."""
    enums = enums or {}
    parts = [quote_identifier(name), dialect.column_type(column.type, enums)]
    if not column.nullable or column.primary:
        parts.append("NOT NULL")
    if column.unique:
        parts.append("UNIQUE")
    if column.default is not None:
        parts.append(f"DEFAULT {dialect.default_sql(column.default)}")
    if column.type in enums and not dialect.supports_enum_types:
        check = dialect.enum_check(name, enums[column.type])
        if check:
            parts.append(check)
    return " ".join(parts)


def foreign_key_clause(fk: ForeignKeySnapshot) -> str:
    clause = (
        f"FOREIGN KEY ({quote_identifier(fk.column)}) "
        f"REFERENCES {quote_identifier(fk.target_table)} ({quote_identifier(fk.target_column)})"
    )
    if fk.on_delete:
        clause += f" ON DELETE {fk.on_delete}"
    return clause


def create_table_sql(
    name: str,
    table: TableSnapshot,
    dialect: Dialect,
    enums: Optional[Dict[str, List[str]]] = None,
    constraint_table: Optional[str] = None,
) -> str:
    """Full CREATE TABLE statement with inline columns, primary key and foreign keys.

    Args:
        name: Table to create
        table: Table definition
        dialect: Target dialect
        enums: Enum definitions of the schema the table belongs to
        constraint_table: Table name used for constraint names, when it
            differs from ``name`` (temporary tables during a rebuild)
    """
    constraint_table = constraint_table or name
    lines = [
        f"  {column_definition(col_name, col, dialect, enums)}"
        for col_name, col in table.columns.items()
    ]
    if table.primary_key:
        pk_cols = ", ".join(quote_identifier(c) for c in table.primary_key)
        lines.append(f"  PRIMARY KEY ({pk_cols})")
    for fk in table.foreign_keys:
        constraint = quote_identifier(fk.constraint_name(constraint_table))
        lines.append(f"  CONSTRAINT {constraint} {foreign_key_clause(fk)}")
    body = ",\n".join(lines)
    return f"CREATE TABLE {quote_identifier(name)} (\n{body}\n);"


def create_index_sql(table: str, index: IndexSnapshot) -> str:
    unique = "UNIQUE " if index.unique else ""
    cols = ", ".join(quote_identifier(c) for c in index.columns)
    return (
        f"CREATE {unique}INDEX {quote_identifier(index.resolved_name(table))} "
        f"ON {quote_identifier(table)} ({cols});"
    )


def drop_index_sql(index_name: str) -> str:
    return f"DROP INDEX {quote_identifier(index_name)};"


def _alter_table(table: str, action: str) -> str:
    return f"ALTER TABLE {quote_identifier(table)} {action};"


# ---------------------------------------------------------------------------
# Generation context
# ---------------------------------------------------------------------------


class _Context:
    """What the builders need to know about the whole change set."""

    def __init__(
        self,
        changes: List[SchemaChange],
        schema: SchemaSnapshot,
        dialect: Dialect,
        previous: Optional[SchemaSnapshot],
    ):
        self.schema = schema
        self.dialect = dialect
        self.previous = previous
        self.enums = schema.enums

        added_tables = [c.table for c in changes if _kind(c) == ChangeType.TABLE_ADDED.value]
        removed_tables = [c.table for c in changes if _kind(c) == ChangeType.TABLE_REMOVED.value]
        self.create_rank = {
            name: i for i, name in enumerate(dependency_order(added_tables, schema))
        }
        drop_order = list(reversed(dependency_order(removed_tables, previous)))
        self.drop_rank = {name: i for i, name in enumerate(drop_order)}

        self.added_columns: Dict[str, Set[str]] = {}
        self.renamed_columns: Dict[str, Dict[str, str]] = {}
        for change in changes:
            kind = _kind(change)
            if kind == ChangeType.COLUMN_ADDED.value:
                self.added_columns.setdefault(change.table, set()).add(change.column)
            elif kind == ChangeType.COLUMN_RENAMED.value:
                self.renamed_columns.setdefault(change.table, {})[change.new_column] = (
                    change.old_column
                )

        self.rebuild_tables: Set[str] = set()
        if not dialect.supports_alter_column:
            self.rebuild_tables = self._tables_to_rebuild(changes, set(added_tables))
        self.rebuilt: Set[str] = set()

    def _tables_to_rebuild(self, changes: List[SchemaChange], added_tables: Set[str]) -> Set[str]:
        tables = set()
        changed_enums = set()
        for change in changes:
            kind = _kind(change)
            if kind in (
                ChangeType.COLUMN_TYPE_CHANGED.value,
                ChangeType.FOREIGN_KEY_ADDED.value,
                ChangeType.FOREIGN_KEY_REMOVED.value,
            ):
                tables.add(change.table)
            elif kind == ChangeType.ENUM_CHANGED.value:
                changed_enums.add(change.enum_name)
            elif kind == ChangeType.COLUMN_ADDED.value:
                # ADD COLUMN refuses constraints and non-constant defaults
                column = self._column(self.schema, change.table, change.column)
                if column and (column.unique or column.primary or column.default_is_now):
                    tables.add(change.table)
            elif kind == ChangeType.COLUMN_REMOVED.value:
                # DROP COLUMN refuses key columns
                column = self._column(self.previous, change.table, change.column)
                if column and (column.unique or column.primary):
                    tables.add(change.table)

        # CHECK constraints carry the enum values
        if changed_enums:
            for name, table in self.schema.tables.items():
                if any(col.type in changed_enums for col in table.columns.values()):
                    tables.add(name)

        return {t for t in tables if t in self.schema.tables and t not in added_tables}

    @staticmethod
    def _column(
        schema: Optional[SchemaSnapshot], table: str, column: Optional[str]
    ) -> Optional[ColumnSnapshot]:
        found = schema.get_table(table) if schema else None
        return found.get_column(column) if found and column else None


def rebuild_table_sql(name: str, ctx: _Context) -> List[str]:
    """Recreate a table in its current shape, keeping its rows.

    Columns present before and after are copied across, renamed columns from
    their old name; new columns take their defaults. Used where the dialect
    cannot alter columns or constraints in place.
    """
    table = ctx.schema.tables[name]
    temp_name = f"{REBUILD_PREFIX}{name}"
    added = ctx.added_columns.get(name, set())
    renamed = ctx.renamed_columns.get(name, {})

    targets = []
    sources = []
    for col_name in table.columns:
        if col_name in added:
            continue
        targets.append(quote_identifier(col_name))
        sources.append(quote_identifier(renamed.get(col_name, col_name)))

    statements = []
    disable = ctx.dialect.disable_constraints_statement()
    if disable:
        statements.append(disable)
    begin = ctx.dialect.begin_statement()
    if begin:
        statements.append(begin)
    statements.append(
        create_table_sql(temp_name, table, ctx.dialect, ctx.enums, constraint_table=name)
    )
    if targets:
        statements.append(
            f"INSERT INTO {quote_identifier(temp_name)} ({', '.join(targets)}) "
            f"SELECT {', '.join(sources)} FROM {quote_identifier(name)};"
        )
    statements.append(f"DROP TABLE {quote_identifier(name)};")
    statements.append(_alter_table(temp_name, f"RENAME TO {quote_identifier(name)}"))
    statements.extend(create_index_sql(name, idx) for idx in table.indexes)
    commit = ctx.dialect.commit_statement()
    if commit:
        statements.append(commit)
    enable = ctx.dialect.enable_constraints_statement()
    if enable:
        statements.append(enable)
    return statements


# ---------------------------------------------------------------------------
# Builders, one per change type
# ---------------------------------------------------------------------------


def _build_table_added(change: SchemaChange, ctx: _Context) -> List[Statement]:
    table = ctx.schema.get_table(change.table)
    if table is None:
        logger.warning(f"Table '{change.table}' is not in the target schema, skipping")
        return []
    rank = ctx.create_rank.get(change.table, 0)
    statements = [
        Statement(PHASE_CREATE_TABLES, rank, create_table_sql(change.table, table, ctx.dialect, ctx.enums))
    ]
    statements.extend(
        Statement(PHASE_CREATE_TABLES, rank, create_index_sql(change.table, idx))
        for idx in table.indexes
    )
    return statements


def _build_table_removed(change: SchemaChange, ctx: _Context) -> List[Statement]:
    rank = _DROP_TABLE * 100000 + ctx.drop_rank.get(change.table, 0)
    return [Statement(PHASE_REMOVE, rank, f"DROP TABLE {quote_identifier(change.table)};")]


def _rebuild_once(change: SchemaChange, ctx: _Context) -> List[Statement]:
    if change.table in ctx.rebuilt:
        return []
    ctx.rebuilt.add(change.table)
    return [Statement(PHASE_ALTER, 0, sql) for sql in rebuild_table_sql(change.table, ctx)]


def _build_column_added(change: SchemaChange, ctx: _Context) -> List[Statement]:
    if change.table in ctx.rebuild_tables:
        return _rebuild_once(change, ctx)
    table = ctx.schema.get_table(change.table)
    column = table.get_column(change.column) if table else None
    if column is None:
        logger.warning(f"Column '{change.table}.{change.column}' is not in the target schema, skipping")
        return []
    definition = column_definition(change.column, column, ctx.dialect, ctx.enums)
    return [Statement(PHASE_ALTER, 0, _alter_table(change.table, f"ADD COLUMN {definition}"))]


def _build_column_removed(change: SchemaChange, ctx: _Context) -> List[Statement]:
    if change.table in ctx.rebuild_tables:
        return _rebuild_once(change, ctx)
    sql = _alter_table(change.table, f"DROP COLUMN {quote_identifier(change.column)}")
    return [Statement(PHASE_REMOVE, _DROP_COLUMN * 100000, sql)]


def _build_column_renamed(change: SchemaChange, ctx: _Context) -> List[Statement]:
    if change.table in ctx.rebuild_tables:
        return _rebuild_once(change, ctx)
    comment = (
        f"-- Inferred rename {quote_identifier(change.table)}.{quote_identifier(change.old_column)}"
        f" -> {quote_identifier(change.new_column)}"
        f" (confidence {change.confidence or 0:.2f}). Review before applying."
    )
    sql = _alter_table(
        change.table,
        f"RENAME COLUMN {quote_identifier(change.old_column)} TO {quote_identifier(change.new_column)}",
    )
    return [Statement(PHASE_ALTER, 0, f"{comment}\n{sql}")]


def _build_column_type_changed(change: SchemaChange, ctx: _Context) -> List[Statement]:
    if change.table in ctx.rebuild_tables:
        return _rebuild_once(change, ctx)

    column = quote_identifier(change.column)
    statements = []
    if change.type_changed:
        ddl_type = ctx.dialect.column_type(change.new_type, ctx.enums)
        statements.append(
            _alter_table(change.table, f"ALTER COLUMN {column} TYPE {ddl_type} USING {column}::{ddl_type}")
        )
    if change.nullable_changed:
        action = "DROP NOT NULL" if change.new_nullable else "SET NOT NULL"
        statements.append(_alter_table(change.table, f"ALTER COLUMN {column} {action}"))
    if change.default_changed:
        if change.new_default is None:
            statements.append(_alter_table(change.table, f"ALTER COLUMN {column} DROP DEFAULT"))
        else:
            default = ctx.dialect.default_sql(change.new_default)
            statements.append(
                _alter_table(change.table, f"ALTER COLUMN {column} SET DEFAULT {default}")
            )
    return [Statement(PHASE_ALTER, 0, sql) for sql in statements]


def _build_index_added(change: SchemaChange, ctx: _Context) -> List[Statement]:
    if change.table in ctx.rebuild_tables:
        return _rebuild_once(change, ctx)
    index = IndexSnapshot(
        name=change.index_name, columns=change.columns or [], unique=bool(change.unique)
    )
    return [Statement(PHASE_ALTER, 0, create_index_sql(change.table, index))]


def _build_index_removed(change: SchemaChange, ctx: _Context) -> List[Statement]:
    if change.table in ctx.rebuild_tables:
        return _rebuild_once(change, ctx)
    return [Statement(PHASE_REMOVE, _DROP_INDEX * 100000, drop_index_sql(change.index_name))]


def _build_foreign_key_added(change: SchemaChange, ctx: _Context) -> List[Statement]:
    if change.table in ctx.rebuild_tables:
        return _rebuild_once(change, ctx)
    fk = change.foreign_key
    constraint = quote_identifier(fk.constraint_name(change.table))
    sql = _alter_table(change.table, f"ADD CONSTRAINT {constraint} {foreign_key_clause(fk)}")
    return [Statement(PHASE_ALTER, 0, sql)]


def _build_foreign_key_removed(change: SchemaChange, ctx: _Context) -> List[Statement]:
    if change.table in ctx.rebuild_tables:
        return _rebuild_once(change, ctx)
    constraint = quote_identifier(change.foreign_key.constraint_name(change.table))
    sql = _alter_table(change.table, f"DROP CONSTRAINT {constraint}")
    return [Statement(PHASE_REMOVE, _DROP_FOREIGN_KEY * 100000, sql)]


def _build_enum_added(change: SchemaChange, ctx: _Context) -> List[Statement]:
    if not ctx.dialect.supports_enum_types:
        return []
    values = ctx.enums.get(change.enum_name) or change.added_values or []
    if not values:
        return []
    literals = ", ".join(ctx.dialect.literal(v) for v in values)
    sql = f"CREATE TYPE {quote_identifier(change.enum_name)} AS ENUM ({literals});"
    return [Statement(PHASE_ENUMS, 0, sql)]


def _build_enum_changed(change: SchemaChange, ctx: _Context) -> List[Statement]:
    if not ctx.dialect.supports_enum_types:
        return []
    name = quote_identifier(change.enum_name)
    statements = [
        Statement(PHASE_ENUMS, 0, f"ALTER TYPE {name} ADD VALUE {ctx.dialect.literal(value)};")
        for value in change.added_values or []
    ]
    if change.removed_values:
        # Enum values cannot be dropped in place; the type keeps them
        removed = ", ".join(ctx.dialect.literal(v) for v in change.removed_values)
        statements.append(
            Statement(PHASE_ENUMS, 0, f"-- Values {removed} remain in enum type {name}.")
        )
    return statements


def _build_enum_removed(change: SchemaChange, ctx: _Context) -> List[Statement]:
    if not ctx.dialect.supports_enum_types:
        return []
    sql = f"DROP TYPE {quote_identifier(change.enum_name)};"
    return [Statement(PHASE_REMOVE, _DROP_ENUM * 100000, sql)]


_BUILDERS = {
    ChangeType.TABLE_ADDED.value: _build_table_added,
    ChangeType.TABLE_REMOVED.value: _build_table_removed,
    ChangeType.COLUMN_ADDED.value: _build_column_added,
    ChangeType.COLUMN_REMOVED.value: _build_column_removed,
    ChangeType.COLUMN_RENAMED.value: _build_column_renamed,
    ChangeType.COLUMN_TYPE_CHANGED.value: _build_column_type_changed,
    ChangeType.INDEX_ADDED.value: _build_index_added,
    ChangeType.INDEX_REMOVED.value: _build_index_removed,
    ChangeType.FOREIGN_KEY_ADDED.value: _build_foreign_key_added,
    ChangeType.FOREIGN_KEY_REMOVED.value: _build_foreign_key_removed,
    ChangeType.ENUM_ADDED.value: _build_enum_added,
    ChangeType.ENUM_CHANGED.value: _build_enum_changed,
    ChangeType.ENUM_REMOVED.value: _build_enum_removed,
}


def build_statements(
    changes: Changes,
    current_schema: SchemaSnapshot,
    dialect: Optional[Dialect] = None,
    previous_schema: Optional[SchemaSnapshot] = None,
) -> List[str]:
    """Statements for a change set, in execution order.

    Enums first, then new tables (referenced tables before the tables
    referencing them, each followed by its indexes), then alterations of
    existing tables, then removals.
    """
    dialect = dialect or default_dialect()
    change_list = _as_list(changes)
    ctx = _Context(change_list, current_schema, dialect, previous_schema)

    statements: List[Statement] = []
    for change in change_list:
        statements.extend(_BUILDERS[_kind(change)](change, ctx))

    # Tables whose enum changed but had no change of their own
    for name in sorted(ctx.rebuild_tables - ctx.rebuilt):
        ctx.rebuilt.add(name)
        statements.extend(Statement(PHASE_ALTER, 0, sql) for sql in rebuild_table_sql(name, ctx))

    # sorted() is stable: statements sharing a phase and rank keep change order
    statements = sorted(statements, key=lambda s: (s.phase, s.rank))
    return [s.sql for s in statements]


def generate_migration_sql(
    changes: Changes,
    current_schema: SchemaSnapshot,
    dialect: Optional[Dialect] = None,
    previous_schema: Optional[SchemaSnapshot] = None,
) -> str:
    """Generate migration SQL for a change set.

    Args:
        changes: Changes from compute_diff, or the DiffResult itself
        current_schema: Snapshot the changes lead to; supplies full table
            and enum definitions
        dialect: Target dialect (Postgres when omitted)
        previous_schema: Snapshot the changes start from; orders table drops
            so referencing tables go first

    Returns:
        Statements separated by blank lines, or "" when there is nothing to do
    """
    statements = build_statements(changes, current_schema, dialect, previous_schema)
    for sql in statements:
        logger.debug(f"Generated: {sql}")
    return STATEMENT_SEPARATOR.join(statements)


def invert_change(change: SchemaChange) -> SchemaChange:
    """The change that undoes ``change``."""
    kind = _kind(change)
    swapped_types = {
        ChangeType.TABLE_ADDED.value: ChangeType.TABLE_REMOVED.value,
        ChangeType.TABLE_REMOVED.value: ChangeType.TABLE_ADDED.value,
        ChangeType.COLUMN_ADDED.value: ChangeType.COLUMN_REMOVED.value,
        ChangeType.COLUMN_REMOVED.value: ChangeType.COLUMN_ADDED.value,
        ChangeType.INDEX_ADDED.value: ChangeType.INDEX_REMOVED.value,
        ChangeType.INDEX_REMOVED.value: ChangeType.INDEX_ADDED.value,
        ChangeType.FOREIGN_KEY_ADDED.value: ChangeType.FOREIGN_KEY_REMOVED.value,
        ChangeType.FOREIGN_KEY_REMOVED.value: ChangeType.FOREIGN_KEY_ADDED.value,
        ChangeType.ENUM_ADDED.value: ChangeType.ENUM_REMOVED.value,
        ChangeType.ENUM_REMOVED.value: ChangeType.ENUM_ADDED.value,
    }
    if kind in swapped_types:
        return change.model_copy(update={"type": swapped_types[kind]})
    if kind == ChangeType.COLUMN_RENAMED.value:
        return change.model_copy(
            update={"old_column": change.new_column, "new_column": change.old_column}
        )
    if kind == ChangeType.COLUMN_TYPE_CHANGED.value:
        return change.model_copy(
            update={
                "old_type": change.new_type,
                "new_type": change.old_type,
                "old_nullable": change.new_nullable,
                "new_nullable": change.old_nullable,
                "old_default": change.new_default,
                "new_default": change.old_default,
            }
        )
    if kind == ChangeType.ENUM_CHANGED.value:
        return change.model_copy(
            update={
                "added_values": change.removed_values,
                "removed_values": change.added_values,
            }
        )
    return change


def generate_rollback_sql(
    changes: Changes,
    previous_schema: SchemaSnapshot,
    dialect: Optional[Dialect] = None,
    current_schema: Optional[SchemaSnapshot] = None,
) -> str:
    """Generate SQL that undoes a change set.

    Every change is inverted and the result rendered against
    ``previous_schema``, the shape the rollback restores. Dropped data is
    not restored.
    """
    inverted = [invert_change(c) for c in reversed(_as_list(changes))]
    return generate_migration_sql(inverted, previous_schema, dialect, current_schema)
