"""Database dialects for schemashift.

Everything that differs between backends lives here: type names, literal
and default rendering, parameter placeholders, the history table DDL, how
user tables are listed and dropped, and how a live schema is introspected.
The SQL generator, runner and flows only talk to the ``Dialect`` interface.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from schemashift.models import (
    NOW,
    ColumnSnapshot,
    ForeignKeySnapshot,
    IndexSnapshot,
    QueryFn,
    SchemaSnapshot,
    TableSnapshot,
)

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_TABLE = "_schemashift_migrations"

# Expressions that mean "current timestamp" when read back from a database
_NOW_EXPRESSIONS = {
    "now()",
    "current_timestamp",
    "(current_timestamp)",
    "datetime('now')",
    "(datetime('now'))",
}


def quote_identifier(name: str) -> str:
    """Double-quote an identifier verbatim.

    Names come from the schema definition, which is trusted build-time input;
    they are not escaped.
    """
    return f'"{name}"'


def escape_string(value: str) -> str:
    """Escape a string for use inside a single-quoted SQL literal."""
    return value.replace("'", "''")


def parse_default(raw: Any) -> Any:
    """Convert a default expression read from a catalog back to a snapshot default."""
    if raw is None:
        return None
    text = str(raw).strip()
    if text.lower() in _NOW_EXPRESSIONS:
        return NOW
    # Postgres casts literal defaults: 'draft'::text
    text = re.sub(r"::[\w\s\"]+(\[\])?$", "", text)
    if len(text) >= 2 and text.startswith("'") and text.endswith("'"):
        return text[1:-1].replace("''", "'")
    if text.upper() in ("TRUE", "FALSE"):
        return text.upper() == "TRUE"
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return text


class Dialect(ABC):
    """Capabilities of one database backend."""

    name: str = ""
    supports_enum_types: bool = False
    supports_alter_column: bool = False
    now_function: str = "CURRENT_TIMESTAMP"

    # Logical type name -> DDL type name
    type_map: Dict[str, str] = {}
    # DDL/catalog type name (lowercase) -> logical type name
    reverse_type_map: Dict[str, str] = {}

    def column_type(self, logical: str, enums: Optional[Dict[str, List[str]]] = None) -> str:
        """DDL type for a logical column type."""
        if enums and logical in enums:
            return self.enum_column_type(logical)
        return self.type_map.get(logical.lower(), logical)

    def enum_column_type(self, enum_name: str) -> str:
        return "TEXT"

    def logical_type(self, raw: str) -> str:
        """Logical type for a type name reported by the database catalog."""
        return self.reverse_type_map.get(raw.lower(), raw.lower())

    def canonical_type(self, logical: str, enums: Optional[Dict[str, List[str]]] = None) -> str:
        """The logical type introspection would report for ``logical`` after a round trip."""
        if enums and logical in enums:
            return logical if self.supports_enum_types else "text"
        return self.logical_type(self.column_type(logical))

    def literal(self, value: Any) -> str:
        """Render a Python value as a SQL literal."""
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return self.boolean_literal(value)
        if isinstance(value, (int, float)):
            return repr(value)
        return f"'{escape_string(str(value))}'"

    def boolean_literal(self, value: bool) -> str:
        return "TRUE" if value else "FALSE"

    def default_sql(self, value: Any) -> str:
        """Render a column default, lowering the ``now`` sentinel."""
        if value == NOW:
            return self.now_function
        return self.literal(value)

    def enum_check(self, column: str, values: List[str]) -> Optional[str]:
        """Inline constraint restricting ``column`` to enum values, if needed."""
        return None

    def drop_type_statement(self, name: str) -> Optional[str]:
        return None

    def list_user_types(self, query_fn: QueryFn) -> List[str]:
        return []

    def disable_constraints_statement(self) -> Optional[str]:
        """Statement turning off FK enforcement while tables are dropped."""
        return None

    def enable_constraints_statement(self) -> Optional[str]:
        return None

    def begin_statement(self) -> Optional[str]:
        """Statement opening a transaction inside a migration script, if supported."""
        return None

    def commit_statement(self) -> Optional[str]:
        return None

    @abstractmethod
    def placeholder(self, index: int) -> str:
        """Positional parameter marker, ``index`` counting from 1."""

    @abstractmethod
    def history_table_ddl(self, table: str) -> str:
        """Idempotent DDL creating the migration history table."""

    @abstractmethod
    def history_table_exists(self, query_fn: QueryFn, table: str) -> bool:
        """Check for the history table without creating it."""

    @abstractmethod
    def drop_statement(self, table: str) -> str:
        """DDL dropping a user table."""

    @abstractmethod
    def list_user_tables(self, query_fn: QueryFn, exclude: Iterable[str] = ()) -> List[str]:
        """Names of all user tables, sorted, without internal tables."""

    @abstractmethod
    def introspect(
        self, query_fn: QueryFn, exclude: Iterable[str] = (DEFAULT_HISTORY_TABLE,)
    ) -> SchemaSnapshot:
        """Read the live database schema into a snapshot."""


class PostgresDialect(Dialect):
    """PostgreSQL: native enum types, ALTER COLUMN, CASCADE drops."""

    name = "postgres"
    supports_enum_types = True
    supports_alter_column = True
    now_function = "now()"

    type_map = {
        "text": "TEXT",
        "string": "TEXT",
        "varchar": "VARCHAR",
        "integer": "INTEGER",
        "int": "INTEGER",
        "bigint": "BIGINT",
        "serial": "SERIAL",
        "uuid": "UUID",
        "boolean": "BOOLEAN",
        "bool": "BOOLEAN",
        "timestamp": "TIMESTAMPTZ",
        "timestamptz": "TIMESTAMPTZ",
        "date": "DATE",
        "float": "DOUBLE PRECISION",
        "real": "REAL",
        "decimal": "NUMERIC",
        "numeric": "NUMERIC",
        "json": "JSONB",
        "jsonb": "JSONB",
        "blob": "BYTEA",
        "bytea": "BYTEA",
    }

    reverse_type_map = {
        "text": "text",
        "character varying": "varchar",
        "varchar": "varchar",
        "integer": "integer",
        "int4": "integer",
        "bigint": "bigint",
        "int8": "bigint",
        "serial": "integer",
        "uuid": "uuid",
        "boolean": "boolean",
        "bool": "boolean",
        "timestamp with time zone": "timestamp",
        "timestamptz": "timestamp",
        "date": "date",
        "double precision": "float",
        "float8": "float",
        "real": "real",
        "numeric": "decimal",
        "jsonb": "json",
        "json": "json",
        "bytea": "blob",
    }

    def enum_column_type(self, enum_name: str) -> str:
        return quote_identifier(enum_name)

    def placeholder(self, index: int) -> str:
        return f"${index}"

    def history_table_ddl(self, table: str) -> str:
        return (
            f"CREATE TABLE IF NOT EXISTS {quote_identifier(table)} (\n"
            '  "id" serial PRIMARY KEY,\n'
            '  "name" text NOT NULL UNIQUE,\n'
            '  "checksum" text NOT NULL,\n'
            '  "applied_at" timestamp with time zone NOT NULL DEFAULT now()\n'
            ");"
        )

    def history_table_exists(self, query_fn: QueryFn, table: str) -> bool:
        result = query_fn(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = 'public' AND table_name = $1",
            [table],
        )
        return bool(result.rows)

    def drop_statement(self, table: str) -> str:
        return f"DROP TABLE IF EXISTS {quote_identifier(table)} CASCADE;"

    def drop_type_statement(self, name: str) -> Optional[str]:
        return f"DROP TYPE IF EXISTS {quote_identifier(name)} CASCADE;"

    def list_user_tables(self, query_fn: QueryFn, exclude: Iterable[str] = ()) -> List[str]:
        excluded = set(exclude)
        result = query_fn(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = 'public' AND table_type = 'BASE TABLE' "
            "ORDER BY table_name",
            [],
        )
        return [row["table_name"] for row in result.rows if row["table_name"] not in excluded]

    def list_user_types(self, query_fn: QueryFn) -> List[str]:
        result = query_fn(
            "SELECT DISTINCT t.typname AS enum_name FROM pg_type t "
            "JOIN pg_enum e ON t.oid = e.enumtypid "
            "JOIN pg_catalog.pg_namespace n ON n.oid = t.typnamespace "
            "WHERE n.nspname = 'public' ORDER BY t.typname",
            [],
        )
        return [row["enum_name"] for row in result.rows]

    def introspect(
        self, query_fn: QueryFn, exclude: Iterable[str] = (DEFAULT_HISTORY_TABLE,)
    ) -> SchemaSnapshot:
        tables: Dict[str, TableSnapshot] = {}

        pk_rows = query_fn(
            "SELECT kcu.table_name, kcu.column_name "
            "FROM information_schema.table_constraints tc "
            "JOIN information_schema.key_column_usage kcu "
            "ON tc.constraint_name = kcu.constraint_name AND tc.table_schema = kcu.table_schema "
            "WHERE tc.constraint_type = 'PRIMARY KEY' AND tc.table_schema = 'public'",
            [],
        ).rows
        primary_keys: Dict[str, set] = {}
        for row in pk_rows:
            primary_keys.setdefault(row["table_name"], set()).add(row["column_name"])

        unique_rows = query_fn(
            "SELECT tc.table_name, kcu.column_name, tc.constraint_name "
            "FROM information_schema.table_constraints tc "
            "JOIN information_schema.key_column_usage kcu "
            "ON tc.constraint_name = kcu.constraint_name AND tc.table_schema = kcu.table_schema "
            "WHERE tc.constraint_type = 'UNIQUE' AND tc.table_schema = 'public'",
            [],
        ).rows
        # Only single-column unique constraints map onto ColumnSnapshot.unique
        constraint_columns: Dict[str, Dict[str, Any]] = {}
        for row in unique_rows:
            entry = constraint_columns.setdefault(
                row["constraint_name"], {"table": row["table_name"], "columns": []}
            )
            entry["columns"].append(row["column_name"])
        unique_columns: Dict[str, set] = {}
        for entry in constraint_columns.values():
            if len(entry["columns"]) == 1:
                unique_columns.setdefault(entry["table"], set()).add(entry["columns"][0])

        for table_name in self.list_user_tables(query_fn, exclude):
            col_rows = query_fn(
                "SELECT column_name, data_type, udt_name, is_nullable, column_default "
                "FROM information_schema.columns "
                "WHERE table_name = $1 AND table_schema = 'public' "
                "ORDER BY ordinal_position",
                [table_name],
            ).rows
            pk_cols = primary_keys.get(table_name, set())
            uq_cols = unique_columns.get(table_name, set())

            columns: Dict[str, ColumnSnapshot] = {}
            for col in col_rows:
                name = col["column_name"]
                if col["data_type"] == "USER-DEFINED":
                    col_type = col["udt_name"]
                else:
                    col_type = self.logical_type(col["data_type"])
                columns[name] = ColumnSnapshot(
                    type=col_type,
                    nullable=col["is_nullable"] == "YES",
                    primary=name in pk_cols,
                    unique=name in uq_cols,
                    default=parse_default(col["column_default"]),
                )

            fk_rows = query_fn(
                "SELECT kcu.column_name, ccu.table_name AS target_table, "
                "ccu.column_name AS target_column, rc.delete_rule "
                "FROM information_schema.table_constraints tc "
                "JOIN information_schema.key_column_usage kcu "
                "ON tc.constraint_name = kcu.constraint_name AND tc.table_schema = kcu.table_schema "
                "JOIN information_schema.constraint_column_usage ccu "
                "ON tc.constraint_name = ccu.constraint_name AND tc.table_schema = ccu.table_schema "
                "JOIN information_schema.referential_constraints rc "
                "ON tc.constraint_name = rc.constraint_name AND tc.table_schema = rc.constraint_schema "
                "WHERE tc.constraint_type = 'FOREIGN KEY' AND tc.table_name = $1 "
                "AND tc.table_schema = 'public' ORDER BY kcu.column_name",
                [table_name],
            ).rows
            foreign_keys = [
                ForeignKeySnapshot(
                    column=fk["column_name"],
                    target_table=fk["target_table"],
                    target_column=fk["target_column"],
                    on_delete=None if fk["delete_rule"] == "NO ACTION" else fk["delete_rule"],
                )
                for fk in fk_rows
            ]

            # User-created indexes only, not the ones backing constraints
            idx_rows = query_fn(
                "SELECT i.relname AS index_name, "
                "array_agg(a.attname ORDER BY k.n) AS columns, "
                "ix.indisunique AS is_unique "
                "FROM pg_index ix "
                "JOIN pg_class i ON i.oid = ix.indexrelid "
                "JOIN pg_class t ON t.oid = ix.indrelid "
                "JOIN pg_namespace ns ON ns.oid = t.relnamespace "
                "JOIN LATERAL unnest(ix.indkey) WITH ORDINALITY AS k(attnum, n) ON true "
                "JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = k.attnum "
                "WHERE t.relname = $1 AND ns.nspname = 'public' "
                "AND NOT ix.indisprimary "
                "AND NOT EXISTS (SELECT 1 FROM pg_constraint c WHERE c.conindid = ix.indexrelid) "
                "GROUP BY i.relname, ix.indisunique ORDER BY i.relname",
                [table_name],
            ).rows
            indexes = [
                IndexSnapshot(
                    name=idx["index_name"],
                    columns=list(idx["columns"]),
                    unique=bool(idx["is_unique"]),
                )
                for idx in idx_rows
            ]

            tables[table_name] = TableSnapshot(
                columns=columns, indexes=indexes, foreign_keys=foreign_keys
            )

        enum_rows = query_fn(
            "SELECT t.typname AS enum_name, e.enumlabel AS enum_value "
            "FROM pg_type t "
            "JOIN pg_enum e ON t.oid = e.enumtypid "
            "JOIN pg_catalog.pg_namespace n ON n.oid = t.typnamespace "
            "WHERE n.nspname = 'public' "
            "ORDER BY t.typname, e.enumsortorder",
            [],
        ).rows
        enums: Dict[str, List[str]] = {}
        for row in enum_rows:
            enums.setdefault(row["enum_name"], []).append(row["enum_value"])

        return SchemaSnapshot(tables=tables, enums=enums)


class SqliteDialect(Dialect):
    """SQLite: no enum types, no ALTER COLUMN, no DROP ... CASCADE."""

    name = "sqlite"

    # Tables SQLite or the edge runtime maintain themselves
    internal_prefixes = ("sqlite_",)

    type_map = {
        "text": "TEXT",
        "string": "TEXT",
        "varchar": "TEXT",
        "uuid": "TEXT",
        "timestamp": "TEXT",
        "timestamptz": "TEXT",
        "date": "TEXT",
        "json": "TEXT",
        "jsonb": "TEXT",
        "integer": "INTEGER",
        "int": "INTEGER",
        "bigint": "INTEGER",
        "serial": "INTEGER",
        "boolean": "INTEGER",
        "bool": "INTEGER",
        "float": "REAL",
        "real": "REAL",
        "decimal": "NUMERIC",
        "numeric": "NUMERIC",
        "blob": "BLOB",
        "bytea": "BLOB",
    }

    reverse_type_map = {
        "text": "text",
        "integer": "integer",
        "int": "integer",
        "real": "float",
        "blob": "blob",
        "numeric": "decimal",
    }

    def boolean_literal(self, value: bool) -> str:
        return "1" if value else "0"

    def enum_check(self, column: str, values: List[str]) -> Optional[str]:
        allowed = ", ".join(self.literal(v) for v in values)
        return f"CHECK({quote_identifier(column)} IN ({allowed}))"

    def disable_constraints_statement(self) -> Optional[str]:
        return "PRAGMA foreign_keys = OFF;"

    def enable_constraints_statement(self) -> Optional[str]:
        return "PRAGMA foreign_keys = ON;"

    def begin_statement(self) -> Optional[str]:
        return "BEGIN;"

    def commit_statement(self) -> Optional[str]:
        return "COMMIT;"

    def placeholder(self, index: int) -> str:
        return "?"

    def history_table_ddl(self, table: str) -> str:
        return (
            f"CREATE TABLE IF NOT EXISTS {quote_identifier(table)} (\n"
            '  "id" INTEGER PRIMARY KEY AUTOINCREMENT,\n'
            '  "name" TEXT NOT NULL UNIQUE,\n'
            '  "checksum" TEXT NOT NULL,\n'
            "  \"applied_at\" TEXT NOT NULL DEFAULT (datetime('now'))\n"
            ");"
        )

    def history_table_exists(self, query_fn: QueryFn, table: str) -> bool:
        result = query_fn(
            "SELECT name FROM sqlite_master WHERE type='table' AND name = ?", [table]
        )
        return bool(result.rows)

    def drop_statement(self, table: str) -> str:
        return f"DROP TABLE IF EXISTS {quote_identifier(table)};"

    def is_internal_table(self, name: str) -> bool:
        return name.startswith(self.internal_prefixes)

    def list_user_tables(self, query_fn: QueryFn, exclude: Iterable[str] = ()) -> List[str]:
        excluded = set(exclude)
        result = query_fn(
            "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name", []
        )
        return [
            row["name"]
            for row in result.rows
            if not self.is_internal_table(row["name"]) and row["name"] not in excluded
        ]

    def introspect(
        self, query_fn: QueryFn, exclude: Iterable[str] = (DEFAULT_HISTORY_TABLE,)
    ) -> SchemaSnapshot:
        tables: Dict[str, TableSnapshot] = {}

        for table_name in self.list_user_tables(query_fn, exclude):
            quoted = quote_identifier(table_name)
            columns: Dict[str, ColumnSnapshot] = {}
            col_rows = query_fn(f"PRAGMA table_info({quoted})", []).rows
            unique_cols = set()
            indexes: List[IndexSnapshot] = []

            for idx in query_fn(f"PRAGMA index_list({quoted})", []).rows:
                info = query_fn(
                    f"PRAGMA index_info({quote_identifier(idx['name'])})", []
                ).rows
                idx_columns = [r["name"] for r in info]
                is_unique = idx["unique"] == 1
                # origin: c = CREATE INDEX, u = UNIQUE constraint, pk = primary key
                if is_unique and idx["origin"] == "u" and len(idx_columns) == 1:
                    unique_cols.add(idx_columns[0])
                if idx["origin"] == "c":
                    indexes.append(
                        IndexSnapshot(name=idx["name"], columns=idx_columns, unique=is_unique)
                    )
            indexes.sort(key=lambda i: i.name)

            for col in col_rows:
                name = col["name"]
                is_primary = col["pk"] > 0
                columns[name] = ColumnSnapshot(
                    type=self.logical_type(col["type"] or "text"),
                    nullable=col["notnull"] == 0 and not is_primary,
                    primary=is_primary,
                    unique=name in unique_cols,
                    default=parse_default(col["dflt_value"]),
                )

            foreign_keys = [
                ForeignKeySnapshot(
                    column=fk["from"],
                    target_table=fk["table"],
                    target_column=fk["to"],
                    on_delete=None if fk["on_delete"] == "NO ACTION" else fk["on_delete"],
                )
                for fk in query_fn(f"PRAGMA foreign_key_list({quoted})", []).rows
            ]

            tables[table_name] = TableSnapshot(
                columns=columns, indexes=indexes, foreign_keys=foreign_keys
            )

        return SchemaSnapshot(tables=tables)


class D1Dialect(SqliteDialect):
    """Cloudflare D1: SQLite plus the runtime's own ``_cf_`` tables."""

    name = "d1"
    internal_prefixes = ("sqlite_", "_cf_")

    # The runtime wraps each request in its own transaction
    def begin_statement(self) -> Optional[str]:
        return None

    def commit_statement(self) -> Optional[str]:
        return None


_DIALECTS = {
    "postgres": PostgresDialect,
    "postgresql": PostgresDialect,
    "sqlite": SqliteDialect,
    "d1": D1Dialect,
}


def get_dialect(name: str) -> Dialect:
    """Look up a dialect by name.

    Raises:
        ValueError: If the dialect is unknown
    """
    try:
        return _DIALECTS[name.lower()]()
    except KeyError:
        raise ValueError(
            f"Unknown dialect '{name}'. Supported: {', '.join(sorted(_DIALECTS))}"
        ) from None


def default_dialect() -> Dialect:
    return PostgresDialect()
