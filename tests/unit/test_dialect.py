"""Tests for database dialects."""

import pytest

from schemashift.core.dialect import (
    DEFAULT_HISTORY_TABLE,
    D1Dialect,
    PostgresDialect,
    SqliteDialect,
    get_dialect,
    parse_default,
    quote_identifier,
)
from schemashift.managers.differ import compute_diff
from schemashift.managers.sql_generator import generate_migration_sql
from schemashift.models import NOW, QueryResult, SchemaSnapshot


class TestGetDialect:
    """Test dialect lookup."""

    def test_known_names(self):
        assert isinstance(get_dialect("postgres"), PostgresDialect)
        assert isinstance(get_dialect("PostgreSQL"), PostgresDialect)
        assert isinstance(get_dialect("sqlite"), SqliteDialect)
        assert isinstance(get_dialect("d1"), D1Dialect)

    def test_unknown_name(self):
        """Test that an unknown dialect raises ValueError."""
        with pytest.raises(ValueError, match="Unknown dialect 'mysql'"):
            get_dialect("mysql")


class TestRendering:
    """Test literal, placeholder and type rendering."""

    def test_quote_identifier(self):
        assert quote_identifier("users") == '"users"'

    def test_literals(self):
        pg = PostgresDialect()
        lite = SqliteDialect()

        assert pg.literal(True) == "TRUE"
        assert lite.literal(False) == "0"
        assert pg.literal(None) == "NULL"
        assert pg.literal(42) == "42"
        assert pg.literal(1.5) == "1.5"
        assert pg.literal("it's") == "'it''s'"

    def test_placeholders(self):
        assert PostgresDialect().placeholder(2) == "$2"
        assert SqliteDialect().placeholder(2) == "?"

    def test_default_sql_lowers_now(self):
        assert PostgresDialect().default_sql(NOW) == "now()"
        assert SqliteDialect().default_sql(NOW) == "CURRENT_TIMESTAMP"

    def test_column_type(self):
        """Test logical types, unknown types and enum columns."""
        pg = PostgresDialect()
        lite = SqliteDialect()
        enums = {"role": ["admin"]}

        assert pg.column_type("timestamp") == "TIMESTAMPTZ"
        assert pg.column_type("citext") == "citext"
        assert pg.column_type("role", enums) == '"role"'
        assert lite.column_type("uuid") == "TEXT"
        assert lite.column_type("role", enums) == "TEXT"

    def test_canonical_type(self):
        """Test the type each dialect reports back after a round trip."""
        pg = PostgresDialect()
        lite = SqliteDialect()
        enums = {"role": ["admin"]}

        assert pg.canonical_type("int") == "integer"
        assert pg.canonical_type("timestamp") == "timestamp"
        assert pg.canonical_type("role", enums) == "role"
        assert lite.canonical_type("boolean") == "integer"
        assert lite.canonical_type("uuid") == "text"
        assert lite.canonical_type("role", enums) == "text"

    def test_drop_statements(self):
        assert PostgresDialect().drop_statement("users") == 'DROP TABLE IF EXISTS "users" CASCADE;'
        assert SqliteDialect().drop_statement("users") == 'DROP TABLE IF EXISTS "users";'
        assert SqliteDialect().drop_type_statement("role") is None


class TestParseDefault:
    """Test reading catalog defaults back into snapshot values."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            (None, None),
            ("now()", NOW),
            ("CURRENT_TIMESTAMP", NOW),
            ("(datetime('now'))", NOW),
            ("'draft'::text", "draft"),
            ("'x'::character varying", "x"),
            ("'it''s'", "it's"),
            ("TRUE", True),
            ("false", False),
            ("42", 42),
            ("1.5", 1.5),
        ],
    )
    def test_parse_default(self, raw, expected):
        assert parse_default(raw) == expected


class TestSqliteIntrospection:
    """Test reading a live SQLite schema."""

    def _create(self, db, snapshot, dialect=None):
        dialect = dialect or SqliteDialect()
        diff = compute_diff(SchemaSnapshot.empty(), snapshot)
        db.query(generate_migration_sql(diff, snapshot, dialect), [])

    def test_introspect_columns_and_keys(self, db, users_snapshot):
        """Test column types, nullability, primary and unique flags."""
        self._create(db, users_snapshot)

        snapshot = SqliteDialect().introspect(db.query)
        columns = snapshot.tables["users"].columns

        assert list(columns) == ["id", "email", "name"]
        assert columns["id"].type == "text"
        assert columns["id"].primary is True
        assert columns["id"].nullable is False
        assert columns["email"].unique is True
        assert columns["email"].nullable is False
        assert columns["name"].nullable is True

    def test_introspect_indexes_and_foreign_keys(self, db, blog_snapshot):
        self._create(db, blog_snapshot)

        snapshot = SqliteDialect().introspect(db.query)

        users = snapshot.tables["users"]
        assert [(i.name, i.columns, i.unique) for i in users.indexes] == [
            ("idx_users_email", ["email"], True)
        ]
        fk = snapshot.tables["posts"].foreign_keys[0]
        assert (fk.column, fk.target_table, fk.target_column, fk.on_delete) == (
            "author_id",
            "users",
            "id",
            "CASCADE",
        )

    def test_introspect_defaults(self, db, make_snapshot):
        """Test that literal and timestamp defaults survive a round trip."""
        snapshot = make_snapshot(
            {
                "posts": {
                    "status": {"type": "text", "default": "draft"},
                    "views": {"type": "integer", "default": 0},
                    "created_at": {"type": "timestamp", "default": "now"},
                }
            }
        )
        self._create(db, snapshot)

        columns = SqliteDialect().introspect(db.query).tables["posts"].columns

        assert columns["status"].default == "draft"
        assert columns["views"].default == 0
        assert columns["created_at"].default == NOW

    def test_history_and_internal_tables_are_excluded(self, db):
        runner_ddl = SqliteDialect().history_table_ddl(DEFAULT_HISTORY_TABLE)
        db.query(runner_ddl, [])
        db.query('CREATE TABLE "notes" ("id" INTEGER PRIMARY KEY AUTOINCREMENT)', [])

        snapshot = SqliteDialect().introspect(db.query)

        # AUTOINCREMENT creates sqlite_sequence
        assert list(snapshot.tables) == ["notes"]

    def test_d1_excludes_runtime_tables(self, db):
        """Test that D1 skips the runtime's _cf_ tables."""
        db.query('CREATE TABLE "_cf_KV" ("key" TEXT)', [])
        db.query('CREATE TABLE "users" ("id" INTEGER)', [])

        assert D1Dialect().list_user_tables(db.query) == ["users"]
        assert SqliteDialect().list_user_tables(db.query) == ["_cf_KV", "users"]

    def test_history_table_exists(self, db):
        dialect = SqliteDialect()
        assert not dialect.history_table_exists(db.query, DEFAULT_HISTORY_TABLE)

        db.query(dialect.history_table_ddl(DEFAULT_HISTORY_TABLE), [])

        assert dialect.history_table_exists(db.query, DEFAULT_HISTORY_TABLE)


class TestPostgresIntrospection:
    """Test Postgres catalog queries against canned rows."""

    @staticmethod
    def catalog(sql, params):
        if "'PRIMARY KEY'" in sql:
            rows = [{"table_name": "users", "column_name": "id"}]
        elif "'UNIQUE'" in sql:
            rows = [{"table_name": "users", "column_name": "email", "constraint_name": "users_email_key"}]
        elif "table_type = 'BASE TABLE'" in sql:
            rows = [{"table_name": "_schemashift_migrations"}, {"table_name": "users"}]
        elif "information_schema.columns" in sql:
            rows = [
                {"column_name": "id", "data_type": "uuid", "udt_name": "uuid",
                 "is_nullable": "NO", "column_default": None},
                {"column_name": "email", "data_type": "text", "udt_name": "text",
                 "is_nullable": "NO", "column_default": None},
                {"column_name": "role", "data_type": "USER-DEFINED", "udt_name": "role",
                 "is_nullable": "YES", "column_default": "'member'::role"},
                {"column_name": "created_at", "data_type": "timestamp with time zone",
                 "udt_name": "timestamptz", "is_nullable": "NO", "column_default": "now()"},
            ]
        elif "pg_enum" in sql:
            rows = [
                {"enum_name": "role", "enum_value": "admin"},
                {"enum_name": "role", "enum_value": "member"},
            ]
        else:
            rows = []
        return QueryResult(rows=rows, row_count=len(rows))

    def test_introspect(self, recording_query):
        query = recording_query(target=self.catalog)

        snapshot = PostgresDialect().introspect(query)

        assert list(snapshot.tables) == ["users"]
        columns = snapshot.tables["users"].columns
        assert columns["id"].type == "uuid"
        assert columns["id"].primary is True
        assert columns["email"].unique is True
        assert columns["role"].type == "role"
        assert columns["role"].default == "member"
        assert columns["created_at"].type == "timestamp"
        assert columns["created_at"].default == NOW
        assert snapshot.enums == {"role": ["admin", "member"]}
        # Column lookups are parameterized
        assert ["users"] in [params for _, params in query.calls]

    def test_history_table_exists_is_parameterized(self, recording_query):
        query = recording_query(rows=[{"table_name": DEFAULT_HISTORY_TABLE}])

        assert PostgresDialect().history_table_exists(query, DEFAULT_HISTORY_TABLE)
        assert query.calls[0][1] == [DEFAULT_HISTORY_TABLE]
        assert "$1" in query.calls[0][0]
