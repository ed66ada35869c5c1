"""Tests for the schema differ."""

import pytest

from schemashift.managers.differ import column_similarity, compute_diff
from schemashift.models import (
    ChangeType,
    ColumnSnapshot,
    ForeignKeySnapshot,
    IndexSnapshot,
    SchemaSnapshot,
    TableSnapshot,
)


class TestComputeDiff:
    """Test table-level diffing."""

    def test_equal_snapshots_have_no_changes(self, users_snapshot):
        """Test that diffing a snapshot against itself yields nothing."""
        diff = compute_diff(users_snapshot, users_snapshot)
        assert diff.changes == []
        assert diff.is_empty

    def test_empty_snapshots(self):
        """Test diffing two empty snapshots."""
        assert compute_diff(SchemaSnapshot.empty(), SchemaSnapshot.empty()).is_empty

    def test_table_added(self, users_snapshot):
        """Test a table present only in the current snapshot."""
        diff = compute_diff(SchemaSnapshot.empty(), users_snapshot)

        assert len(diff.changes) == 1
        assert diff.changes[0].type == ChangeType.TABLE_ADDED
        assert diff.changes[0].table == "users"

    def test_table_removed(self, users_snapshot):
        """Test a table present only in the previous snapshot."""
        diff = compute_diff(users_snapshot, SchemaSnapshot.empty())

        assert [c.type for c in diff.changes] == [ChangeType.TABLE_REMOVED]
        assert diff.has_destructive_changes

    def test_order_is_added_then_removed_then_per_table(self, make_snapshot):
        """Test the output order of a mixed diff."""
        before = make_snapshot({"old": {"id": "integer"}, "users": {"id": "integer"}})
        after = make_snapshot(
            {"zeta": {"id": "integer"}, "alpha": {"id": "integer"}, "users": {"id": "integer", "age": "integer"}}
        )

        diff = compute_diff(before, after)

        assert [(c.type, c.table) for c in diff.changes] == [
            (ChangeType.TABLE_ADDED, "alpha"),
            (ChangeType.TABLE_ADDED, "zeta"),
            (ChangeType.TABLE_REMOVED, "old"),
            (ChangeType.COLUMN_ADDED, "users"),
        ]

    def test_construction_order_does_not_matter(self, make_snapshot):
        """Test that dict insertion order never changes the result."""
        a = make_snapshot({"b": {"x": "text"}, "a": {"y": "text"}})
        b = make_snapshot({"a": {"y": "text"}, "b": {"x": "text"}})

        assert a == b
        assert compute_diff(SchemaSnapshot.empty(), a) == compute_diff(SchemaSnapshot.empty(), b)

    def test_tables_affected(self, make_snapshot):
        """Test tables_affected keeps first-seen order without duplicates."""
        before = make_snapshot({"users": {"id": "integer"}})
        after = make_snapshot({"users": {"id": "integer", "a": "text", "b": "integer"}, "posts": {"id": "integer"}})

        diff = compute_diff(before, after)

        assert diff.tables_affected() == ["posts", "users"]


class TestColumnDiff:
    """Test column additions, removals, renames and alterations."""

    def test_column_added_and_removed_with_different_types(self, make_snapshot):
        """Test that a type mismatch is never treated as a rename."""
        before = make_snapshot({"users": {"id": "integer", "legacy": "text"}})
        after = make_snapshot({"users": {"id": "integer", "age": "integer"}})

        diff = compute_diff(before, after)

        assert [(c.type, c.column) for c in diff.changes] == [
            (ChangeType.COLUMN_ADDED, "age"),
            (ChangeType.COLUMN_REMOVED, "legacy"),
        ]

    def test_single_same_type_pair_is_rename(self, make_snapshot):
        """Test that one removed and one added column of one type become a rename."""
        before = make_snapshot({"users": {"id": "integer", "name": "text"}})
        after = make_snapshot({"users": {"id": "integer", "full_name": "text"}})

        diff = compute_diff(before, after)

        assert len(diff.changes) == 1
        change = diff.changes[0]
        assert change.type == ChangeType.COLUMN_RENAMED
        assert change.old_column == "name"
        assert change.new_column == "full_name"
        assert change.confidence == pytest.approx(1.0)
        assert diff.renames == [change]

    def test_rename_confidence_reflects_attribute_differences(self, make_snapshot):
        """Test that a weakly similar rename is still surfaced with a lower score."""
        before = make_snapshot({"users": {"nick": {"type": "text", "unique": True}}})
        after = make_snapshot({"users": {"handle": {"type": "text", "nullable": False}}})

        change = compute_diff(before, after).changes[0]

        assert change.type == ChangeType.COLUMN_RENAMED
        # type 3 + primary 1 of 6
        assert change.confidence == pytest.approx(4 / 6)

    def test_renamed_column_keeps_attribute_changes(self, make_snapshot):
        """Test that nullability and default changes survive a rename."""
        before = make_snapshot({"users": {"a": {"type": "text", "default": "x"}}})
        after = make_snapshot({"users": {"b": {"type": "text", "nullable": False, "default": "y"}}})

        changes = compute_diff(before, after).changes

        assert [c.type for c in changes] == [
            ChangeType.COLUMN_RENAMED,
            ChangeType.COLUMN_TYPE_CHANGED,
        ]
        altered = changes[1]
        assert altered.column == "b"
        assert not altered.type_changed
        assert altered.nullable_changed
        assert altered.new_nullable is False
        assert altered.default_changed
        assert (altered.old_default, altered.new_default) == ("x", "y")

    def test_ambiguous_candidates_stay_separate(self, make_snapshot):
        """Test that two removed and two added columns are not paired."""
        before = make_snapshot({"users": {"a": "text", "b": "text"}})
        after = make_snapshot({"users": {"c": "text", "d": "text"}})

        types = [c.type for c in compute_diff(before, after).changes]

        assert ChangeType.COLUMN_RENAMED not in types
        assert types.count(ChangeType.COLUMN_ADDED) == 2
        assert types.count(ChangeType.COLUMN_REMOVED) == 2

    def test_type_change(self, make_snapshot):
        """Test a column whose type changes."""
        before = make_snapshot({"users": {"age": "integer"}})
        after = make_snapshot({"users": {"age": "bigint"}})

        change = compute_diff(before, after).changes[0]

        assert change.type == ChangeType.COLUMN_TYPE_CHANGED
        assert change.old_type == "integer"
        assert change.new_type == "bigint"
        assert change.type_changed
        assert not change.nullable_changed
        assert not change.default_changed

    def test_nullability_change(self, make_snapshot):
        """Test a column becoming NOT NULL."""
        before = make_snapshot({"users": {"email": "text"}})
        after = make_snapshot({"users": {"email": {"type": "text", "nullable": False}}})

        change = compute_diff(before, after).changes[0]

        assert change.type == ChangeType.COLUMN_TYPE_CHANGED
        assert change.old_nullable is True
        assert change.new_nullable is False
        assert change.old_type is None
        assert "not null" in change.description

    def test_default_removed(self, make_snapshot):
        """Test that dropping a default is flagged even though the new value is None."""
        before = make_snapshot({"posts": {"status": {"type": "text", "default": "draft"}}})
        after = make_snapshot({"posts": {"status": "text"}})

        change = compute_diff(before, after).changes[0]

        assert change.default_changed
        assert change.old_default == "draft"
        assert change.new_default is None

    def test_annotations_are_ignored(self, make_snapshot):
        """Test that sensitive/hidden flags are not structural."""
        before = make_snapshot({"users": {"password": "text"}})
        after = make_snapshot({"users": {"password": {"type": "text", "sensitive": True, "hidden": True}}})

        assert compute_diff(before, after).is_empty


class TestIndexAndForeignKeyDiff:
    """Test index and foreign key diffing."""

    def test_index_added_and_removed(self):
        """Test swapping one index for another."""
        columns = {"email": ColumnSnapshot(type="text"), "name": ColumnSnapshot(type="text")}
        before = SchemaSnapshot(
            tables={"users": TableSnapshot(columns=columns, indexes=[IndexSnapshot(columns=["name"])])}
        )
        after = SchemaSnapshot(
            tables={
                "users": TableSnapshot(
                    columns=columns, indexes=[IndexSnapshot(columns=["email"], unique=True)]
                )
            }
        )

        changes = compute_diff(before, after).changes

        assert [(c.type, c.index_name) for c in changes] == [
            (ChangeType.INDEX_ADDED, "idx_users_email"),
            (ChangeType.INDEX_REMOVED, "idx_users_name"),
        ]
        assert changes[0].unique is True

    def test_foreign_key_added(self, make_snapshot):
        """Test adding a foreign key to an existing table."""
        base = make_snapshot({"users": {"id": "integer"}, "posts": {"id": "integer", "author_id": "integer"}})
        fk = ForeignKeySnapshot(column="author_id", target_table="users")
        after = base.with_table(
            "posts", base.tables["posts"].model_copy(update={"foreign_keys": [fk]})
        )

        changes = compute_diff(base, after).changes

        assert len(changes) == 1
        assert changes[0].type == ChangeType.FOREIGN_KEY_ADDED
        assert changes[0].foreign_key == fk
        assert changes[0].foreign_key.target_column == "id"

    def test_foreign_key_action_change(self, make_snapshot):
        """Test that changing ON DELETE replaces the foreign key."""
        base = make_snapshot({"users": {"id": "integer"}, "posts": {"author_id": "integer"}})
        plain = base.with_table(
            "posts",
            base.tables["posts"].model_copy(
                update={"foreign_keys": [ForeignKeySnapshot(column="author_id", target_table="users")]}
            ),
        )
        cascade = base.with_table(
            "posts",
            base.tables["posts"].model_copy(
                update={
                    "foreign_keys": [
                        ForeignKeySnapshot(column="author_id", target_table="users", on_delete="CASCADE")
                    ]
                }
            ),
        )

        types = [c.type for c in compute_diff(plain, cascade).changes]

        assert types == [ChangeType.FOREIGN_KEY_ADDED, ChangeType.FOREIGN_KEY_REMOVED]


class TestEnumDiff:
    """Test enum diffing."""

    def test_enum_added_removed_and_changed(self, make_snapshot):
        """Test all three enum change kinds in one diff."""
        before = make_snapshot(enums={"role": ["admin", "user"], "legacy": ["a"]})
        after = make_snapshot(enums={"role": ["admin", "user", "guest"], "status": ["on", "off"]})

        changes = compute_diff(before, after).changes

        assert [(c.type, c.enum_name) for c in changes] == [
            (ChangeType.ENUM_ADDED, "status"),
            (ChangeType.ENUM_REMOVED, "legacy"),
            (ChangeType.ENUM_CHANGED, "role"),
        ]
        assert changes[2].added_values == ["guest"]
        assert changes[2].removed_values == []
        assert changes[1].is_destructive


class TestColumnSimilarity:
    """Test the rename similarity score."""

    def test_identical_columns(self):
        col = ColumnSnapshot(type="text", nullable=False, unique=True)
        assert column_similarity(col, col) == 1.0

    def test_nothing_shared(self):
        a = ColumnSnapshot(type="text", nullable=True, primary=False, unique=False)
        b = ColumnSnapshot(type="integer", nullable=False, primary=True, unique=True)
        assert column_similarity(a, b) == 0.0
