"""Tests for migration name validation and automatic naming."""

import pytest

from schemashift.models import ChangeType, ForeignKeySnapshot, SchemaChange
from schemashift.utils.naming import (
    InvalidNameError,
    auto_migration_name,
    clean_name,
    describe_change,
    is_valid_name,
    validate_migration_name,
)


class TestValidateMigrationName:
    """Test migration name validation."""

    @pytest.mark.parametrize(
        "name", ["add-users-table", "create_cli_users", "a", "v2", "update-schema"]
    )
    def test_valid_names(self, name):
        validate_migration_name(name)
        assert is_valid_name(name)

    def test_empty_name(self):
        with pytest.raises(InvalidNameError, match="cannot be empty"):
            validate_migration_name("")

    def test_too_long(self):
        with pytest.raises(InvalidNameError, match="cannot exceed"):
            validate_migration_name("a" * 101)

    @pytest.mark.parametrize("name", ["../etc", "a/b", "a\\b", "~home"])
    def test_path_traversal(self, name):
        """Test that path characters are rejected."""
        with pytest.raises(InvalidNameError, match="Security violation"):
            validate_migration_name(name)

    def test_control_characters(self):
        with pytest.raises(InvalidNameError, match="control characters"):
            validate_migration_name("add\nusers")

    def test_uppercase_suggests_lowercase(self):
        with pytest.raises(InvalidNameError, match="Use 'addusers'"):
            validate_migration_name("AddUsers")

    @pytest.mark.parametrize("name", ["-add", "add-", "add users", "add.users"])
    def test_invalid_characters(self, name):
        assert not is_valid_name(name)

    def test_invalid_name_error_is_value_error(self):
        assert issubclass(InvalidNameError, ValueError)


class TestCleanName:
    def test_clean_name(self):
        assert clean_name("Add Users Table!") == "add-users-table"
        assert clean_name("--drop__old--") == "drop-old"


class TestAutoNaming:
    """Test names derived from change sets."""

    @pytest.mark.parametrize(
        "change,expected",
        [
            (SchemaChange(type=ChangeType.TABLE_ADDED, table="users"), "add-users-table"),
            (SchemaChange(type=ChangeType.TABLE_REMOVED, table="sessions"), "drop-sessions-table"),
            (SchemaChange(type=ChangeType.COLUMN_ADDED, table="users", column="age"), "add-age-to-users"),
            (SchemaChange(type=ChangeType.COLUMN_REMOVED, table="users", column="age"), "drop-age-from-users"),
            (
                SchemaChange(
                    type=ChangeType.COLUMN_RENAMED,
                    table="users",
                    old_column="name",
                    new_column="full_name",
                    confidence=1.0,
                ),
                "rename-name-to-full_name-in-users",
            ),
            (SchemaChange(type=ChangeType.COLUMN_TYPE_CHANGED, table="users", column="age"), "alter-age-in-users"),
            (SchemaChange(type=ChangeType.INDEX_ADDED, table="users", index_name="idx_users_email"), "add-idx_users_email-index"),
            (
                SchemaChange(
                    type=ChangeType.FOREIGN_KEY_ADDED,
                    table="posts",
                    foreign_key=ForeignKeySnapshot(column="author_id", target_table="users"),
                ),
                "add-posts-author_id-foreign-key",
            ),
            (SchemaChange(type=ChangeType.ENUM_CHANGED, enum_name="role"), "alter-role-enum"),
        ],
    )
    def test_single_change(self, change, expected):
        assert describe_change(change) == expected
        assert auto_migration_name([change]) == expected

    def test_several_changes(self):
        changes = [
            SchemaChange(type=ChangeType.TABLE_ADDED, table="users"),
            SchemaChange(type=ChangeType.TABLE_ADDED, table="posts"),
        ]
        assert auto_migration_name(changes) == "update-schema"

    def test_no_changes(self):
        assert auto_migration_name([]) == "update-schema"

    def test_mixed_case_table_is_lowercased(self):
        change = SchemaChange(type=ChangeType.TABLE_ADDED, table="UserProfiles")
        assert auto_migration_name([change]) == "add-userprofiles-table"

    def test_unusable_name_falls_back(self):
        """Test that a description too long for a file name is replaced."""
        change = SchemaChange(type=ChangeType.TABLE_ADDED, table="t" * 120)
        assert auto_migration_name([change]) == "update-schema"
