"""Migration name validation and automatic naming.

Ensures migration descriptions are safe to use in file names and derives a
descriptive name from a change set when none is given.
"""

import re
from typing import Sequence

from schemashift.models import ChangeType, SchemaChange

# Migration descriptions: lowercase, digits, dash and underscore
VALID_MIGRATION_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9\-_]*[a-z0-9]$|^[a-z0-9]$")

MAX_NAME_LENGTH = 100

# Name used when a migration contains more than one change
MULTI_CHANGE_NAME = "update-schema"


class InvalidNameError(ValueError):
    """Raised when a name doesn't meet validation requirements."""

    pass


def validate_migration_name(name: str) -> None:
    """Validate a migration description.

    Valid names must:
    - Contain only lowercase letters (a-z), numbers (0-9), dash (-), and underscore (_)
    - Start and end with alphanumeric characters
    - Not exceed 100 characters
    - Not contain path separators

    Raises:
        InvalidNameError: If the name is invalid
    """
    if not name:
        raise InvalidNameError("Migration name cannot be empty")

    if len(name) > MAX_NAME_LENGTH:
        raise InvalidNameError(f"Migration name cannot exceed {MAX_NAME_LENGTH} characters")

    if ".." in name or "/" in name or "\\" in name or "~" in name:
        raise InvalidNameError(
            f"Security violation: migration name '{name}' contains "
            f"forbidden path traversal characters"
        )

    if "\x00" in name or any(ord(c) < 32 for c in name):
        raise InvalidNameError(
            "Security violation: migration name contains invalid control characters"
        )

    if name != name.lower():
        raise InvalidNameError(
            f"Migration name must be lowercase. Use '{name.lower()}' instead of '{name}'"
        )

    if not VALID_MIGRATION_NAME_PATTERN.match(name):
        raise InvalidNameError(
            f"Invalid migration name '{name}'. "
            f"Names must contain only lowercase letters (a-z), numbers (0-9), "
            f"dash (-), and underscore (_). "
            f"Names must start and end with alphanumeric characters."
        )


def clean_name(name: str) -> str:
    """Clean a name to make it valid if possible.

    This performs basic cleaning:
    - Convert to lowercase
    - Replace spaces with dashes
    - Remove invalid characters

    Note:
        This is a best-effort cleaning. The result should still be validated
        with validate_migration_name() before use.
    """
    cleaned = name.lower()
    cleaned = cleaned.replace(" ", "-")
    cleaned = re.sub(r"[^a-z0-9\-_]", "", cleaned)
    cleaned = re.sub(r"[-_]{2,}", "-", cleaned)
    cleaned = cleaned.strip("-_")
    return cleaned


def is_valid_name(name: str) -> bool:
    try:
        validate_migration_name(name)
        return True
    except InvalidNameError:
        return False


def describe_change(change: SchemaChange) -> str:
    """Short kebab-case description of a single change."""
    t = change.type
    if t == ChangeType.TABLE_ADDED:
        return f"add-{change.table}-table"
    if t == ChangeType.TABLE_REMOVED:
        return f"drop-{change.table}-table"
    if t == ChangeType.COLUMN_ADDED:
        return f"add-{change.column}-to-{change.table}"
    if t == ChangeType.COLUMN_REMOVED:
        return f"drop-{change.column}-from-{change.table}"
    if t == ChangeType.COLUMN_RENAMED:
        return f"rename-{change.old_column}-to-{change.new_column}-in-{change.table}"
    if t == ChangeType.COLUMN_TYPE_CHANGED:
        return f"alter-{change.column}-in-{change.table}"
    if t == ChangeType.INDEX_ADDED:
        return f"add-{change.index_name}-index"
    if t == ChangeType.INDEX_REMOVED:
        return f"drop-{change.index_name}-index"
    if t == ChangeType.FOREIGN_KEY_ADDED:
        return f"add-{change.table}-{change.foreign_key.column}-foreign-key"
    if t == ChangeType.FOREIGN_KEY_REMOVED:
        return f"drop-{change.table}-{change.foreign_key.column}-foreign-key"
    if t == ChangeType.ENUM_ADDED:
        return f"add-{change.enum_name}-enum"
    if t == ChangeType.ENUM_CHANGED:
        return f"alter-{change.enum_name}-enum"
    if t == ChangeType.ENUM_REMOVED:
        return f"drop-{change.enum_name}-enum"
    return MULTI_CHANGE_NAME


def auto_migration_name(changes: Sequence[SchemaChange]) -> str:
    """Name a migration after its change set.

    A single change gets a descriptive name such as ``add-users-table``;
    anything else is ``update-schema``.
    """
    if len(changes) != 1:
        return MULTI_CHANGE_NAME
    name = clean_name(describe_change(changes[0]))
    if not is_valid_name(name):
        return MULTI_CHANGE_NAME
    return name
