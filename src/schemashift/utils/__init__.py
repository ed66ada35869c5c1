"""Utility modules for schemashift."""

from schemashift.utils.naming import (
    auto_migration_name,
    validate_migration_name,
    clean_name,
    is_valid_name,
    InvalidNameError,
)

__all__ = [
    "auto_migration_name",
    "validate_migration_name",
    "clean_name",
    "is_valid_name",
    "InvalidNameError",
]
