"""Base models for schemashift."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class SchemaShiftBaseModel(BaseModel):
    """Base model for metadata values (results, journal entries, snapshots).

    Fields are declared in snake_case and serialized with camelCase aliases,
    which is the on-disk format of the journal and snapshot files.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
        alias_generator=to_camel,
        extra="forbid",  # Strict validation for metadata
    )


class FrozenModel(SchemaShiftBaseModel):
    """Base model for immutable values that compare structurally."""

    model_config = ConfigDict(frozen=True)
