"""Journal models: the local ledger of generated migration files."""

from typing import List

from pydantic import Field

from .base import FrozenModel

JOURNAL_VERSION = 1


class JournalEntry(FrozenModel):
    """One generated migration file as recorded on the developer's machine."""

    name: str = Field(description="Migration file name, NNNN_description.sql")
    description: str = Field(default="", description="Human description")
    created_at: str = Field(description="ISO-8601 creation time")
    checksum: str = Field(description="SHA-256 hex digest of the file's SQL")


class Journal(FrozenModel):
    """Versioned list of journal entries."""

    version: int = JOURNAL_VERSION
    migrations: List[JournalEntry] = Field(default_factory=list)

    def names(self) -> List[str]:
        return [entry.name for entry in self.migrations]


class Collision(FrozenModel):
    """Two differently named migrations claiming the same sequence number."""

    sequence_number: int
    existing_name: str = Field(description="Name recorded in the local journal")
    conflicting_name: str = Field(description="Name now found on disk")
    suggested_name: str = Field(description="Renumbered name proposed for review")

    @property
    def conflicting_names(self) -> List[str]:
        return [self.existing_name, self.conflicting_name]
