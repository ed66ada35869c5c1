"""Local migration journal and sequence-number collision detection.

The journal records every migration file generated on this machine. It is
independent of any database: comparing it with the files on disk reveals two
branches that both generated the same sequence number.
"""

import json
import logging
from typing import Callable, Iterable, List

from pydantic import ValidationError

from schemashift.models import Collision, Journal, JournalEntry
from schemashift.managers.runner import JournalError, parse_migration_name

logger = logging.getLogger(__name__)

JOURNAL_FILENAME = "_journal.json"

ReadFile = Callable[[str], str]
WriteFile = Callable[[str, str], None]


def create_journal() -> Journal:
    """Empty journal at the current version."""
    return Journal()


def add_journal_entry(journal: Journal, entry: JournalEntry) -> Journal:
    """Return a new journal with ``entry`` appended; ``journal`` is unchanged."""
    return journal.model_copy(update={"migrations": [*journal.migrations, entry]})


def read_journal(read_file: ReadFile, path: str) -> Journal:
    """Load the journal at ``path``.

    A missing file is an empty journal.

    Raises:
        JournalError: If the file is not a valid journal document
    """
    try:
        content = read_file(path)
    except FileNotFoundError:
        return create_journal()

    try:
        return Journal.model_validate(json.loads(content))
    except (json.JSONDecodeError, ValidationError) as e:
        raise JournalError(f"Invalid migration journal at {path}: {e}") from e


def write_journal(write_file: WriteFile, path: str, journal: Journal) -> None:
    content = json.dumps(journal.model_dump(by_alias=True), indent=2) + "\n"
    write_file(path, content)


def _sequence_numbers(names: Iterable[str]) -> List[int]:
    numbers = []
    for name in names:
        parsed = parse_migration_name(name)
        if parsed is not None:
            numbers.append(parsed.timestamp)
    return numbers


def next_migration_number(existing_files: Iterable[str]) -> int:
    """Highest sequence number among ``existing_files`` plus one."""
    return max(_sequence_numbers(existing_files), default=0) + 1


def format_migration_name(number: int, description: str) -> str:
    """``NNNN_description.sql`` with a four-digit zero-padded number."""
    return f"{number:04d}_{description}.sql"


def detect_collisions(journal: Journal, existing_files: Iterable[str]) -> List[Collision]:
    """Find files on disk that reuse a journal entry's sequence number.

    Each collision suggests a renumbered name above every sequence number
    seen in either the journal or on disk, one higher per collision.
    Collisions are reported only; nothing is renamed.
    """
    existing_files = list(existing_files)
    journal_names = journal.names()

    by_number = {}
    for name in journal_names:
        parsed = parse_migration_name(name)
        if parsed is not None:
            by_number.setdefault(parsed.timestamp, name)

    next_number = max(_sequence_numbers([*journal_names, *existing_files]), default=0) + 1
    collisions = []

    for filename in existing_files:
        parsed = parse_migration_name(filename)
        if parsed is None:
            continue
        existing = by_number.get(parsed.timestamp)
        if existing is None or existing == filename:
            continue

        description = filename.split("_", 1)[1][: -len(".sql")]
        collision = Collision(
            sequence_number=parsed.timestamp,
            existing_name=existing,
            conflicting_name=filename,
            suggested_name=format_migration_name(next_number, description),
        )
        logger.warning(
            f"Migration {filename} reuses sequence number {parsed.timestamp} "
            f"of {existing}; suggested name {collision.suggested_name}"
        )
        collisions.append(collision)
        next_number += 1

    return collisions
