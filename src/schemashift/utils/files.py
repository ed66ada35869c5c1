"""File helpers backing the engine's injected read/write callables."""

from pathlib import Path
from typing import List, Union

from schemashift.managers.runner import parse_migration_name
from schemashift.models import MigrationFile


def read_text(path: Union[str, Path]) -> str:
    """Read a UTF-8 text file; raises FileNotFoundError if missing."""
    return Path(path).read_text(encoding="utf-8")


def write_text(path: Union[str, Path], content: str) -> None:
    """Write a UTF-8 text file, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def list_migration_names(migrations_dir: Union[str, Path]) -> List[str]:
    """Names of the ``NNNN_description.sql`` files in a directory, by sequence."""
    directory = Path(migrations_dir)
    if not directory.is_dir():
        return []
    parsed = [parse_migration_name(p.name) for p in directory.iterdir() if p.is_file()]
    return [f.name for f in sorted((f for f in parsed if f), key=lambda f: f.timestamp)]


def load_migration_files(migrations_dir: Union[str, Path]) -> List[MigrationFile]:
    """Read every migration file in a directory, by sequence."""
    directory = Path(migrations_dir)
    files = []
    for name in list_migration_names(directory):
        parsed = parse_migration_name(name)
        files.append(
            MigrationFile(name=name, sql=read_text(directory / name), timestamp=parsed.timestamp)
        )
    return files
