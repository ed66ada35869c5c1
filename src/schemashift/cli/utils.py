"""Utility functions for CLI commands."""

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console

from schemashift.config import Config, ProjectConfig, get_project_root
from schemashift.core.connection import DatabaseConnection
from schemashift.core.dialect import Dialect, get_dialect
from schemashift.managers.flows import SNAPSHOT_FILENAME
from schemashift.models import MigrationFile, SchemaSnapshot
from schemashift.utils.files import load_migration_files, read_text

console = Console()

# Dialects the CLI can reach through the bundled SQLite adapter
CLI_DIALECTS = ("sqlite", "d1")


def get_config_with_data():
    """Get config and load data from current directory.

    Returns:
        tuple: (config, config_data)
    """
    start = os.environ.get("SCHEMASHIFT_PROJECT_DIR") or Path.cwd()
    try:
        project_root = get_project_root(Path(start))
    except FileNotFoundError:
        console.print("[red]❌ Not in a schemashift project directory[/red]")
        raise typer.Exit(1)

    config = Config(project_root)
    try:
        config_data = config.load()
    except FileNotFoundError:
        console.print("[red]❌ Config file not found. Run 'schemashift init' first.[/red]")
        raise typer.Exit(1)

    return config, config_data


def load_snapshot(path: Path) -> Optional[SchemaSnapshot]:
    """Read a snapshot file, or None if it does not exist."""
    try:
        return SchemaSnapshot.from_json(read_text(path))
    except FileNotFoundError:
        return None
    except (ValueError, ValidationError) as e:
        console.print(f"[red]❌ Invalid schema snapshot {path}: {e}[/red]")
        raise typer.Exit(1)


class ProjectContext:
    """Everything a command needs: config, connection, dialect and snapshots."""

    def __init__(self, config: Config, config_data: ProjectConfig, connection: DatabaseConnection, dialect: Dialect):
        self.config = config
        self.config_data = config_data
        self.connection = connection
        self.dialect = dialect
        self.migrations_dir = config.project_dir / config_data.migrations_dir
        self.current_snapshot = load_snapshot(config.project_dir / config_data.schema_file)
        self.saved_snapshot = load_snapshot(self.migrations_dir / SNAPSHOT_FILENAME)

    @property
    def query_fn(self):
        return self.connection.query

    @property
    def previous_snapshot(self) -> SchemaSnapshot:
        return self.saved_snapshot or SchemaSnapshot.empty()

    @property
    def migration_files(self) -> List[MigrationFile]:
        return load_migration_files(self.migrations_dir)

    @property
    def existing_files(self) -> List[str]:
        return [f.name for f in self.migration_files]

    def require_schema(self) -> SchemaSnapshot:
        if self.current_snapshot is None:
            schema_path = self.config.project_dir / self.config_data.schema_file
            console.print(f"[red]❌ Schema file not found: {schema_path}[/red]")
            raise typer.Exit(1)
        return self.current_snapshot


@contextmanager
def project_context() -> Iterator[ProjectContext]:
    """Open the project's database and yield a ProjectContext."""
    config, config_data = get_config_with_data()

    try:
        dialect = get_dialect(config_data.dialect)
    except ValueError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)
    if dialect.name not in CLI_DIALECTS:
        console.print(
            f"[red]❌ Dialect '{dialect.name}' is not supported by the CLI. "
            f"Use one of: {', '.join(CLI_DIALECTS)}[/red]"
        )
        raise typer.Exit(1)

    connection = DatabaseConnection(config.project_dir / config_data.database)
    try:
        yield ProjectContext(config, config_data, connection, dialect)
    finally:
        connection.close()


def show_env_config():
    """Display active environment variable configuration."""
    env_vars = {
        "SCHEMASHIFT_PROJECT_DIR": os.environ.get("SCHEMASHIFT_PROJECT_DIR"),
        "SCHEMASHIFT_DATABASE": os.environ.get("SCHEMASHIFT_DATABASE"),
        "SCHEMASHIFT_DIALECT": os.environ.get("SCHEMASHIFT_DIALECT"),
        "SCHEMASHIFT_MIGRATIONS_DIR": os.environ.get("SCHEMASHIFT_MIGRATIONS_DIR"),
    }

    active = {k: v for k, v in env_vars.items() if v}
    if active:
        console.print("\n[yellow]Active environment variables:[/yellow]")
        for key, value in active.items():
            console.print(f"  {key}={value}")
