"""Configuration management for schemashift projects."""

import os
from pathlib import Path
from typing import Optional, Dict, Any
import toml
from pydantic import BaseModel, Field, ConfigDict

from schemashift.core.dialect import DEFAULT_HISTORY_TABLE

CONFIG_DIR_NAME = ".schemashift"


class ProjectConfig(BaseModel):
    """Configuration for a schemashift project stored in .schemashift/config.toml."""

    model_config = ConfigDict(
        extra="allow"
    )  # Allow additional fields for extensibility

    dialect: str = Field(default="sqlite", description="Target database dialect")
    database: str = Field(
        default="app.db", description="SQLite database file, relative to the project"
    )
    migrations_dir: str = Field(
        default="migrations", description="Directory holding migration files"
    )
    schema_file: str = Field(
        default="schema.json", description="JSON schema snapshot the code defines"
    )
    history_table: str = Field(
        default=DEFAULT_HISTORY_TABLE, description="Migration history table name"
    )


class Config:
    """Manages schemashift project configuration."""

    def __init__(self, project_dir: Optional[Path] = None):
        """Initialize config manager.

        Args:
            project_dir: Path to project directory. If None, uses SCHEMASHIFT_PROJECT_DIR env var or current directory.
        """
        if project_dir is None:
            env_dir = os.environ.get("SCHEMASHIFT_PROJECT_DIR")
            if env_dir:
                project_dir = Path(env_dir)

        self.project_dir = Path(project_dir) if project_dir else Path.cwd()
        self.config_dir = self.project_dir / CONFIG_DIR_NAME
        self.config_path = self.config_dir / "config.toml"
        self._config: Optional[ProjectConfig] = None

    @property
    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()

    def load(self) -> ProjectConfig:
        """Load configuration from disk, with environment variable overrides."""
        if not self.exists:
            raise FileNotFoundError(f"Config file not found at {self.config_path}")

        with open(self.config_path, "r") as f:
            data = toml.load(f)

        self._apply_env_overrides(data)

        self._config = ProjectConfig(**data)
        return self._config

    def _apply_env_overrides(self, data: Dict[str, Any]) -> None:
        """Apply environment variable overrides to configuration data."""
        if env_db := os.environ.get("SCHEMASHIFT_DATABASE"):
            data["database"] = env_db

        if env_dialect := os.environ.get("SCHEMASHIFT_DIALECT"):
            data["dialect"] = env_dialect

        if env_migrations := os.environ.get("SCHEMASHIFT_MIGRATIONS_DIR"):
            data["migrations_dir"] = env_migrations

    def save(self, config: Optional[ProjectConfig] = None) -> None:
        """Save configuration to disk.

        Args:
            config: Configuration to save. If None, saves current config.
        """
        if config:
            self._config = config

        if not self._config:
            raise ValueError("No configuration to save")

        self.config_dir.mkdir(parents=True, exist_ok=True)

        with open(self.config_path, "w") as f:
            toml.dump(self._config.model_dump(), f)

    def init_project(self, dialect: str = "sqlite", database: str = "app.db") -> ProjectConfig:
        """Initialize a new project with default configuration.

        Creates the config file and the migrations directory.

        Raises:
            FileExistsError: If the project is already initialized
        """
        if self.exists:
            raise FileExistsError(f"Project already exists at {self.project_dir}")

        config = ProjectConfig(dialect=dialect, database=database)
        self.save(config)
        (self.project_dir / config.migrations_dir).mkdir(parents=True, exist_ok=True)
        return config

    @property
    def migrations_path(self) -> Path:
        return self.project_dir / self._loaded().migrations_dir

    @property
    def database_path(self) -> Path:
        return self.project_dir / self._loaded().database

    @property
    def schema_path(self) -> Path:
        return self.project_dir / self._loaded().schema_file

    def _loaded(self) -> ProjectConfig:
        if self._config is None:
            return self.load()
        return self._config


def get_project_root(start_path: Path) -> Path:
    """Find the project root by looking for .schemashift directory.

    Args:
        start_path: Path to start searching from

    Returns:
        Path to project root

    Raises:
        FileNotFoundError: If no project root found
    """
    current = Path(start_path).resolve()

    while current != current.parent:
        if (current / CONFIG_DIR_NAME).exists():
            return current
        current = current.parent

    raise FileNotFoundError(f"No schemashift project found from {start_path}")
