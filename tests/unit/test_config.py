"""Tests for configuration management."""

import shutil
import tempfile
from pathlib import Path

import pytest

from schemashift.config import Config, ProjectConfig, get_project_root


class TestConfig:
    """Test configuration management."""

    @pytest.fixture
    def temp_dir(self):
        """Create a temporary directory for testing."""
        temp = tempfile.mkdtemp()
        yield Path(temp)
        shutil.rmtree(temp)

    def test_init_project(self, temp_dir):
        """Test initializing a new project."""
        config = Config(temp_dir)

        # Should not exist initially
        assert not config.exists

        project_config = config.init_project()

        assert project_config.dialect == "sqlite"
        assert project_config.database == "app.db"
        assert config.exists
        assert (temp_dir / ".schemashift" / "config.toml").exists()
        assert (temp_dir / "migrations").is_dir()

    def test_init_existing_project(self, temp_dir):
        Config(temp_dir).init_project()

        with pytest.raises(FileExistsError):
            Config(temp_dir).init_project()

    def test_save_and_load(self, temp_dir):
        config = Config(temp_dir)
        config.save(ProjectConfig(dialect="d1", database="data/edge.db", history_table="history"))

        loaded = Config(temp_dir).load()

        assert loaded.dialect == "d1"
        assert loaded.database == "data/edge.db"
        assert loaded.history_table == "history"
        assert loaded.migrations_dir == "migrations"

    def test_load_missing(self, temp_dir):
        with pytest.raises(FileNotFoundError):
            Config(temp_dir).load()

    def test_save_without_config(self, temp_dir):
        with pytest.raises(ValueError, match="No configuration to save"):
            Config(temp_dir).save()

    def test_paths(self, temp_dir):
        config = Config(temp_dir)
        config.init_project(database="dev.db")

        assert config.database_path == temp_dir / "dev.db"
        assert config.migrations_path == temp_dir / "migrations"
        assert config.schema_path == temp_dir / "schema.json"

    def test_extra_fields_are_kept(self, temp_dir):
        config = Config(temp_dir)
        config.save(ProjectConfig(owner="platform"))

        assert Config(temp_dir).load().model_dump()["owner"] == "platform"


class TestEnvironmentOverrides:
    """Test SCHEMASHIFT_* environment variables."""

    @pytest.fixture
    def project(self, tmp_path):
        Config(tmp_path).init_project()
        return tmp_path

    def test_overrides(self, project, monkeypatch):
        monkeypatch.setenv("SCHEMASHIFT_DATABASE", "other.db")
        monkeypatch.setenv("SCHEMASHIFT_DIALECT", "d1")
        monkeypatch.setenv("SCHEMASHIFT_MIGRATIONS_DIR", "db/migrations")

        loaded = Config(project).load()

        assert loaded.database == "other.db"
        assert loaded.dialect == "d1"
        assert loaded.migrations_dir == "db/migrations"

    def test_project_dir_variable(self, project, monkeypatch):
        monkeypatch.setenv("SCHEMASHIFT_PROJECT_DIR", str(project))

        assert Config().project_dir == project


class TestGetProjectRoot:
    """Test finding the project root."""

    def test_find_from_subdirectory(self, tmp_path):
        Config(tmp_path).init_project()
        nested = tmp_path / "src" / "app"
        nested.mkdir(parents=True)

        assert get_project_root(nested) == tmp_path.resolve()

    def test_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_project_root(tmp_path)
