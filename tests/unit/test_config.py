"""Tests for configuration loading."""

from unittest.mock import patch

import pytest
import yaml
from pydantic import ValidationError

from schemastep.config.loader import (
    DEFAULT_TIMEOUT,
    MigrationConfig,
    find_config_file,
    load_config,
    load_config_file,
    load_env_vars,
)
from schemastep.utils.logging import ConfigurationError


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "custom.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "database_url": "sqlite:///app.db",
                "migrations_path": "migrations",
                "timeout": 30,
                "profiles": {
                    "production": {
                        "database_url": "postgresql://db/app",
                        "advisory_lock": True,
                    }
                },
            }
        )
    )
    return path


class TestMigrationConfig:
    """Test the configuration model."""

    def test_defaults(self):
        """Test default values."""
        config = MigrationConfig()

        assert config.database_url is None
        assert config.timeout == DEFAULT_TIMEOUT
        assert config.advisory_lock is False
        assert config.log_level == "WARNING"

    @pytest.mark.parametrize("timeout", [0, -5])
    def test_non_positive_timeout_uses_default(self, timeout):
        """Test a zero or negative timeout falls back to the default."""
        assert MigrationConfig(timeout=timeout).timeout == DEFAULT_TIMEOUT

    def test_output_format_normalised(self):
        """Test the output format is case-insensitive."""
        assert MigrationConfig(default_output_format="JSON").default_output_format == (
            "json"
        )

    def test_unknown_output_format(self):
        """Test only human and json are accepted."""
        with pytest.raises(ValidationError, match="must be one of: human, json"):
            MigrationConfig(default_output_format="xml")


class TestConfigFiles:
    """Test finding and reading config files."""

    def test_custom_path_missing(self, tmp_path):
        """Test an explicit path must exist."""
        with pytest.raises(FileNotFoundError):
            find_config_file(str(tmp_path / "missing.yaml"))

    def test_finds_file_in_cwd(self, isolated_config):
        """Test schemastep.yaml in the working directory is found."""
        (isolated_config / "schemastep.yaml").write_text("timeout: 3\n")

        assert find_config_file() == isolated_config / "schemastep.yaml"

    def test_no_file(self, isolated_config):
        """Test None when no file exists."""
        assert find_config_file() is None

    def test_invalid_yaml(self, tmp_path):
        """Test malformed YAML is a configuration error."""
        path = tmp_path / "bad.yaml"
        path.write_text("timeout: [1, 2\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config_file(path)

    def test_empty_file(self, tmp_path):
        """Test an empty file yields an empty mapping."""
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_config_file(path) == {}


class TestEnvVars:
    """Test environment variable loading."""

    def test_env_mapping(self, isolated_config, monkeypatch):
        """Test variables are mapped and converted."""
        monkeypatch.setenv("SCHEMASTEP_DATABASE_URL", "sqlite:///env.db")
        monkeypatch.setenv("SCHEMASTEP_TIMEOUT", "2.5")
        monkeypatch.setenv("SCHEMASTEP_ADVISORY_LOCK", "yes")

        assert load_env_vars() == {
            "database_url": "sqlite:///env.db",
            "timeout": 2.5,
            "advisory_lock": True,
        }

    def test_invalid_timeout_ignored(self, isolated_config, monkeypatch):
        """Test a non-numeric timeout is skipped."""
        monkeypatch.setenv("SCHEMASTEP_TIMEOUT", "soon")

        assert "timeout" not in load_env_vars()


class TestLoadConfig:
    """Test layered configuration loading."""

    def test_file_values(self, isolated_config, config_file):
        """Test values come from the file."""
        config = load_config(str(config_file))

        assert config.database_url == "sqlite:///app.db"
        assert config.timeout == 30

    def test_profile_overrides_file(self, isolated_config, config_file):
        """Test a profile overlays the base values."""
        config = load_config(str(config_file), profile="production")

        assert config.database_url == "postgresql://db/app"
        assert config.advisory_lock is True
        assert config.migrations_path == "migrations"

    def test_unknown_profile(self, isolated_config, config_file):
        """Test an unknown profile is an error."""
        with pytest.raises(ConfigurationError, match="Unknown configuration profile"):
            load_config(str(config_file), profile="staging")

    def test_precedence(self, isolated_config, config_file, monkeypatch):
        """Test CLI overrides beat environment, which beats the file."""
        monkeypatch.setenv("SCHEMASTEP_DATABASE_URL", "sqlite:///env.db")
        monkeypatch.setenv("SCHEMASTEP_TIMEOUT", "5")

        config = load_config(str(config_file), cli_overrides={"timeout": 1.0})

        assert config.database_url == "sqlite:///env.db"
        assert config.timeout == 1.0

    def test_invalid_value(self, isolated_config):
        """Test validation failures become configuration errors."""
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_config(cli_overrides={"advisory_lock": "maybe"})

    def test_non_mapping_file(self, isolated_config, tmp_path):
        """Test a file holding a list is rejected."""
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            load_config(str(path))

    def test_defaults_without_file(self, isolated_config):
        """Test defaults apply with nothing configured."""
        with patch("schemastep.config.loader.find_config_file", return_value=None):
            config = load_config()

        assert config == MigrationConfig()
