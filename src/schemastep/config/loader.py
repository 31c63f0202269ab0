"""Configuration loading and management."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..utils.logging import ConfigurationError

DEFAULT_TIMEOUT = 10.0
OUTPUT_FORMATS = ("human", "json")


class MigrationConfig(BaseModel):
    """Configuration model for schemastep."""

    # Database
    database_url: str | None = Field(
        default=None, description="SQLAlchemy URL of the database to migrate"
    )
    migrations_path: str | None = Field(
        default=None, description="Directory containing migration modules"
    )
    timeout: float = Field(
        default=DEFAULT_TIMEOUT,
        description="Base per-operation timeout in seconds",
    )

    # Locking
    advisory_lock: bool = Field(
        default=False, description="Hold a PostgreSQL advisory lock while migrating"
    )
    lock_key: str = Field(
        default="schemastep_advisory_lock", description="Advisory lock key"
    )

    # Logging
    log_level: str = Field(default="WARNING", description="Logging level")
    log_file: str | None = Field(default=None, description="Log file path")
    structured_logging: bool = Field(
        default=False, description="Emit logs as JSON lines"
    )

    # Output formatting
    default_output_format: str = Field(
        default="human", description="Default output format (human or json)"
    )

    @field_validator("timeout")
    @classmethod
    def default_non_positive_timeout(cls, value: float) -> float:
        return value if value > 0 else DEFAULT_TIMEOUT

    @field_validator("default_output_format")
    @classmethod
    def validate_output_format(cls, value: str) -> str:
        value = value.lower()
        if value not in OUTPUT_FORMATS:
            raise ValueError(f"must be one of: {', '.join(OUTPUT_FORMATS)}")
        return value


def find_config_file(custom_path: str | None = None) -> Path | None:
    """Find configuration file in standard locations."""
    if custom_path:
        path = Path(custom_path).expanduser()
        if path.exists():
            return path
        raise FileNotFoundError(f"Config file not found: {custom_path}")

    search_paths = [
        Path.cwd() / "schemastep.yaml",
        Path.cwd() / "schemastep.yml",
        Path.home() / ".config" / "schemastep" / "config.yaml",
        Path.home() / ".schemastep.yaml",
    ]

    for path in search_paths:
        if path.exists():
            return path

    return None


def load_config_file(config_path: Path) -> dict[str, Any]:
    """Load configuration from YAML file."""
    try:
        with open(config_path) as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Invalid YAML in config file {config_path}: {e}"
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read config file {config_path}: {e}"
        ) from e


def load_env_vars() -> dict[str, Any]:
    """Load configuration from environment variables."""
    config: dict[str, Any] = {}
    prefix = "SCHEMASTEP_"

    env_mappings = {
        f"{prefix}DATABASE_URL": "database_url",
        f"{prefix}MIGRATIONS_PATH": "migrations_path",
        f"{prefix}TIMEOUT": "timeout",
        f"{prefix}ADVISORY_LOCK": "advisory_lock",
        f"{prefix}LOCK_KEY": "lock_key",
        f"{prefix}LOG_LEVEL": "log_level",
        f"{prefix}LOG_FILE": "log_file",
        f"{prefix}STRUCTURED_LOGGING": "structured_logging",
        f"{prefix}DEFAULT_OUTPUT_FORMAT": "default_output_format",
    }

    for env_var, config_key in env_mappings.items():
        if env_var in os.environ:
            env_value = os.environ[env_var]
            if config_key == "timeout":
                try:
                    config[config_key] = float(env_value)
                except ValueError:
                    continue
            elif config_key in ("advisory_lock", "structured_logging"):
                config[config_key] = env_value.lower() in ("true", "1", "yes", "on")
            else:
                config[config_key] = env_value

    return config


def load_config(
    config_path: str | None = None,
    profile: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> MigrationConfig:
    """Load configuration from file and environment variables.

    Precedence order (highest to lowest):
    1. CLI flag overrides
    2. Environment variables
    3. Configuration file (with profile support)
    4. Default values
    """
    config_data: dict[str, Any] = {}

    config_file = find_config_file(config_path)
    if config_file:
        file_data = load_config_file(config_file)
        if not isinstance(file_data, dict):
            raise ConfigurationError(
                f"Config file {config_file} must contain a mapping"
            )

        config_data.update({k: v for k, v in file_data.items() if k != "profiles"})

        if profile:
            profiles = file_data.get("profiles") or {}
            if profile not in profiles:
                raise ConfigurationError(
                    f"Unknown configuration profile: {profile}",
                    context={"config_file": str(config_file)},
                )
            config_data.update(profiles[profile])

    config_data.update(load_env_vars())

    if cli_overrides:
        config_data.update(cli_overrides)

    try:
        return MigrationConfig(**config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
