"""Configuration management module."""

from .loader import MigrationConfig, find_config_file, load_config

__all__ = ["MigrationConfig", "load_config", "find_config_file"]
