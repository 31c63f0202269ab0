"""
Pytest configuration and shared fixtures for schemastep tests.
"""

import logging
import os
import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fakes import FakeConnection, FakeDatabase, create_table_migration

from schemastep.migrations.registry import MigrationRegistry


@pytest.fixture
def fake_db():
    """An empty fake database."""
    return FakeDatabase()


@pytest.fixture
def fake_connection(fake_db):
    """Autocommit connection onto ``fake_db``."""
    return FakeConnection(fake_db)


@pytest.fixture
def registry_123():
    """Transactional migrations 1, 2 and 3."""
    return MigrationRegistry([create_table_migration(v) for v in (1, 2, 3)])


@pytest.fixture
def lines():
    """Collects echoed progress lines."""
    return []


@pytest.fixture
def isolated_config(monkeypatch, tmp_path):
    """No SCHEMASTEP_* variables and no config file in cwd or home."""
    for name in list(os.environ):
        if name.startswith("SCHEMASTEP_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    return tmp_path


@pytest.fixture(autouse=True)
def restore_root_logging():
    """Undo setup_logging() calls made by CLI tests."""
    root_logger = logging.getLogger()
    handlers = root_logger.handlers[:]
    level = root_logger.level

    yield

    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)
