"""Database migration engine."""

from .coordinator import apply_migrations, rollback_migration
from .manager import MigrationManager
from .migration import (
    Direction,
    LedgerEntry,
    MigrationDefinition,
    MigrationStatus,
    NonTransactional,
    StatusRow,
    Transactional,
)
from .registry import MigrationRegistry, load_registry
from .reporter import report_status, report_version

__all__ = [
    "Direction",
    "LedgerEntry",
    "MigrationDefinition",
    "MigrationManager",
    "MigrationRegistry",
    "MigrationStatus",
    "NonTransactional",
    "StatusRow",
    "Transactional",
    "apply_migrations",
    "load_registry",
    "report_status",
    "report_version",
    "rollback_migration",
]
