"""schemastep: versioned schema migrations with a transactional ledger."""

__version__ = "0.1.0"

from .database import Deadline, connect
from .migrations import (
    MigrationDefinition,
    MigrationManager,
    MigrationRegistry,
    NonTransactional,
    Transactional,
    load_registry,
)

__all__ = [
    "Deadline",
    "MigrationDefinition",
    "MigrationManager",
    "MigrationRegistry",
    "NonTransactional",
    "Transactional",
    "__version__",
    "connect",
    "load_registry",
]
