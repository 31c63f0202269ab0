"""Migration definitions."""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

from ..database.deadline import Deadline

# action(deadline, handle): handle is the open Transaction for transactional
# migrations and the shared Connection for non-transactional ones.
Action = Callable[[Deadline, Any], None]


class Direction(str, Enum):
    """Direction a migration is executed in."""

    UP = "up"
    DOWN = "down"


class MigrationStatus(str, Enum):
    """Whether a migration is reflected in the ledger."""

    APPLIED = "applied"
    PENDING = "pending"


@dataclass(frozen=True)
class _Mode:
    up: Action | None = None
    down: Action | None = None

    transactional: ClassVar[bool]
    label: ClassVar[str]

    def action(self, direction: Direction) -> Action:
        return self.up if direction is Direction.UP else self.down


@dataclass(frozen=True)
class Transactional(_Mode):
    """Actions run inside a transaction together with the ledger update."""

    transactional: ClassVar[bool] = True
    label: ClassVar[str] = "transactional"


@dataclass(frozen=True)
class NonTransactional(_Mode):
    """Actions run directly on the shared connection, without atomicity.

    For statements that refuse to run in a transaction block, such as
    ``CREATE INDEX CONCURRENTLY``.
    """

    transactional: ClassVar[bool] = False
    label: ClassVar[str] = "non-transactional"


MigrationMode = Transactional | NonTransactional


@dataclass(frozen=True)
class MigrationDefinition:
    """One versioned schema change."""

    version: int
    mode: MigrationMode | None
    description: str = ""

    def __str__(self) -> str:
        if self.description:
            return f"Migration {self.version}: {self.description}"
        return f"Migration {self.version}"


@dataclass(frozen=True)
class LedgerEntry:
    """A row of the ledger: a version whose up action has committed."""

    version: int
    applied_at: datetime | None = None


@dataclass(frozen=True)
class StatusRow:
    """A registry entry classified against the ledger."""

    version: int
    status: MigrationStatus
    description: str = ""
    applied_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "status": self.status.value,
            "description": self.description,
            "applied_at": self.applied_at.isoformat() if self.applied_at else None,
        }
