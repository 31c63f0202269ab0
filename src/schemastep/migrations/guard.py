"""Version guard: re-checks the ledger right before a migration runs."""

from ..database.capabilities import QueryExec
from ..database.deadline import Deadline
from ..utils.logging import ConcurrencyConflictError
from . import ledger
from .migration import Direction


def check_version(direction: Direction, version: int, current_version: int) -> None:
    """Raise ConcurrencyConflictError if ``version`` can't move in ``direction``.

    Going up, the candidate must be above the ledger's current version.
    Going down, it must not be above it.
    """
    if direction is Direction.UP and version <= current_version:
        relation = "<="
    elif direction is Direction.DOWN and version > current_version:
        relation = ">"
    else:
        return

    raise ConcurrencyConflictError(
        f"database version changed while applying migration {direction.value}: "
        f"migration version {version} {relation} current DB version {current_version}",
        context={
            "version": version,
            "direction": direction.value,
            "current_version": current_version,
        },
    )


def guard(
    db: QueryExec,
    direction: Direction,
    version: int,
    timeout: float,
    parent: Deadline | None = None,
) -> int:
    """Re-read the ledger through ``db`` and check ``version`` against it.

    Returns the version that was read.
    """
    current_version = ledger.get_current_version(db, timeout, parent)
    check_version(direction, version, current_version)
    return current_version
