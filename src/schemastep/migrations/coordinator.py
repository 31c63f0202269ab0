"""Apply and rollback drivers.

Both read the ledger's current version once to plan, then hand each
candidate to the executor for its mode. The executor's guard re-checks the
ledger before anything is changed, so drift after planning aborts the
candidate instead of corrupting the ledger.

Runs are strictly sequential. Apply stops at the first failure: later
migrations assume earlier ones committed, so skipping past a failure is
never attempted. Whatever committed before the failure stays applied.
"""

from collections.abc import Callable

from ..database.capabilities import Connection
from ..utils.logging import SchemaStepError
from . import ledger
from .executor import executor_for
from .logging_utils import log_progress
from .migration import Direction
from .registry import MigrationRegistry

Echo = Callable[[str], None]

NO_MIGRATIONS_TO_APPLY = "No migrations to apply"
NO_MIGRATIONS_TO_ROLL_BACK = "No migrations to roll back"


def _emit(echo: Echo | None, line: str, **kwargs) -> None:
    log_progress(line, **kwargs)
    if echo is not None:
        echo(line)


def apply_migrations(
    registry: MigrationRegistry,
    connection: Connection,
    timeout: float,
    limit: int = 0,
    echo: Echo | None = None,
) -> int:
    """Apply pending migrations in ascending version order.

    Args:
        registry: Validated migration registry.
        connection: Shared migration connection.
        timeout: Base per-operation timeout in seconds.
        limit: Maximum number of migrations to apply; 0 applies all.
        echo: Receives one line per applied migration and a summary line.

    Returns:
        Number of migrations applied.

    Raises:
        SchemaStepError: On the first failure. ``context["applied_versions"]``
            lists what this run committed before it.
    """
    if limit < 0:
        raise ValueError(f"limit must be >= 0, got {limit}")

    current_version = ledger.get_current_version(connection, timeout)
    applied: list[int] = []

    for definition in registry.ascending():
        if definition.version <= current_version:
            continue

        executor = executor_for(definition, connection, timeout)
        try:
            executor.execute(definition, Direction.UP)
        except SchemaStepError as e:
            e.context["applied_versions"] = list(applied)
            raise

        applied.append(definition.version)
        _emit(
            echo,
            f"[x] Applied migration version {definition.version}",
            migration_version=definition.version,
        )

        if limit > 0 and len(applied) == limit:
            break

    if not applied:
        _emit(echo, NO_MIGRATIONS_TO_APPLY)
    else:
        _emit(echo, f"{len(applied)} migration(s) applied", applied=applied)

    return len(applied)


def rollback_migration(
    registry: MigrationRegistry,
    connection: Connection,
    timeout: float,
    echo: Echo | None = None,
) -> int | None:
    """Roll back the highest applied migration, and only that one.

    Returns:
        The version rolled back, or None when nothing was applied.
    """
    current_version = ledger.get_current_version(connection, timeout)

    for definition in registry.descending():
        if definition.version > current_version:
            continue

        executor = executor_for(definition, connection, timeout)
        executor.execute(definition, Direction.DOWN)

        _emit(
            echo,
            f"[x]-->[ ] Rolled back migration version {definition.version}",
            migration_version=definition.version,
        )
        return definition.version

    _emit(echo, NO_MIGRATIONS_TO_ROLL_BACK)
    return None
