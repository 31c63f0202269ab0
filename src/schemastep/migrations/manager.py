"""Migration management facade."""

from ..database.capabilities import Connection
from ..utils.logging import audit_log
from . import coordinator, ledger, reporter
from .coordinator import Echo
from .migration import StatusRow
from .registry import MigrationRegistry

DEFAULT_TIMEOUT = 10.0


class MigrationManager:
    """Runs migration commands for one registry over one connection."""

    def __init__(
        self,
        registry: MigrationRegistry,
        connection: Connection,
        timeout: float = DEFAULT_TIMEOUT,
        echo: Echo | None = None,
    ) -> None:
        """Initialize migration manager.

        The registry is validated here, before any database interaction.

        Args:
            registry: Migration definitions.
            connection: Shared migration connection.
            timeout: Base per-operation timeout in seconds.
            echo: Receives progress and summary lines.

        Raises:
            RegistryValidationError: If the registry is malformed.
            ValueError: If timeout is not positive.
        """
        if timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {timeout}")

        registry.validate()

        self.registry = registry
        self.connection = connection
        self.timeout = timeout
        self.echo = echo

    def ensure_ledger(self) -> None:
        """Ensure the ledger table exists."""
        ledger.ensure_ledger_table(self.connection, self.timeout)

    @audit_log("apply all migrations")
    def migrate_up(self) -> int:
        """Apply every pending migration.

        Returns:
            Number of migrations applied.
        """
        return coordinator.apply_migrations(
            self.registry, self.connection, self.timeout, limit=0, echo=self.echo
        )

    @audit_log("apply next migration")
    def migrate_up_one(self) -> int:
        """Apply the next pending migration, if any."""
        return coordinator.apply_migrations(
            self.registry, self.connection, self.timeout, limit=1, echo=self.echo
        )

    @audit_log("roll back last migration")
    def rollback_one(self) -> int | None:
        """Roll back the highest applied migration.

        Returns:
            Version rolled back, or None if nothing was applied.
        """
        return coordinator.rollback_migration(
            self.registry, self.connection, self.timeout, echo=self.echo
        )

    def status(self) -> list[StatusRow]:
        return reporter.report_status(self.registry, self.connection, self.timeout)

    def current_version(self) -> int:
        return reporter.report_version(self.connection, self.timeout)
