"""Executors: run one migration action together with its ledger update."""

from abc import ABC, abstractmethod

from ..database.capabilities import Connection, QueryExec, Transaction
from ..database.deadline import Deadline
from ..utils.logging import (
    MigrationActionError,
    SchemaStepError,
    TransactionError,
    log_performance,
)
from . import ledger
from .guard import guard
from .logging_utils import executor_logger, log_manual_remediation, log_migration_step
from .migration import Direction, MigrationDefinition


class MigrationExecutor(ABC):
    """Runs guard check, action and ledger mutation for one migration.

    ``timeout`` is the base per-operation timeout. The whole unit runs under
    twice that; the guard read, the action and the ledger write each get
    the base timeout, capped by the unit deadline.
    """

    mode_label: str = ""

    def __init__(self, connection: Connection, timeout: float) -> None:
        self.connection = connection
        self.timeout = timeout

    @abstractmethod
    def execute(
        self,
        definition: MigrationDefinition,
        direction: Direction,
        parent: Deadline | None = None,
    ) -> None:
        """Execute ``definition`` in ``direction`` as one unit."""

    def _unit_deadline(self, parent: Deadline | None) -> Deadline:
        return Deadline.after(self.timeout * 2, parent)

    def _run_step(
        self,
        handle: QueryExec,
        definition: MigrationDefinition,
        direction: Direction,
        unit: Deadline,
    ) -> None:
        version = definition.version
        stage = "guard"
        try:
            guard(handle, direction, version, self.timeout, unit)

            stage = "action"
            action = definition.mode.action(direction)
            try:
                action(Deadline.after(self.timeout, unit), handle)
            except Exception as e:
                raise MigrationActionError(
                    f"failed to apply migration.{direction.value} "
                    f"version {version}: {e}",
                    context={"version": version, "direction": direction.value},
                ) from e

            stage = "ledger"
            if direction is Direction.UP:
                ledger.insert_version(handle, version, self.timeout, unit)
            else:
                ledger.delete_version(handle, version, self.timeout, unit)
        except SchemaStepError as e:
            e.context.setdefault("version", version)
            e.context.setdefault("direction", direction.value)
            e.context["mode"] = self.mode_label
            e.context["stage"] = stage
            raise


class TransactionalExecutor(MigrationExecutor):
    """Runs the migration atomically inside a database transaction."""

    mode_label = "transactional"

    @log_performance()
    def execute(
        self,
        definition: MigrationDefinition,
        direction: Direction,
        parent: Deadline | None = None,
    ) -> None:
        version = definition.version
        unit = self._unit_deadline(parent)

        try:
            tx = self.connection.begin_transaction(unit)
        except Exception as e:
            raise TransactionError(
                f"failed to begin transaction for migration {version}: {e}",
                context={
                    "version": version,
                    "direction": direction.value,
                    "mode": self.mode_label,
                },
            ) from e

        try:
            self._run_step(tx, definition, direction, unit)
        except BaseException as e:
            self._rollback(tx, version)
            log_migration_step(
                version, direction.value, self.mode_label, "error", {"error": str(e)}
            )
            raise

        try:
            tx.commit()
        except Exception as e:
            raise TransactionError(
                f"failed to commit transaction for migration {version}: {e}",
                context={
                    "version": version,
                    "direction": direction.value,
                    "mode": self.mode_label,
                },
            ) from e

        log_migration_step(version, direction.value, self.mode_label)

    def _rollback(self, tx: Transaction, version: int) -> None:
        # Only the error that triggered the rollback is reported.
        try:
            tx.rollback()
        except Exception as e:
            executor_logger.warning(
                "Rollback failed",
                migration_version=version,
                error=str(e),
            )


class NonTransactionalExecutor(MigrationExecutor):
    """Runs the migration directly on the shared connection.

    Nothing is atomic here: if the action succeeds and the ledger write
    fails, the schema is changed but the ledger is not.
    """

    mode_label = "non-transactional"

    @log_performance()
    def execute(
        self,
        definition: MigrationDefinition,
        direction: Direction,
        parent: Deadline | None = None,
    ) -> None:
        version = definition.version
        unit = self._unit_deadline(parent)

        try:
            self._run_step(self.connection, definition, direction, unit)
        except SchemaStepError as e:
            if e.context.get("stage") != "guard":
                e.context["manual_remediation"] = True
                log_manual_remediation(version, direction.value, e)
            else:
                log_migration_step(
                    version, direction.value, self.mode_label, "error", {"error": str(e)}
                )
            raise

        log_migration_step(version, direction.value, self.mode_label)


def executor_for(
    definition: MigrationDefinition, connection: Connection, timeout: float
) -> MigrationExecutor:
    """Pick the executor matching the definition's mode."""
    if definition.mode.transactional:
        return TransactionalExecutor(connection, timeout)
    return NonTransactionalExecutor(connection, timeout)
