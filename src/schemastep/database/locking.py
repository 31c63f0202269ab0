"""PostgreSQL advisory lock around a migration connection.

The migration engine only detects concurrent ledger changes. Callers that
need real mutual exclusion between processes can wrap their connection in
``AdvisoryLockedConnection`` before handing it to the engine.
"""

from typing import Any

from ..utils.logging import ConnectivityError, LogContext, get_logger
from .capabilities import Connection, ExecResult, Params, RowScanner, Transaction
from .deadline import Deadline

logger = get_logger(__name__, LogContext.DATABASE)

DEFAULT_LOCK_KEY = "schemastep_advisory_lock"

ACQUIRE_LOCK_SQL = "SELECT pg_try_advisory_lock(hashtext(:lock_key))"
RELEASE_LOCK_SQL = "SELECT pg_advisory_unlock(hashtext(:lock_key))"


class AdvisoryLockedConnection:
    """Connection wrapper holding a session-level advisory lock.

    The lock is taken without waiting when the wrapper is created and
    released on ``close()``, before the wrapped connection is closed.
    """

    def __init__(
        self,
        connection: Connection,
        timeout: float,
        lock_key: str = DEFAULT_LOCK_KEY,
    ) -> None:
        self._connection = connection
        self._timeout = timeout
        self.lock_key = lock_key
        self._acquire()

    def _acquire(self) -> None:
        logger.info("Acquiring advisory lock", lock_key=self.lock_key)
        try:
            (acquired,) = self._connection.query_one_row(
                Deadline.after(self._timeout),
                ACQUIRE_LOCK_SQL,
                {"lock_key": self.lock_key},
            ).scan()
        except Exception as e:
            raise ConnectivityError(
                f"failed to acquire advisory lock: {e}",
                context={"lock_key": self.lock_key},
            ) from e
        if not acquired:
            raise ConnectivityError(
                "failed to acquire advisory lock: already held",
                context={"lock_key": self.lock_key},
            )
        logger.info("Acquired advisory lock", lock_key=self.lock_key)

    def _release(self) -> None:
        try:
            (released,) = self._connection.query_one_row(
                Deadline.after(self._timeout),
                RELEASE_LOCK_SQL,
                {"lock_key": self.lock_key},
            ).scan()
        except Exception as e:
            raise ConnectivityError(
                f"failed to release advisory lock: {e}",
                context={"lock_key": self.lock_key},
            ) from e
        if not released:
            raise ConnectivityError(
                "failed to release advisory lock: not held",
                context={"lock_key": self.lock_key},
            )
        logger.info("Released advisory lock", lock_key=self.lock_key)

    def query_one_row(
        self, deadline: Deadline, statement: str, params: Params = None
    ) -> RowScanner:
        return self._connection.query_one_row(deadline, statement, params)

    def execute(
        self, deadline: Deadline, statement: str, params: Params = None
    ) -> ExecResult:
        return self._connection.execute(deadline, statement, params)

    def begin_transaction(
        self, deadline: Deadline, options: dict[str, Any] | None = None
    ) -> Transaction:
        return self._connection.begin_transaction(deadline, options)

    def close(self) -> None:
        try:
            self._release()
        finally:
            self._connection.close()
