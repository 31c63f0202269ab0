"""SQLAlchemy adapter for the migration capability interfaces."""

import math
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Connection as SAConnection
from sqlalchemy.engine import Engine, Row
from sqlalchemy.engine import RootTransaction
from sqlalchemy.pool import StaticPool

from ..utils.logging import ConnectivityError, LogContext, get_logger
from .capabilities import NoRowError, Params
from .deadline import Deadline

logger = get_logger(__name__, LogContext.DATABASE)

# SQLite virtual machine instructions between deadline checks
SQLITE_PROGRESS_STEPS = 1000


def statement_timeout_ms(deadline: Deadline) -> int:
    """Milliseconds left on ``deadline``, at least 1 (0 disables the timeout)."""
    return max(1, math.ceil(deadline.remaining() * 1000))


class SQLAlchemyRow:
    """RowScanner over a single SQLAlchemy result row."""

    def __init__(self, row: Row | None) -> None:
        self._row = row

    def scan(self) -> tuple[Any, ...]:
        if self._row is None:
            raise NoRowError("query returned no rows")
        return tuple(self._row)


class SQLAlchemyExecResult:
    """ExecResult carrying the driver's reported row count."""

    def __init__(self, rows_affected: int) -> None:
        self._rows_affected = rows_affected

    @property
    def rows_affected(self) -> int:
        return self._rows_affected


class _StatementRunner:
    """Shared QueryExec behaviour for connections and transactions.

    Every statement runs under the caller's deadline. The deadline is checked
    before the call and also bounds the statement while it runs: PostgreSQL
    gets a ``statement_timeout`` taken from the time remaining, and SQLite is
    interrupted from its progress handler once the deadline passes.
    """

    _conn: SAConnection
    _timeout_scope = "SESSION"

    @contextmanager
    def _bounded(self, deadline: Deadline, operation: str) -> Iterator[None]:
        deadline.check(operation)
        dialect = self._conn.dialect.name
        if dialect == "postgresql":
            self._conn.exec_driver_sql(
                f"SET {self._timeout_scope} statement_timeout = "
                f"{statement_timeout_ms(deadline)}"
            )
            yield
        elif dialect == "sqlite":
            dbapi_connection = self._conn.connection.dbapi_connection
            dbapi_connection.set_progress_handler(
                lambda: deadline.expired, SQLITE_PROGRESS_STEPS
            )
            try:
                yield
            finally:
                dbapi_connection.set_progress_handler(None, 0)
        else:
            yield

    def query_one_row(
        self, deadline: Deadline, statement: str, params: Params = None
    ) -> SQLAlchemyRow:
        with self._bounded(deadline, "query"):
            result = self._conn.execute(text(statement), params or {})
            return SQLAlchemyRow(result.first())

    def execute(
        self, deadline: Deadline, statement: str, params: Params = None
    ) -> SQLAlchemyExecResult:
        with self._bounded(deadline, "execute"):
            result = self._conn.execute(text(statement), params or {})
            return SQLAlchemyExecResult(result.rowcount)


class SQLAlchemyTransaction(_StatementRunner):
    """A transaction on its own pooled connection.

    The connection is returned to the pool once the transaction ends, whether
    it committed or rolled back.
    """

    _timeout_scope = "LOCAL"

    def __init__(self, conn: SAConnection, transaction: RootTransaction) -> None:
        self._conn = conn
        self._transaction = transaction

    def commit(self) -> None:
        try:
            self._transaction.commit()
        finally:
            self._conn.close()

    def rollback(self) -> None:
        try:
            self._transaction.rollback()
        finally:
            self._conn.close()


class SQLAlchemyConnection(_StatementRunner):
    """The shared migration connection.

    Statements run directly on this object are autocommitted, which is what
    non-transactional migrations need (e.g. ``CREATE INDEX CONCURRENTLY``).
    ``begin_transaction`` checks out a separate connection so a transactional
    migration gets a real transaction block.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._conn = engine.connect().execution_options(isolation_level="AUTOCOMMIT")

    def begin_transaction(
        self, deadline: Deadline, options: dict[str, Any] | None = None
    ) -> SQLAlchemyTransaction:
        deadline.check("begin transaction")
        conn = self.engine.connect()
        try:
            if options:
                conn = conn.execution_options(**options)
            transaction = conn.begin()
        except Exception:
            conn.close()
            raise
        return SQLAlchemyTransaction(conn, transaction)

    def close(self) -> None:
        try:
            self._conn.close()
        finally:
            self.engine.dispose()

    def __enter__(self) -> "SQLAlchemyConnection":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def _is_in_memory_sqlite(database_url: str) -> bool:
    return database_url in ("sqlite://", "sqlite:///:memory:")


def create_migration_engine(
    database_url: str, timeout: float, echo: bool = False
) -> Engine:
    """Create the database engine with appropriate configuration."""
    engine_kwargs: dict[str, Any] = {"echo": echo, "pool_pre_ping": True}

    if database_url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {
            "check_same_thread": False,
            "timeout": timeout,
        }
        if _is_in_memory_sqlite(database_url):
            engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs["pool_timeout"] = timeout

    engine = create_engine(database_url, **engine_kwargs)

    if database_url.startswith("sqlite"):
        # pysqlite only opens transactions implicitly before DML, which would
        # let migration DDL escape rollback. Take over transaction control.
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if not _is_in_memory_sqlite(database_url):
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        # Returning a connection to the pool resets its isolation level, which
        # re-enables pysqlite's implicit transactions. Under StaticPool the
        # shared autocommit connection sits on that same DB-API connection.
        @event.listens_for(engine, "checkin")
        @event.listens_for(engine, "checkout")
        def restore_manual_transactions(dbapi_connection: Any, *args: Any) -> None:
            if dbapi_connection is not None:
                dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def do_begin(conn: SAConnection) -> None:
            if conn.get_execution_options().get("isolation_level") != "AUTOCOMMIT":
                conn.exec_driver_sql("BEGIN")

    return engine


def connect(database_url: str, timeout: float, echo: bool = False) -> SQLAlchemyConnection:
    """Open the shared migration connection and check it answers.

    Args:
        database_url: SQLAlchemy database URL.
        timeout: Base per-operation timeout in seconds.
        echo: Whether to echo SQL statements.

    Returns:
        A connected SQLAlchemyConnection.

    Raises:
        ConnectivityError: If the engine cannot be created or the ping fails.
    """
    deadline = Deadline.after(timeout)
    try:
        engine = create_migration_engine(database_url, timeout, echo=echo)
    except Exception as e:
        raise ConnectivityError(
            f"failed to create database engine: {e}", context={"operation": "connect"}
        ) from e

    try:
        connection = SQLAlchemyConnection(engine)
    except Exception as e:
        engine.dispose()
        raise ConnectivityError(
            f"failed to connect to database: {e}", context={"operation": "connect"}
        ) from e

    try:
        connection.query_one_row(deadline, "SELECT 1").scan()
    except Exception as e:
        connection.close()
        raise ConnectivityError(
            f"failed to ping database: {e}", context={"operation": "ping"}
        ) from e

    logger.info("Connected to database", dialect=engine.dialect.name)
    return connection
