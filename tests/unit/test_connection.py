"""Tests for statement bounds in the SQLAlchemy adapter."""

from unittest.mock import Mock

import pytest

from schemastep.database.connection import (
    SQLITE_PROGRESS_STEPS,
    SQLAlchemyConnection,
    SQLAlchemyTransaction,
    statement_timeout_ms,
)
from schemastep.database.deadline import Deadline
from schemastep.utils.logging import DeadlineExceededError


def sa_connection(dialect):
    """Mock SQLAlchemy connection for ``dialect``."""
    conn = Mock()
    conn.dialect.name = dialect
    conn.execute.return_value.rowcount = 1
    conn.execute.return_value.first.return_value = (1,)
    return conn


def shared_connection(conn):
    engine = Mock()
    engine.connect.return_value.execution_options.return_value = conn
    return SQLAlchemyConnection(engine)


def set_timeout_statement(conn):
    (statement,) = conn.exec_driver_sql.call_args.args
    return statement


class TestStatementTimeoutMs:
    """Test statement_timeout_ms."""

    def test_uses_remaining_time(self):
        """Test the timeout follows the deadline's remaining time."""
        deadline = Deadline.after(2)

        assert 1000 < statement_timeout_ms(deadline) <= 2000

    def test_never_zero(self):
        """Test an expired deadline still yields a positive timeout."""
        assert statement_timeout_ms(Deadline.after(-1)) == 1


class TestPostgresStatementTimeout:
    """Test statement_timeout is set before each PostgreSQL statement."""

    def test_transaction_sets_local_timeout(self):
        """Test a transaction scopes the timeout to itself."""
        conn = sa_connection("postgresql")
        transaction = SQLAlchemyTransaction(conn, Mock())
        deadline = Deadline.after(3)

        transaction.execute(deadline, "ALTER TABLE users ADD COLUMN age INTEGER")

        statement = set_timeout_statement(conn)
        assert statement.startswith("SET LOCAL statement_timeout = ")
        assert 2000 < int(statement.rsplit(" ", 1)[1]) <= 3000
        conn.execute.assert_called_once()

    def test_shared_connection_sets_session_timeout(self):
        """Test the shared connection sets a session timeout."""
        conn = sa_connection("postgresql")
        connection = shared_connection(conn)
        deadline = Deadline.after(1)

        connection.query_one_row(deadline, "SELECT 1").scan()

        statement = set_timeout_statement(conn)
        assert statement.startswith("SET SESSION statement_timeout = ")
        assert 0 < int(statement.rsplit(" ", 1)[1]) <= 1000

    def test_timeout_shrinks_with_parent(self):
        """Test a child deadline capped by its parent bounds the statement."""
        conn = sa_connection("postgresql")
        transaction = SQLAlchemyTransaction(conn, Mock())
        parent = Deadline.after(0.5)

        transaction.execute(Deadline.after(30, parent), "CREATE TABLE t (id INTEGER)")

        assert int(set_timeout_statement(conn).rsplit(" ", 1)[1]) <= 500

    def test_expired_deadline_runs_nothing(self):
        """Test an expired deadline fails before any statement is sent."""
        conn = sa_connection("postgresql")
        transaction = SQLAlchemyTransaction(conn, Mock())

        with pytest.raises(DeadlineExceededError):
            transaction.execute(Deadline.after(-1), "CREATE TABLE t (id INTEGER)")

        conn.exec_driver_sql.assert_not_called()
        conn.execute.assert_not_called()


class TestSQLiteProgressHandler:
    """Test SQLite statements are interrupted through the progress handler."""

    def test_handler_installed_and_cleared(self):
        """Test the handler is set for the statement and removed after it."""
        conn = sa_connection("sqlite")
        dbapi_connection = conn.connection.dbapi_connection
        transaction = SQLAlchemyTransaction(conn, Mock())

        transaction.execute(Deadline.after(5), "CREATE TABLE t (id INTEGER)")

        first, second = dbapi_connection.set_progress_handler.call_args_list
        handler, steps = first.args
        assert steps == SQLITE_PROGRESS_STEPS
        assert not handler()
        assert second.args == (None, 0)
        conn.exec_driver_sql.assert_not_called()

    def test_handler_cleared_on_failure(self):
        """Test a failing statement still removes the handler."""
        conn = sa_connection("sqlite")
        conn.execute.side_effect = RuntimeError("no such table: t")
        dbapi_connection = conn.connection.dbapi_connection
        transaction = SQLAlchemyTransaction(conn, Mock())

        with pytest.raises(RuntimeError):
            transaction.execute(Deadline.after(5), "DROP TABLE t")

        dbapi_connection.set_progress_handler.assert_called_with(None, 0)


def test_other_dialects_run_statement_only():
    """Test dialects without a statement bound only run the statement."""
    conn = sa_connection("mysql")
    transaction = SQLAlchemyTransaction(conn, Mock())

    result = transaction.execute(Deadline.after(5), "CREATE TABLE t (id INTEGER)")

    assert result.rows_affected == 1
    conn.exec_driver_sql.assert_not_called()
