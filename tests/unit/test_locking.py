"""Tests for the advisory-locked connection wrapper."""

from unittest.mock import Mock

import pytest

from schemastep.database.deadline import Deadline
from schemastep.database.locking import (
    ACQUIRE_LOCK_SQL,
    DEFAULT_LOCK_KEY,
    RELEASE_LOCK_SQL,
    AdvisoryLockedConnection,
)
from schemastep.utils.logging import ConnectivityError


def lock_connection(acquired=True, released=True):
    """Mock connection answering the lock queries."""
    connection = Mock()
    answers = {ACQUIRE_LOCK_SQL: (acquired,), RELEASE_LOCK_SQL: (released,)}

    def query_one_row(deadline, statement, params=None):
        row = Mock()
        row.scan.return_value = answers[statement]
        return row

    connection.query_one_row.side_effect = query_one_row
    return connection


class TestAdvisoryLockedConnection:
    """Test AdvisoryLockedConnection."""

    def test_acquires_on_creation(self):
        """Test the lock is taken with the configured key."""
        connection = lock_connection()

        locked = AdvisoryLockedConnection(connection, 5, lock_key="app")

        _, statement, params = connection.query_one_row.call_args.args
        assert statement == ACQUIRE_LOCK_SQL
        assert params == {"lock_key": "app"}
        assert locked.lock_key == "app"

    def test_default_key(self):
        """Test the default lock key."""
        assert AdvisoryLockedConnection(lock_connection(), 5).lock_key == DEFAULT_LOCK_KEY

    def test_already_held(self):
        """Test a held lock fails without waiting."""
        with pytest.raises(ConnectivityError, match="already held"):
            AdvisoryLockedConnection(lock_connection(acquired=False), 5)

    def test_acquire_query_failure(self):
        """Test query errors are wrapped."""
        connection = Mock()
        connection.query_one_row.side_effect = RuntimeError("function does not exist")

        with pytest.raises(ConnectivityError) as exc_info:
            AdvisoryLockedConnection(connection, 5)

        assert "failed to acquire advisory lock" in str(exc_info.value)
        assert exc_info.value.context == {"lock_key": DEFAULT_LOCK_KEY}

    def test_delegates_statements(self):
        """Test statements and transactions go to the wrapped connection."""
        connection = lock_connection()
        locked = AdvisoryLockedConnection(connection, 5)
        deadline = Deadline.after(5)

        locked.execute(deadline, "CREATE TABLE t (id INTEGER)")
        locked.begin_transaction(deadline)

        connection.execute.assert_called_once_with(
            deadline, "CREATE TABLE t (id INTEGER)", None
        )
        connection.begin_transaction.assert_called_once_with(deadline, None)

    def test_close_releases_then_closes(self):
        """Test close releases the lock before closing the connection."""
        connection = lock_connection()
        locked = AdvisoryLockedConnection(connection, 5)

        locked.close()

        assert connection.query_one_row.call_args.args[1] == RELEASE_LOCK_SQL
        connection.close.assert_called_once()

    def test_close_when_not_held(self):
        """Test a failed release still closes the connection."""
        connection = lock_connection(released=False)
        locked = AdvisoryLockedConnection(connection, 5)

        with pytest.raises(ConnectivityError, match="not held"):
            locked.close()

        connection.close.assert_called_once()
