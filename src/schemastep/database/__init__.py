"""Database capability interfaces, deadlines and the SQLAlchemy adapter."""

from .capabilities import (
    Connection,
    ExecResult,
    NoRowError,
    QueryExec,
    RowScanner,
    Transaction,
)
from .connection import SQLAlchemyConnection, connect
from .deadline import Deadline
from .locking import AdvisoryLockedConnection

__all__ = [
    "AdvisoryLockedConnection",
    "Connection",
    "Deadline",
    "ExecResult",
    "NoRowError",
    "QueryExec",
    "RowScanner",
    "SQLAlchemyConnection",
    "Transaction",
    "connect",
]
