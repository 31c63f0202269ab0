"""Capability interfaces the migration engine consumes.

The engine never talks to a driver directly. Anything that satisfies these
protocols can host migrations; ``connection.SQLAlchemyConnection`` is the
adapter shipped with the package.
"""

from typing import Any, Protocol, runtime_checkable

from .deadline import Deadline

Params = dict[str, Any] | None


class NoRowError(LookupError):
    """A single-row query produced no row."""

    pass


@runtime_checkable
class RowScanner(Protocol):
    """Decodes one result row."""

    def scan(self) -> tuple[Any, ...]: ...


@runtime_checkable
class ExecResult(Protocol):
    """Outcome of a write statement."""

    @property
    def rows_affected(self) -> int: ...


@runtime_checkable
class QueryExec(Protocol):
    """Anything statements can be run against: a connection or a transaction."""

    def query_one_row(
        self, deadline: Deadline, statement: str, params: Params = None
    ) -> RowScanner: ...

    def execute(
        self, deadline: Deadline, statement: str, params: Params = None
    ) -> ExecResult: ...


@runtime_checkable
class Transaction(QueryExec, Protocol):
    """An open database transaction."""

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@runtime_checkable
class Connection(QueryExec, Protocol):
    """The shared connection a migration run works through."""

    def begin_transaction(
        self, deadline: Deadline, options: dict[str, Any] | None = None
    ) -> Transaction: ...

    def close(self) -> None: ...
