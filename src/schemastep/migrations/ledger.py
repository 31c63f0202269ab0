"""The version ledger: the table recording which migrations are applied."""

from datetime import datetime

from ..database.capabilities import NoRowError, QueryExec
from ..database.deadline import Deadline
from ..utils.logging import ConnectivityError, LogContext, get_logger
from .migration import LedgerEntry

logger = get_logger(__name__, LogContext.LEDGER)

LEDGER_TABLE = "schemastep_ledger"

CREATE_LEDGER_SQL = (
    f"CREATE TABLE IF NOT EXISTS {LEDGER_TABLE} ("
    "version INTEGER PRIMARY KEY, "
    "applied_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP)"
)
SELECT_CURRENT_VERSION_SQL = f"SELECT COALESCE(MAX(version), 0) FROM {LEDGER_TABLE}"
SELECT_ENTRY_SQL = (
    f"SELECT version, applied_at FROM {LEDGER_TABLE} WHERE version = :version"
)
INSERT_VERSION_SQL = f"INSERT INTO {LEDGER_TABLE} (version) VALUES (:version)"
DELETE_VERSION_SQL = f"DELETE FROM {LEDGER_TABLE} WHERE version = :version"


def ensure_ledger_table(
    db: QueryExec, timeout: float, parent: Deadline | None = None
) -> None:
    """Create the ledger table if it does not exist yet."""
    try:
        db.execute(Deadline.after(timeout, parent), CREATE_LEDGER_SQL)
    except Exception as e:
        raise ConnectivityError(
            f"failed to create ledger table if not exists: {e}",
            context={"operation": "ensure_table", "table": LEDGER_TABLE},
        ) from e
    logger.debug("Ledger table ready", table=LEDGER_TABLE)


def get_current_version(
    db: QueryExec, timeout: float, parent: Deadline | None = None
) -> int:
    """Highest applied version, or 0 for an empty ledger."""
    try:
        (version,) = db.query_one_row(
            Deadline.after(timeout, parent), SELECT_CURRENT_VERSION_SQL
        ).scan()
    except Exception as e:
        raise ConnectivityError(
            f"failed to get current DB version: {e}",
            context={"operation": "read_current"},
        ) from e
    return int(version)


def _parse_applied_at(value: object) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    # SQLite hands timestamps back as text
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def get_entry(
    db: QueryExec, version: int, timeout: float, parent: Deadline | None = None
) -> LedgerEntry | None:
    """Ledger row for ``version``, or None when it is not recorded."""
    try:
        row = db.query_one_row(
            Deadline.after(timeout, parent), SELECT_ENTRY_SQL, {"version": version}
        )
        recorded_version, applied_at = row.scan()
    except NoRowError:
        return None
    except Exception as e:
        raise ConnectivityError(
            f"failed to read migration version {version} from ledger: {e}",
            context={"operation": "read_entry", "version": version},
        ) from e
    return LedgerEntry(int(recorded_version), _parse_applied_at(applied_at))


def insert_version(
    db: QueryExec, version: int, timeout: float, parent: Deadline | None = None
) -> None:
    """Record ``version`` as applied."""
    try:
        db.execute(
            Deadline.after(timeout, parent), INSERT_VERSION_SQL, {"version": version}
        )
    except Exception as e:
        raise ConnectivityError(
            f"failed to insert migration version {version} into ledger: {e}",
            context={"operation": "insert", "version": version, "direction": "up"},
        ) from e


def delete_version(
    db: QueryExec, version: int, timeout: float, parent: Deadline | None = None
) -> None:
    """Remove ``version`` from the ledger."""
    try:
        db.execute(
            Deadline.after(timeout, parent), DELETE_VERSION_SQL, {"version": version}
        )
    except Exception as e:
        raise ConnectivityError(
            f"failed to delete migration version {version} from ledger: {e}",
            context={"operation": "delete", "version": version, "direction": "down"},
        ) from e
