"""Read-only status and version reporting."""

from ..database.capabilities import QueryExec
from . import ledger
from .migration import MigrationStatus, StatusRow
from .registry import MigrationRegistry

STATUS_LABELS = {
    MigrationStatus.APPLIED: "[x] APPLIED",
    MigrationStatus.PENDING: "[ ] PENDING",
}


def report_status(
    registry: MigrationRegistry, db: QueryExec, timeout: float
) -> list[StatusRow]:
    """Classify every migration against the ledger, highest version first.

    A migration counts as applied when its version is at or below the
    ledger's current version.
    """
    current_version = ledger.get_current_version(db, timeout)

    rows = []
    for definition in registry.descending():
        if definition.version <= current_version:
            entry = ledger.get_entry(db, definition.version, timeout)
            rows.append(
                StatusRow(
                    version=definition.version,
                    status=MigrationStatus.APPLIED,
                    description=definition.description,
                    applied_at=entry.applied_at if entry else None,
                )
            )
        else:
            rows.append(
                StatusRow(
                    version=definition.version,
                    status=MigrationStatus.PENDING,
                    description=definition.description,
                )
            )
    return rows


def format_status_table(rows: list[StatusRow]) -> str:
    lines = [f"{'VERSION':<10} {'STATUS':<12}"]
    lines.extend(f"{row.version:<10d} {STATUS_LABELS[row.status]:<12}" for row in rows)
    return "\n".join(lines)


def report_version(db: QueryExec, timeout: float) -> int:
    """The ledger's current version."""
    return ledger.get_current_version(db, timeout)


def format_version(version: int) -> str:
    return f"Current database version:\n{version}"
