"""
Logging utilities for migration execution.

This module provides specialized logging functions for:
- Per-migration execution outcomes
- Non-transactional partial failures that need an operator
- Coordinator progress lines
"""

from typing import Any

from ..utils.logging import LogContext, get_logger

executor_logger = get_logger(__name__ + ".executor", LogContext.EXECUTOR)
coordinator_logger = get_logger(__name__ + ".coordinator", LogContext.COORDINATOR)


def log_migration_step(
    version: int,
    direction: str,
    mode: str,
    status: str = "success",
    details: dict[str, Any] | None = None,
) -> None:
    """Log the outcome of executing one migration."""
    logger = get_logger(__name__ + ".executor", LogContext.EXECUTOR)
    logger.set_migration_version(version)

    if status == "success":
        logger.info(
            f"Migration {direction} committed",
            direction=direction,
            mode=mode,
            details=details or {},
        )
    elif status == "error":
        logger.error(
            f"Migration {direction} failed",
            direction=direction,
            mode=mode,
            details=details or {},
        )
    else:
        logger.debug(
            f"Migration {direction} {status}",
            direction=direction,
            mode=mode,
            details=details or {},
        )


def log_manual_remediation(version: int, direction: str, error: Exception) -> None:
    """Log a non-transactional failure that may have left schema and ledger apart."""
    executor_logger.error(
        f"Non-transactional migration {version} {direction} failed; schema and "
        "ledger may disagree and must be reconciled manually before re-running",
        exception=error,
        migration_version=version,
        direction=direction,
    )


def log_progress(line: str, **kwargs: Any) -> None:
    """Log a coordinator progress or summary line."""
    coordinator_logger.info(line, **kwargs)
