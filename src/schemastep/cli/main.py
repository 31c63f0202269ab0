"""Main CLI entry point for schemastep."""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from .. import __version__
from ..config.loader import MigrationConfig, load_config
from ..database.capabilities import Connection
from ..database.connection import connect
from ..database.locking import AdvisoryLockedConnection
from ..migrations.manager import MigrationManager
from ..migrations.registry import MigrationRegistry, load_registry
from ..migrations.reporter import format_status_table, format_version
from ..utils.logging import LogContext, SchemaStepError, get_logger, setup_logging
from .utils import (
    format_output,
    handle_error,
    output_json,
    paged_echo,
    quiet_echo,
    verbose_echo,
)

logger = get_logger(__name__, LogContext.CLI)

# Exit codes per failure stage
EXIT_USAGE = 1
EXIT_CONNECT = 2
EXIT_CLOSE = 3
EXIT_ENSURE_LEDGER = 4
EXIT_UP = 5
EXIT_UP_ONE = 6
EXIT_DOWN = 7
EXIT_STATUS = 8
EXIT_VERSION = 9


@click.group()
@click.version_option(version=__version__, prog_name="schemastep")
@click.option("--config", "-c", help="Configuration file path")
@click.option("--profile", "-p", help="Configuration profile to use")
@click.option("--database-url", "-d", help="Database URL (SQLAlchemy format)")
@click.option(
    "--migrations", "-m", "migrations_path", help="Directory of migration modules"
)
@click.option("--timeout", type=float, help="Per-operation timeout in seconds")
@click.option("--log-level", help="Override log_level setting")
@click.option(
    "--advisory-lock/--no-advisory-lock",
    default=None,
    help="Hold a PostgreSQL advisory lock while running",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.pass_context
def main(
    ctx: click.Context,
    config: str | None,
    profile: str | None,
    database_url: str | None,
    migrations_path: str | None,
    timeout: float | None,
    log_level: str | None,
    advisory_lock: bool | None,
    verbose: bool,
    quiet: bool,
    json: bool,
) -> None:
    """schemastep - apply and roll back versioned schema migrations.

    Migrations are applied in ascending version order and recorded in a
    ledger table. Commands:
    - up: apply all pending migrations
    - up-one: apply the next pending migration
    - down: roll back the last applied migration
    - status: list migrations with their applied/pending state
    - version: show the current database version
    """
    if verbose and quiet:
        handle_error("Cannot use both --verbose and --quiet options", EXIT_USAGE)

    # A caller may preload obj["registry"] to embed its own migrations.
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["profile"] = profile
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["json"] = json

    cli_overrides = {
        "database_url": database_url,
        "migrations_path": migrations_path,
        "timeout": timeout,
        "log_level": log_level,
        "advisory_lock": advisory_lock,
    }
    ctx.obj["cli_overrides"] = {k: v for k, v in cli_overrides.items() if v is not None}


def _load_settings(ctx: click.Context) -> MigrationConfig:
    try:
        settings = load_config(
            ctx.obj.get("config"), ctx.obj.get("profile"), ctx.obj.get("cli_overrides")
        )
    except (SchemaStepError, FileNotFoundError) as e:
        handle_error(str(e), EXIT_USAGE)

    setup_logging(
        "DEBUG" if ctx.obj.get("verbose") else settings.log_level,
        log_file=Path(settings.log_file).expanduser() if settings.log_file else None,
        enable_structured=settings.structured_logging,
    )
    if settings.default_output_format == "json":
        ctx.obj["json"] = True
    return settings


def _load_registry(ctx: click.Context, settings: MigrationConfig) -> MigrationRegistry:
    registry = ctx.obj.get("registry")
    try:
        if registry is not None:
            registry.validate()
            return registry
        if not settings.migrations_path:
            handle_error(
                "no migrations directory configured (use --migrations)", EXIT_USAGE
            )
        return load_registry(settings.migrations_path)
    except SchemaStepError as e:
        handle_error(str(e), EXIT_USAGE)


def _open_connection(settings: MigrationConfig) -> Connection:
    if not settings.database_url:
        handle_error("no database URL configured (use --database-url)", EXIT_USAGE)

    try:
        connection = connect(settings.database_url, settings.timeout)
    except SchemaStepError as e:
        handle_error(str(e), EXIT_CONNECT)

    if not settings.advisory_lock:
        return connection

    try:
        return AdvisoryLockedConnection(connection, settings.timeout, settings.lock_key)
    except SchemaStepError as e:
        connection.close()
        handle_error(str(e), EXIT_CONNECT)


def _run_command(
    ctx: click.Context,
    exit_code: int,
    operation: Callable[[MigrationManager], Any],
) -> None:
    """Load, connect, ensure the ledger, run ``operation``, and always close."""
    settings = _load_settings(ctx)
    registry = _load_registry(ctx, settings)
    verbose_echo(ctx, f"Loaded {len(registry)} migration(s)")

    connection = _open_connection(settings)
    try:
        manager = MigrationManager(
            registry,
            connection,
            settings.timeout,
            echo=lambda line: quiet_echo(ctx, line),
        )

        try:
            manager.ensure_ledger()
        except SchemaStepError as e:
            handle_error(str(e), EXIT_ENSURE_LEDGER)

        try:
            operation(manager)
        except SchemaStepError as e:
            logger.error("Command failed", error=str(e), error_context=e.context)
            handle_error(str(e), exit_code)
    finally:
        try:
            connection.close()
        except Exception as e:
            handle_error(f"failed to close database connection: {e}", EXIT_CLOSE)


@main.command()
@click.pass_context
def up(ctx: click.Context) -> None:
    """Apply all pending migrations."""
    _run_command(ctx, EXIT_UP, lambda manager: manager.migrate_up())


@main.command("up-one")
@click.pass_context
def up_one(ctx: click.Context) -> None:
    """Apply the next pending migration."""
    _run_command(ctx, EXIT_UP_ONE, lambda manager: manager.migrate_up_one())


@main.command()
@click.pass_context
def down(ctx: click.Context) -> None:
    """Roll back the last applied migration."""
    _run_command(ctx, EXIT_DOWN, lambda manager: manager.rollback_one())


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the applied/pending state of every migration."""

    def show_status(manager: MigrationManager) -> None:
        rows = manager.status()
        if ctx.obj.get("json"):
            output_json(
                {
                    "current_version": manager.current_version(),
                    "migrations": [row.to_dict() for row in rows],
                }
            )
        else:
            paged_echo(format_status_table(rows))

    _run_command(ctx, EXIT_STATUS, show_status)


@main.command()
@click.pass_context
def version(ctx: click.Context) -> None:
    """Show the current database version."""

    def show_version(manager: MigrationManager) -> None:
        current = manager.current_version()
        if ctx.obj.get("json"):
            output_json({"current_version": current})
        else:
            click.echo(format_version(current))

    _run_command(ctx, EXIT_VERSION, show_version)


@main.command("config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Show the effective configuration."""
    settings = _load_settings(ctx)
    format_output(
        ctx,
        {"configuration": settings.model_dump()},
        human_format_func=_print_settings,
    )


def _print_settings(data: dict[str, Any]) -> None:
    for key, value in data["configuration"].items():
        click.echo(f"{key}: {value}")


if __name__ == "__main__":
    main()
