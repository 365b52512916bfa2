"""Command-line interface for the lssh host browser."""

from __future__ import annotations

import logging
import sys
from collections.abc import Sequence

import typer

from lssh import __version__
from lssh.cli._shared import configure_logging
from lssh.cli.browser import launch_host_browser
from lssh.cli.config import config_app
from lssh.config import ConfigError, ConfigStore
from lssh.core.cache import CacheError, cache_dir, clear_cache

app = typer.Typer(help="Browse SSH hosts, connect to one, or run a command on many.")
app.add_typer(config_app, name="config", help="Inspect configuration")

logger = logging.getLogger(__name__)


@app.callback(invoke_without_command=True)
def cli(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the application's version and exit.",
        is_eager=True,
    ),
    clear: bool = typer.Option(
        False,
        "--clear-cache",
        help="Clear all cached provider data and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Write debug messages to the log file.",
    ),
) -> None:
    """Handle top-level options for the CLI."""
    if version:
        typer.echo(__version__)
        raise typer.Exit()

    configure_logging(verbose)

    if clear:
        raise typer.Exit(_clear_cache())

    if ctx.invoked_subcommand is not None or ctx.resilient_parsing:
        return

    raise typer.Exit(_launch_browser())


def _clear_cache() -> int:
    """Remove cached inventories from the configured cache directory."""

    try:
        configured = ConfigStore().load().cache_dir
    except ConfigError:
        configured = None

    try:
        removed = clear_cache(cache_dir(configured))
    except CacheError as exc:
        typer.echo(f"Error clearing cache: {exc}", err=True)
        return 1
    logger.info("Removed %d cache entries", removed)
    typer.echo("Cache cleared successfully")
    return 0


def _launch_browser() -> int:
    """Run the interactive browser, reporting setup failures."""

    try:
        return launch_host_browser()
    except ConfigError as exc:
        logger.error("Setup failed: %s", exc)
        typer.echo(f"Error: {exc}", err=True)
        return 1
    except RuntimeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        return 1


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the lssh CLI."""

    args = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        result = app(args=args, standalone_mode=False)
    except typer.Exit as exc:  # exit path already handled by Typer
        return exc.exit_code
    except Exception as exc:  # pragma: no cover - unexpected errors bubble to the shell
        typer.echo(str(exc), err=True)
        return 1
    return result if isinstance(result, int) else 0


if __name__ == "__main__":  # pragma: no cover - manual execution only
    raise SystemExit(main())
