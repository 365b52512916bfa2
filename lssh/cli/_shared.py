"""Shared helpers for Typer-based CLI components."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

import typer

from lssh.paths import data_dir

_LOG_FILENAME = "lssh.log"
_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_LOG_MAX_BYTES = 1024 * 1024
_LOG_BACKUPS = 3


def show_help_if_no_subcommand(ctx: typer.Context) -> None:
    """Emit contextual help when a subcommand is not provided."""

    if ctx.invoked_subcommand or ctx.resilient_parsing:
        return
    typer.echo(ctx.get_help())
    raise typer.Exit()


def configure_logging(verbose: bool = False) -> None:
    """Send log records to a rotating file; the terminal belongs to curses."""

    level = logging.DEBUG if verbose else logging.INFO
    root = logging.getLogger("lssh")
    root.setLevel(level)
    for existing in list(root.handlers):
        root.removeHandler(existing)
        existing.close()

    try:
        handler: logging.Handler = RotatingFileHandler(
            data_dir() / _LOG_FILENAME,
            maxBytes=_LOG_MAX_BYTES,
            backupCount=_LOG_BACKUPS,
            encoding="utf-8",
        )
    except OSError:
        handler = logging.NullHandler()
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler.setLevel(level)
    root.addHandler(handler)
