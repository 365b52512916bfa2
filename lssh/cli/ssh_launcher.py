"""Hand the terminal to an interactive ssh session for the chosen host."""

from __future__ import annotations

import logging
import os
import pty
import shutil

import typer

from lssh.core.models import Host
from lssh.core.ssh import build_ssh_command

__all__ = ["run_ssh", "session_exit_code"]

logger = logging.getLogger(__name__)

_SIGNAL_EXIT_BASE = 128


def session_exit_code(status: int) -> int:
    """Map the wait status of the ssh child to a shell-style exit code.

    Sessions killed by a signal report ``128 + signal`` the way a shell
    does. Statuses that are neither an exit nor a signal pass through.
    """

    try:
        code = os.waitstatus_to_exitcode(status)
    except ValueError:
        return status
    if code < 0:
        return _SIGNAL_EXIT_BASE - code
    return code


def _spawn_ssh(argv: list[str]) -> int:
    return pty.spawn(argv)


def run_ssh(host: Host, username: str | None = None) -> int:
    """Run ssh against ``host`` in a pseudo-terminal and return its exit code."""

    command = build_ssh_command(host, username)
    ssh_path = shutil.which(command[0])
    if ssh_path is None:
        typer.echo("ssh command not found", err=True)
        return 1

    logger.info("Connecting to %s", host.key)
    try:
        status = _spawn_ssh([ssh_path, *command[1:]])
    except OSError as exc:
        typer.echo(f"failed to start ssh: {exc}", err=True)
        return 1

    code = session_exit_code(status)
    logger.debug("ssh session for %s ended with %d", host.key, code)
    return code
