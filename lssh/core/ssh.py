"""Construction and execution of ``ssh`` client invocations."""

from __future__ import annotations

import shutil
import subprocess

from lssh.core.models import DEFAULT_SSH_PORT, Host, current_username

__all__ = [
    "BULK_COMMAND_TIMEOUT",
    "RemoteCommandError",
    "build_ssh_command",
    "execute_command",
    "resolve_username",
]

BULK_COMMAND_TIMEOUT = 30.0


class RemoteCommandError(Exception):
    """Raised when a remote command cannot be run or exits unsuccessfully."""


def resolve_username(host: Host, override: str | None = None) -> str | None:
    """Pick the login name: explicit override, then the host's user, then the operator."""

    return override or host.user or current_username()


def build_ssh_command(host: Host, username: str | None = None) -> list[str]:
    """Construct the argv list for invoking the system ssh binary."""

    command: list[str] = ["ssh"]
    if host.port and host.port != DEFAULT_SSH_PORT:
        command.extend(["-p", str(host.port)])

    login = resolve_username(host, username)
    command.append(f"{login}@{host.hostname}" if login else host.hostname)
    return command


def execute_command(
    host: Host,
    command: str,
    *,
    username: str | None = None,
    timeout: float | None = BULK_COMMAND_TIMEOUT,
) -> tuple[str, Exception | None]:
    """Run ``command`` on ``host`` without a terminal.

    Returns the captured stdout, followed by a ``STDERR:`` section when the
    remote side wrote to stderr, and the error describing a failure (or
    ``None``). Partial output is returned alongside the error.
    """

    argv = [*build_ssh_command(host, username), command]
    ssh_path = shutil.which(argv[0])
    if ssh_path is None:
        return "", RemoteCommandError("ssh command not found")
    argv[0] = ssh_path

    try:
        completed = subprocess.run(
            argv,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        return _combine(_as_text(exc.stdout), _as_text(exc.stderr)), RemoteCommandError(
            f"ssh command timed out after {timeout:g}s"
        )
    except OSError as exc:
        return "", RemoteCommandError(f"failed to run ssh: {exc}")

    output = _combine(completed.stdout, completed.stderr)
    if completed.returncode != 0:
        return output, RemoteCommandError(
            f"ssh command failed with exit status {completed.returncode}"
        )
    return output, None


def _combine(stdout: str, stderr: str) -> str:
    if stderr:
        return f"{stdout}\nSTDERR:\n{stderr}"
    return stdout


def _as_text(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
