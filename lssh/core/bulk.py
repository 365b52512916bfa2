"""Concurrent execution of one command across many hosts."""

from __future__ import annotations

import logging
import os
import queue
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from lssh.core.interfaces import CommandExecutor
from lssh.core.models import Host
from lssh.core.ssh import BULK_COMMAND_TIMEOUT, execute_command

__all__ = [
    "BulkCommandFinished",
    "BulkLog",
    "BulkResult",
    "BulkRunner",
    "progress",
]

logger = logging.getLogger(__name__)

_DEFAULT_MAX_WORKERS = 32


@dataclass(slots=True)
class BulkResult:
    """Outcome of a bulk command on one host."""

    host: Host
    output: str = ""
    error: Exception | None = None
    done: bool = False


@dataclass(frozen=True, slots=True)
class BulkCommandFinished:
    """Completion event posted by a worker for exactly one host."""

    host: Host
    output: str
    error: Exception | None
    log_error: str | None = None


def progress(results: Mapping[str, BulkResult]) -> tuple[int, int]:
    """Return ``(completed, total)`` for a result map."""

    done = sum(1 for result in results.values() if result.done)
    return done, len(results)


class BulkLog:
    """Append-only log of a single bulk command run."""

    def __init__(self, path: Path, clock: Callable[[], datetime] | None = None) -> None:
        self._path = path
        self._clock = clock if clock is not None else datetime.now

    @property
    def path(self) -> Path:
        return self._path

    @classmethod
    def create(
        cls,
        directory: Path,
        command: str,
        host_count: int,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> BulkLog:
        """Create a fresh log file and write its header.

        File names carry the start time and process id; an existing file is
        never reused.
        """

        now_fn = clock if clock is not None else datetime.now
        started = now_fn()
        directory.mkdir(parents=True, exist_ok=True)
        stem = f"lssh-bulk-{started:%Y%m%d-%H%M%S}-{os.getpid()}"

        header = (
            "LSSH Bulk Command Execution Log\n"
            "================================\n"
            f"Timestamp: {started:%Y-%m-%d %H:%M:%S}\n"
            f"Command: {command}\n"
            f"Hosts: {host_count}\n"
            "--------------------------------\n\n"
        )

        attempt = 0
        while True:
            suffix = f"-{attempt}" if attempt else ""
            path = directory / f"{stem}{suffix}.log"
            try:
                with path.open("x", encoding="utf-8") as handle:
                    handle.write(header)
            except FileExistsError:
                attempt += 1
                continue
            return cls(path, clock=now_fn)

    def append(self, host: Host, output: str, error: Exception | None) -> None:
        """Append one host's block with a single write."""

        block = f"[{self._clock():%H:%M:%S}] {host.name} ({host.hostname})\n"
        if error is not None:
            block += f"ERROR: {error}\n"
        if output:
            block += f"OUTPUT:\n{output}\n"
        block += "---\n\n"

        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(block)


class BulkRunner:
    """Fan a command out to hosts on a thread pool.

    Workers never touch navigation state; each one posts a single
    :class:`BulkCommandFinished` onto ``events`` when its host completes.
    """

    def __init__(
        self,
        events: queue.Queue[Any],
        *,
        execute: CommandExecutor | None = None,
        max_workers: int = _DEFAULT_MAX_WORKERS,
        timeout: float = BULK_COMMAND_TIMEOUT,
    ) -> None:
        self._events = events
        self._execute = execute if execute is not None else execute_command
        self._timeout = timeout
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="lssh-bulk")

    def dispatch(
        self,
        hosts: Iterable[Host],
        command: str,
        *,
        username: str | None = None,
        log: BulkLog | None = None,
    ) -> list[Future[None]]:
        """Submit one task per host and return their futures."""

        return [
            self._pool.submit(self._run_one, host, command, username, log) for host in hosts
        ]

    def shutdown(self, *, wait: bool = False) -> None:
        self._pool.shutdown(wait=wait, cancel_futures=not wait)

    def _run_one(
        self,
        host: Host,
        command: str,
        username: str | None,
        log: BulkLog | None,
    ) -> None:
        try:
            output, error = self._execute(
                host, command, username=username, timeout=self._timeout
            )
        except Exception as exc:  # noqa: BLE001 - isolate failures to this host
            output, error = "", exc

        log_error: str | None = None
        if log is not None:
            try:
                log.append(host, output, error)
            except OSError as exc:
                logger.warning("Failed to append bulk result for %s: %s", host.key, exc)
                log_error = f"failed to save result for {host.name}: {exc}"

        logger.info("Bulk command finished on %s (%s)", host.key, "error" if error else "ok")
        self._events.put(BulkCommandFinished(host, output, error, log_error))
