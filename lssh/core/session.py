"""Glue between the navigation controller and its background workers."""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from lssh.core.bulk import BulkLog, BulkRunner
from lssh.core.interfaces import Provider, ProviderError
from lssh.core.inventory import ExclusionRules, Inventory, InventoryLoaded, load_inventory
from lssh.core.navigation import Action, NavigationController
from lssh.paths import logs_dir

__all__ = ["BrowserSession"]

logger = logging.getLogger(__name__)

LoaderFn = Callable[[Sequence[Provider], ExclusionRules | None], Inventory]


class BrowserSession:
    """Run one interactive session's event handling.

    Workers communicate exclusively through ``events``; only the thread that
    calls :meth:`drain` and :meth:`handle_key` touches the controller.
    """

    def __init__(
        self,
        providers: Sequence[Provider],
        *,
        rules: ExclusionRules | None = None,
        controller: NavigationController | None = None,
        events: queue.Queue[Any] | None = None,
        runner: BulkRunner | None = None,
        loader: LoaderFn | None = None,
        log_dir: Callable[[], Path] | None = None,
    ) -> None:
        self._providers = list(providers)
        self._rules = rules
        self.controller = controller if controller is not None else NavigationController()
        self.events: queue.Queue[Any] = events if events is not None else queue.Queue()
        self._runner = runner if runner is not None else BulkRunner(self.events)
        self._loader = loader if loader is not None else load_inventory
        self._log_dir = log_dir if log_dir is not None else logs_dir

    def start(self) -> None:
        """Begin the initial inventory load unless an error is being shown."""

        if self.controller.loading:
            self.start_load()

    def start_load(self) -> threading.Thread:
        worker = threading.Thread(target=self._load, name="lssh-load", daemon=True)
        worker.start()
        return worker

    def _load(self) -> None:
        try:
            inventory = self._loader(self._providers, self._rules)
        except ProviderError as exc:
            logger.warning("Inventory load failed: %s", exc)
            self.events.put(InventoryLoaded(None, exc))
        except Exception as exc:  # noqa: BLE001 - shown on the error screen
            logger.exception("Unexpected error while loading inventory")
            self.events.put(InventoryLoaded(None, exc))
        else:
            self.events.put(InventoryLoaded(inventory))

    def drain(self) -> int:
        """Apply every pending worker event and return how many were applied."""

        applied = 0
        while True:
            try:
                event = self.events.get_nowait()
            except queue.Empty:
                return applied
            self.controller.apply(event)
            applied += 1

    def handle_key(self, key: str) -> Action:
        action = self.controller.handle_key(key)
        if action is Action.RELOAD:
            self.start_load()
        elif action is Action.DISPATCH:
            self._dispatch()
        return action

    def _dispatch(self) -> None:
        request = self.controller.pending_bulk()
        log: BulkLog | None = None
        warning: str | None = None
        try:
            log = BulkLog.create(self._log_dir(), request.command, len(request.hosts))
        except OSError as exc:
            logger.warning("Could not create bulk log: %s", exc)
            warning = f"failed to create output file: {exc}"

        self.controller.bulk_started(log.path if log is not None else None, warning)
        self._runner.dispatch(
            request.hosts,
            request.command,
            username=request.username,
            log=log,
        )

    def close(self) -> None:
        """Stop accepting work; running ssh processes finish on their own."""

        self._runner.shutdown(wait=False)
