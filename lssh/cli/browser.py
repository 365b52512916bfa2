"""Interactive host browser with curses-backed navigation."""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Callable, Sequence
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any, Protocol

import typer

from lssh.cli.render import Row, render
from lssh.cli.ssh_launcher import run_ssh
from lssh.config import AppConfig, ConfigStore
from lssh.core.cache import resolve_stale_caches
from lssh.core.interfaces import Provider
from lssh.core.models import Host
from lssh.core.navigation import Action, NavigationController
from lssh.core.session import BrowserSession
from lssh.providers import build_providers

__all__ = [
    "DEFAULT_THEME",
    "CursesHostUI",
    "HostBrowser",
    "HostUI",
    "StyleSpec",
    "Theme",
    "launch_host_browser",
    "normalize_key",
]

logger = logging.getLogger(__name__)

OutputFn = Callable[[str], None]
ConfirmFn = Callable[[str], bool]
LauncherFn = Callable[[Host, str | None], int]

_TICK_MS = 100

_CHAR_KEYS = {
    "\n": "enter",
    "\r": "enter",
    "\x1b": "esc",
    "\x7f": "backspace",
    "\b": "backspace",
    "\t": "tab",
    "\x03": "ctrl+c",
}


def _default_output(message: str) -> None:
    """Emit a single line of output to the terminal."""

    typer.echo(message)


def _default_confirm(message: str) -> bool:
    return typer.confirm(message, default=False)


@dataclass(frozen=True, slots=True)
class StyleSpec:
    """Colour and attribute choice for one named style."""

    fg: int = -1
    bg: int = -1
    bold: bool = False
    dim: bool = False
    reverse: bool = False


def _default_styles() -> dict[str, StyleSpec]:
    # curses colour numbers: 1 red, 3 yellow, 4 blue, 5 magenta, 6 cyan, 7 white
    return {
        "normal": StyleSpec(),
        "title": StyleSpec(fg=7, bg=5, bold=True),
        "selected": StyleSpec(fg=5, bold=True),
        "help": StyleSpec(dim=True),
        "dim": StyleSpec(dim=True),
        "bold": StyleSpec(bold=True),
        "accent": StyleSpec(fg=6),
        "error": StyleSpec(fg=1, bold=True),
        "detail_header": StyleSpec(fg=7, bg=4, bold=True),
        "detail_label": StyleSpec(fg=5, bold=True),
    }


@dataclass(frozen=True, slots=True)
class Theme:
    """Immutable mapping from style names used by the renderer to curses styles."""

    styles: dict[str, StyleSpec] = field(default_factory=_default_styles)


DEFAULT_THEME = Theme()


def normalize_key(key: str | int, curses: Any) -> str | None:
    """Translate a ``get_wch`` result into the controller's key names."""

    if isinstance(key, str):
        if key in _CHAR_KEYS:
            return _CHAR_KEYS[key]
        if key.isprintable():
            return key
        return None

    named = {
        curses.KEY_UP: "up",
        curses.KEY_DOWN: "down",
        curses.KEY_LEFT: "left",
        curses.KEY_RIGHT: "right",
        curses.KEY_ENTER: "enter",
        curses.KEY_BACKSPACE: "backspace",
        curses.KEY_RESIZE: "resize",
    }
    return named.get(key)


class HostUI(Protocol):
    """UI contract for running one browser session until it ends."""

    def run(self, session: BrowserSession) -> Action: ...


class CursesHostUI:
    """Render the session using Python's built-in curses toolkit."""

    def __init__(self, theme: Theme = DEFAULT_THEME) -> None:
        self._theme = theme

    def run(self, session: BrowserSession) -> Action:  # pragma: no cover - requires tty
        with suppress(ImportError):
            import curses

            if not sys.stdin.isatty() or not sys.stdout.isatty():
                raise RuntimeError("curses UI requires a TTY")

            os.environ.setdefault("ESCDELAY", "25")
            return curses.wrapper(lambda stdscr: self._main(stdscr, session, curses))
        raise RuntimeError("curses library not available on this platform")

    def _main(self, stdscr, session: BrowserSession, curses) -> Action:  # pragma: no cover
        with suppress(curses.error):
            curses.curs_set(0)
        stdscr.keypad(True)
        stdscr.timeout(_TICK_MS)
        attrs = self._init_styles(curses)

        session.start()
        controller = session.controller
        while True:
            session.drain()
            height, width = stdscr.getmaxyx()
            controller.set_width(width)
            self._draw(stdscr, render(controller, width, height), attrs, curses)

            try:
                key = stdscr.get_wch()
            except curses.error:
                continue
            except KeyboardInterrupt:
                key = "\x03"

            name = normalize_key(key, curses)
            if name is None or name == "resize":
                continue
            action = session.handle_key(name)
            if action in {Action.QUIT, Action.CONNECT}:
                return action

    def _init_styles(self, curses) -> dict[str, int]:  # pragma: no cover - requires tty
        colors = False
        if curses.has_colors():
            with suppress(curses.error):
                curses.start_color()
                curses.use_default_colors()
                colors = True

        attrs: dict[str, int] = {}
        for pair, (name, spec) in enumerate(self._theme.styles.items(), start=1):
            attr = curses.A_NORMAL
            if colors and (spec.fg >= 0 or spec.bg >= 0):
                with suppress(curses.error):
                    curses.init_pair(pair, spec.fg, spec.bg)
                    attr |= curses.color_pair(pair)
            if spec.bold:
                attr |= curses.A_BOLD
            if spec.dim:
                attr |= curses.A_DIM
            if spec.reverse:
                attr |= curses.A_REVERSE
            attrs[name] = attr
        return attrs

    def _draw(
        self,
        stdscr,
        rows: Sequence[Row],
        attrs: dict[str, int],
        curses,
    ) -> None:  # pragma: no cover - requires tty
        stdscr.erase()
        height, width = stdscr.getmaxyx()
        if height <= 0 or width <= 0:
            stdscr.refresh()
            return

        for y, row in enumerate(rows[:height]):
            x = 0
            for span in row:
                if x >= width:
                    break
                attr = attrs.get(span.style, curses.A_NORMAL)
                with suppress(curses.error):
                    stdscr.addnstr(y, x, span.text, width - x, attr)
                x += len(span.text)
        stdscr.refresh()


class HostBrowser:
    """High-level orchestrator that loads configuration and delegates to a UI."""

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        providers: Sequence[Provider] | None = None,
        output: OutputFn | None = None,
        confirm: ConfirmFn | None = None,
        launcher: LauncherFn | None = None,
        ui: HostUI | None = None,
        session_factory: Callable[..., BrowserSession] | None = None,
    ) -> None:
        self._config = config if config is not None else ConfigStore().load()
        self._providers = list(providers) if providers is not None else None
        self._output = output if output is not None else _default_output
        self._confirm = confirm if confirm is not None else _default_confirm
        self._launcher = launcher if launcher is not None else run_ssh
        self._ui = ui
        self._session_factory = session_factory if session_factory is not None else BrowserSession

    def run(self) -> int:
        """Browse, connect, and browse again until the operator quits."""

        providers = self._providers
        if providers is None:
            providers = build_providers(self._config)
        rules = self._config.exclusion_rules()
        resolve_stale_caches(providers, self._confirm, self._output)

        ui = self._ui or CursesHostUI()
        connection_error: Exception | None = None
        while True:
            controller = NavigationController(error=connection_error)
            session = self._session_factory(providers, rules=rules, controller=controller)
            try:
                action = ui.run(session)
            finally:
                session.close()

            host = controller.choice
            if action is not Action.CONNECT or host is None:
                return 0

            username = controller.custom_username
            if username:
                self._output(f"Connecting to {host.name} ({host.hostname}) as {username}...")
            else:
                self._output(f"Connecting to {host.name} ({host.hostname})...")

            exit_code = self._launcher(host, username)
            connection_error = None
            if exit_code != 0:
                logger.warning("ssh session to %s exited with %d", host.key, exit_code)
                connection_error = ConnectionError(
                    f"connection error: ssh exited with status {exit_code}"
                )


def launch_host_browser() -> int:
    return HostBrowser().run()
