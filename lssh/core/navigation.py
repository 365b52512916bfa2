"""View-mode state machine driving the host browser.

The controller has no terminal handling of its own: the curses
front end translates key presses into normalized names (``"up"``,
``"enter"``, ``"q"`` ...) and feeds them to :meth:`NavigationController.handle_key`,
then acts on the returned :class:`Action`. Results of background work
arrive as events through :meth:`NavigationController.apply`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from lssh.core.bulk import BulkCommandFinished, BulkResult, progress
from lssh.core.filtering import FilteredView, filter_hosts
from lssh.core.inventory import InventoryLoaded
from lssh.core.models import Group, Host

__all__ = [
    "ALL_GROUPS_LABEL",
    "ALL_HOSTS_LABEL",
    "Action",
    "BulkRequest",
    "EntryMode",
    "GridCursor",
    "NavigationController",
    "ViewMode",
    "columns_for_width",
]

logger = logging.getLogger(__name__)

ALL_HOSTS_LABEL = "All Hosts"
ALL_GROUPS_LABEL = "All Groups"

DETAILS_PANEL_WIDTH = 40
_PANEL_GUTTER = 6
_MAX_COLUMNS = 3
_TWO_COLUMN_BELOW = 120
_ONE_COLUMN_BELOW = 80

_QUIT_KEYS = frozenset({"q", "ctrl+c"})


class ViewMode(Enum):
    """Top-level states of the browser."""

    ALL_HOSTS = "all_hosts"
    BY_GROUP = "by_group"
    IN_GROUP = "in_group"
    BULK_RUNNING = "bulk_running"


class EntryMode(Enum):
    """Modal text entry layered over the current view."""

    NONE = "none"
    FILTER = "filter"
    USERNAME = "username"
    BULK_COMMAND = "bulk_command"


class Action(Enum):
    """What the event loop should do after a key press."""

    NONE = "none"
    QUIT = "quit"
    RELOAD = "reload"
    CONNECT = "connect"
    DISPATCH = "dispatch"


def grid_width(terminal_width: int) -> int:
    """Width left for the grid once the details panel is drawn."""

    return max(0, terminal_width - DETAILS_PANEL_WIDTH - _PANEL_GUTTER)


def columns_for_width(terminal_width: int) -> int:
    """Return how many grid columns fit in a terminal ``terminal_width`` wide."""

    available = grid_width(terminal_width)
    if available < _ONE_COLUMN_BELOW:
        return 1
    if available < _TWO_COLUMN_BELOW:
        return 2
    return _MAX_COLUMNS


@dataclass(slots=True)
class GridCursor:
    """Row/column cursor over a list laid out in ``columns`` columns."""

    row: int = 0
    col: int = 0

    def index(self, columns: int) -> int:
        return self.row * max(1, columns) + self.col

    def reset(self) -> None:
        self.row = 0
        self.col = 0

    def move_up(self) -> None:
        if self.row > 0:
            self.row -= 1

    def move_left(self) -> None:
        if self.col > 0:
            self.col -= 1

    def move_down(self, count: int, columns: int) -> None:
        columns = max(1, columns)
        if self.index(columns) + columns < count:
            self.row += 1

    def move_right(self, count: int, columns: int) -> None:
        columns = max(1, columns)
        if self.col < columns - 1 and self.index(columns) + 1 < count:
            self.col += 1

    def reflow(self, count: int, old_columns: int, new_columns: int) -> None:
        """Keep pointing at the same item after the column count changes."""

        index = min(self.index(old_columns), max(count - 1, 0))
        self.row, self.col = divmod(index, max(1, new_columns))


@dataclass(frozen=True, slots=True)
class BulkRequest:
    """Everything the event loop needs to dispatch a bulk command."""

    hosts: tuple[Host, ...]
    command: str
    username: str | None = None


class NavigationController:
    """Owns all browser state for one interactive session."""

    def __init__(self, *, width: int = 80, error: Exception | None = None) -> None:
        self.view_mode = ViewMode.ALL_HOSTS
        self.entry_mode = EntryMode.NONE
        self.entry_buffer = ""
        self.cursor = GridCursor()
        self.columns = columns_for_width(width)
        self.current_group: Group | None = None
        self.filter_text = ""
        self.bulk_selection_mode = False
        self.selected: list[Host] = []
        self.bulk_results: dict[str, BulkResult] = {}
        self.bulk_command = ""
        self.bulk_log_path: Path | None = None
        self.bulk_scroll = 0
        self._bulk_scroll_limit: int | None = None
        self.status: str | None = None
        self.choice: Host | None = None
        self.custom_username: str | None = None
        self.groups: list[Group] = []
        self.hosts: list[Host] = []
        self._breadcrumb = [ALL_HOSTS_LABEL]
        self._view = FilteredView(hosts=[], groups=[])
        self._filter_before_entry = ""

        if error is not None:
            self.loading = False
            self.error: Exception | None = error
        else:
            self.loading = True
            self.error = None

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------
    @property
    def breadcrumb(self) -> list[str]:
        return list(self._breadcrumb)

    @property
    def filtered_hosts(self) -> list[Host]:
        return self._view.hosts

    @property
    def filtered_groups(self) -> list[Group]:
        return self._view.groups

    def group_hosts(self) -> list[Host]:
        """Hosts of the entered group that survive the filter.

        Hosts of nested subgroups are included so the list agrees with the
        host count shown for the group in the By Group view.
        """

        if self.current_group is None:
            return []
        return filter_hosts(self.current_group.all_hosts(), self.filter_text)

    def current_items(self) -> list[Host] | list[Group]:
        if self.view_mode is ViewMode.ALL_HOSTS:
            return self.filtered_hosts
        if self.view_mode is ViewMode.BY_GROUP:
            return self.filtered_groups
        if self.view_mode is ViewMode.IN_GROUP:
            return self.group_hosts()
        return []

    def _host_items(self) -> list[Host]:
        if self.view_mode is ViewMode.ALL_HOSTS:
            return self.filtered_hosts
        if self.view_mode is ViewMode.IN_GROUP:
            return self.group_hosts()
        return []

    def current_index(self) -> int:
        return self.cursor.index(self.columns)

    def current_host(self) -> Host | None:
        hosts = self._host_items()
        index = self.current_index()
        if 0 <= index < len(hosts):
            return hosts[index]
        return None

    def current_group_item(self) -> Group | None:
        if self.view_mode is not ViewMode.BY_GROUP:
            return None
        index = self.current_index()
        if 0 <= index < len(self.filtered_groups):
            return self.filtered_groups[index]
        return None

    def is_selected(self, host: Host) -> bool:
        return any(item.same_target(host) for item in self.selected)

    def bulk_progress(self) -> tuple[int, int]:
        return progress(self.bulk_results)

    def clamp_bulk_scroll(self, limit: int) -> int:
        """Bound the results scroll offset to the last page the screen can show."""

        self._bulk_scroll_limit = max(0, limit)
        self.bulk_scroll = min(self.bulk_scroll, self._bulk_scroll_limit)
        return self.bulk_scroll

    def pending_bulk(self) -> BulkRequest:
        return BulkRequest(
            hosts=tuple(self.selected),
            command=self.bulk_command,
            username=self.custom_username,
        )

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------
    def set_width(self, width: int) -> None:
        columns = columns_for_width(width)
        if columns != self.columns:
            self.cursor.reflow(len(self.current_items()), self.columns, columns)
            self.columns = columns

    def apply(self, event: object) -> None:
        """Apply a message produced by a background worker."""

        if isinstance(event, InventoryLoaded):
            self._on_inventory(event)
        elif isinstance(event, BulkCommandFinished):
            self._on_bulk_finished(event)
        else:
            logger.debug("Ignoring unknown event %r", event)

    def _on_inventory(self, event: InventoryLoaded) -> None:
        self.loading = False
        self.error = event.error
        inventory = event.inventory
        self.groups = list(inventory.groups) if inventory is not None else []
        self.hosts = list(inventory.hosts) if inventory is not None else []
        if self.view_mode is ViewMode.IN_GROUP:
            self.view_mode = ViewMode.BY_GROUP
            self.current_group = None
            self._breadcrumb = [ALL_GROUPS_LABEL]
        self._refilter()

    def _on_bulk_finished(self, event: BulkCommandFinished) -> None:
        result = self.bulk_results.get(event.host.key)
        if result is None:
            logger.debug("Discarding late bulk result for %s", event.host.key)
            return
        result.output = event.output
        result.error = event.error
        result.done = True
        if event.log_error:
            self.status = f"Warning: {event.log_error}"

    def bulk_started(self, log_path: Path | None, warning: str | None = None) -> None:
        """Record where the running bulk command is being logged."""

        self.bulk_log_path = log_path
        if warning:
            self.status = f"Warning: {warning}"

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------
    def handle_key(self, key: str) -> Action:
        if self.error is not None:
            if key in _QUIT_KEYS:
                return Action.QUIT
            self.error = None
            self.loading = True
            return Action.RELOAD

        if self.entry_mode is not EntryMode.NONE:
            return self._handle_entry(key)

        if key in _QUIT_KEYS:
            return Action.QUIT
        if self.loading:
            return Action.NONE
        if self.view_mode is ViewMode.BULK_RUNNING:
            return self._handle_bulk_view(key)

        if key in {"up", "k"}:
            self.cursor.move_up()
        elif key in {"down", "j"}:
            self.cursor.move_down(len(self.current_items()), self.columns)
        elif key in {"left", "h"}:
            if self.view_mode is ViewMode.IN_GROUP and self.cursor.col == 0:
                self.back()
            else:
                self.cursor.move_left()
        elif key in {"right", "l"}:
            self.cursor.move_right(len(self.current_items()), self.columns)
        elif key in {"enter", " "}:
            return self._activate()
        elif key == "backspace":
            if self.view_mode is ViewMode.IN_GROUP:
                self.back()
        elif key == "tab":
            self.switch_view()
        elif key == "/":
            self._begin_filter()
        elif key == "u":
            if self.view_mode is not ViewMode.BY_GROUP:
                self.entry_mode = EntryMode.USERNAME
                self.entry_buffer = ""
        elif key == "s":
            if self.view_mode is not ViewMode.BY_GROUP:
                self.toggle_bulk_selection()
        elif key == "c":
            if self.bulk_selection_mode and self.selected:
                self.entry_mode = EntryMode.BULK_COMMAND
                self.entry_buffer = ""
        elif key == "esc":
            if self.filter_text:
                self.set_filter("")
        return Action.NONE

    def _handle_bulk_view(self, key: str) -> Action:
        if key == "tab":
            self.switch_view()
        elif key in {"up", "k"}:
            self.bulk_scroll = max(0, self.bulk_scroll - 1)
        elif key in {"down", "j"}:
            if self._bulk_scroll_limit is None or self.bulk_scroll < self._bulk_scroll_limit:
                self.bulk_scroll += 1
        return Action.NONE

    def _handle_entry(self, key: str) -> Action:
        mode = self.entry_mode
        if key == "enter":
            return self._commit_entry()
        if key == "esc":
            if mode is EntryMode.FILTER:
                self.set_filter(self._filter_before_entry)
            self.entry_mode = EntryMode.NONE
            self.entry_buffer = ""
            return Action.NONE
        if key == "backspace":
            self.entry_buffer = self.entry_buffer[:-1]
        elif len(key) == 1 and key.isprintable():
            self.entry_buffer += key
        else:
            return Action.NONE
        if mode is EntryMode.FILTER:
            self.set_filter(self.entry_buffer)
        return Action.NONE

    def _commit_entry(self) -> Action:
        mode = self.entry_mode
        text = self.entry_buffer
        self.entry_mode = EntryMode.NONE
        self.entry_buffer = ""

        if mode is EntryMode.FILTER:
            self.set_filter(text)
            return Action.NONE
        if mode is EntryMode.USERNAME:
            if text and self.current_host() is not None:
                self.custom_username = text
                return self._choose(self.current_host())
            return Action.NONE
        if mode is EntryMode.BULK_COMMAND and text:
            return self.start_bulk(text)
        return Action.NONE

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def _begin_filter(self) -> None:
        self.entry_mode = EntryMode.FILTER
        self._filter_before_entry = self.filter_text
        self.entry_buffer = self.filter_text

    def set_filter(self, text: str) -> None:
        self.filter_text = text
        self._refilter()

    def _refilter(self) -> None:
        self._view = FilteredView.derive(self.groups, self.hosts, self.filter_text)
        self.cursor.reset()

    def _activate(self) -> Action:
        if self.view_mode is ViewMode.BY_GROUP:
            self.enter_group()
            return Action.NONE
        host = self.current_host()
        if host is None:
            return Action.NONE
        if self.bulk_selection_mode:
            self.toggle_selection(host)
            return Action.NONE
        self.custom_username = None
        return self._choose(host)

    def _choose(self, host: Host | None) -> Action:
        if host is None:
            return Action.NONE
        self.choice = host
        return Action.CONNECT

    def enter_group(self) -> None:
        group = self.current_group_item()
        if group is None:
            return
        self.current_group = group
        self.view_mode = ViewMode.IN_GROUP
        self._breadcrumb.append(group.name)
        self.cursor.reset()

    def back(self) -> None:
        if len(self._breadcrumb) > 1:
            self._breadcrumb.pop()
        if self._breadcrumb == [ALL_GROUPS_LABEL]:
            self.view_mode = ViewMode.BY_GROUP
            self.current_group = None
        self.cursor.reset()

    def switch_view(self) -> None:
        self.cursor.reset()
        self.current_group = None
        if self.view_mode is ViewMode.ALL_HOSTS:
            self.view_mode = ViewMode.BY_GROUP
            self._breadcrumb = [ALL_GROUPS_LABEL]
            return

        if self.view_mode is ViewMode.BULK_RUNNING:
            self.bulk_selection_mode = False
            self.selected = []
            self.bulk_results = {}
            self.bulk_command = ""
            self.bulk_log_path = None
            self.bulk_scroll = 0
            self._bulk_scroll_limit = None
            self.status = None
        self.view_mode = ViewMode.ALL_HOSTS
        self._breadcrumb = [ALL_HOSTS_LABEL]

    def toggle_bulk_selection(self) -> None:
        self.bulk_selection_mode = not self.bulk_selection_mode
        if not self.bulk_selection_mode:
            self.selected = []

    def toggle_selection(self, host: Host) -> None:
        for position, item in enumerate(self.selected):
            if item.same_target(host):
                del self.selected[position]
                return
        self.selected.append(host)

    def start_bulk(self, command: str) -> Action:
        if not self.selected:
            return Action.NONE
        self.bulk_command = command
        self.view_mode = ViewMode.BULK_RUNNING
        self._breadcrumb = [f"Bulk Command: {command}"]
        self.bulk_selection_mode = False
        self.bulk_scroll = 0
        self._bulk_scroll_limit = None
        self.status = None
        self.bulk_results = {host.key: BulkResult(host=host) for host in self.selected}
        self.cursor.reset()
        logger.info("Dispatching %r to %d hosts", command, len(self.selected))
        return Action.DISPATCH
