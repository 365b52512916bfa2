"""Tests for the browser state machine."""

from __future__ import annotations

import random
from pathlib import Path

import pytest

from lssh.core.bulk import BulkCommandFinished
from lssh.core.inventory import Inventory, InventoryLoaded
from lssh.core.models import Group, Host, flatten
from lssh.core.navigation import (
    ALL_GROUPS_LABEL,
    ALL_HOSTS_LABEL,
    Action,
    EntryMode,
    GridCursor,
    NavigationController,
    ViewMode,
    columns_for_width,
)


def _loaded(groups: list[Group], *, width: int = 80) -> NavigationController:
    controller = NavigationController(width=width)
    controller.apply(InventoryLoaded(Inventory(groups=groups, hosts=flatten(groups))))
    return controller


def _hosts(count: int) -> list[Group]:
    return [
        Group(
            name="all",
            hosts=[Host(name=f"h{index}", hostname=f"h{index}.example.com") for index in range(count)],
        )
    ]


def _press(controller: NavigationController, *keys: str) -> Action:
    action = Action.NONE
    for key in keys:
        action = controller.handle_key(key)
    return action


@pytest.mark.parametrize(
    ("width", "expected"),
    [(80, 1), (125, 1), (126, 2), (165, 2), (166, 3), (300, 3)],
)
def test_columns_for_width(width: int, expected: int) -> None:
    """Column count follows the width left beside the details panel."""

    assert columns_for_width(width) == expected


@pytest.mark.parametrize("columns", [1, 2, 3])
@pytest.mark.parametrize("count", [0, 1, 2, 5, 7, 9])
def test_cursor_stays_on_an_item(columns: int, count: int) -> None:
    """Any sequence of moves keeps the cursor on an existing item."""

    rng = random.Random(count * 10 + columns)
    cursor = GridCursor()
    for _ in range(200):
        move = rng.choice(["up", "down", "left", "right"])
        if move == "up":
            cursor.move_up()
        elif move == "down":
            cursor.move_down(count, columns)
        elif move == "left":
            cursor.move_left()
        else:
            cursor.move_right(count, columns)
        if count:
            assert 0 <= cursor.index(columns) < count
        else:
            assert cursor.index(columns) == 0
        assert 0 <= cursor.col < columns


def test_cursor_does_not_enter_partial_last_row() -> None:
    """Moving down is refused when the cell below does not exist."""

    cursor = GridCursor(row=0, col=2)

    cursor.move_down(4, 3)

    assert (cursor.row, cursor.col) == (0, 2)


def test_cursor_reflow_keeps_item() -> None:
    """Changing the column count keeps the same item under the cursor."""

    cursor = GridCursor(row=1, col=2)

    cursor.reflow(9, 3, 2)

    assert cursor.index(2) == 5


def test_initial_state_is_loading() -> None:
    """Keys other than quit are ignored until data arrives."""

    controller = NavigationController()

    assert controller.loading
    assert controller.handle_key("tab") is Action.NONE
    assert controller.view_mode is ViewMode.ALL_HOSTS
    assert controller.handle_key("q") is Action.QUIT


def test_inventory_load_populates_views(sample_groups: list[Group]) -> None:
    """Loading fills hosts and groups and stops the spinner."""

    controller = _loaded(sample_groups)

    assert not controller.loading
    assert [host.name for host in controller.current_items()] == ["web1", "db1", "db2", "stage1"]
    assert controller.breadcrumb == [ALL_HOSTS_LABEL]


def test_switch_view_and_enter_group(sample_groups: list[Group]) -> None:
    """Tab switches to groups and Enter descends into one."""

    controller = _loaded(sample_groups)

    _press(controller, "tab")
    assert controller.view_mode is ViewMode.BY_GROUP
    assert controller.breadcrumb == [ALL_GROUPS_LABEL]

    _press(controller, "enter")
    assert controller.view_mode is ViewMode.IN_GROUP
    assert controller.breadcrumb == [ALL_GROUPS_LABEL, "production"]
    assert [host.name for host in controller.current_items()] == ["web1", "db1", "db2"]

    _press(controller, "backspace")
    assert controller.view_mode is ViewMode.BY_GROUP
    assert controller.breadcrumb == [ALL_GROUPS_LABEL]

    _press(controller, "tab")
    assert controller.view_mode is ViewMode.ALL_HOSTS
    assert controller.breadcrumb == [ALL_HOSTS_LABEL]


def test_left_at_first_column_leaves_group(sample_groups: list[Group]) -> None:
    """Left from the first column of a group returns to the group list."""

    controller = _loaded(sample_groups)
    _press(controller, "tab", "j", "enter")
    assert controller.breadcrumb == [ALL_GROUPS_LABEL, "staging"]

    _press(controller, "h")

    assert controller.view_mode is ViewMode.BY_GROUP


def test_enter_on_host_chooses_it(sample_groups: list[Group]) -> None:
    """Enter on a host requests a connection without a custom user."""

    controller = _loaded(sample_groups)

    action = _press(controller, "down", "enter")

    assert action is Action.CONNECT
    assert controller.choice == Host(name="db1", hostname="db1.example.com", port=2222)
    assert controller.custom_username is None


def test_custom_username_entry(sample_groups: list[Group]) -> None:
    """``u`` prompts for a login name before connecting."""

    controller = _loaded(sample_groups)

    _press(controller, "u")
    assert controller.entry_mode is EntryMode.USERNAME
    action = _press(controller, "r", "o", "o", "t", "x", "backspace", "enter")

    assert action is Action.CONNECT
    assert controller.custom_username == "root"
    assert controller.choice is not None and controller.choice.name == "web1"


def test_empty_username_entry_does_nothing(sample_groups: list[Group]) -> None:
    """Committing an empty username returns to browsing."""

    controller = _loaded(sample_groups)

    action = _press(controller, "u", "enter")

    assert action is Action.NONE
    assert controller.entry_mode is EntryMode.NONE
    assert controller.choice is None


def test_filter_entry_updates_results_live(sample_groups: list[Group]) -> None:
    """Each keystroke refilters and resets the cursor."""

    controller = _loaded(sample_groups)
    _press(controller, "down")

    _press(controller, "/", "d", "b")

    assert controller.entry_mode is EntryMode.FILTER
    assert [host.name for host in controller.filtered_hosts] == ["db1", "db2"]
    assert controller.current_index() == 0

    _press(controller, "enter")
    assert controller.entry_mode is EntryMode.NONE
    assert controller.filter_text == "db"


def test_filter_escape_restores_previous_filter(sample_groups: list[Group]) -> None:
    """Cancelling the prompt keeps the filter that was active before."""

    controller = _loaded(sample_groups)
    _press(controller, "/", "w", "e", "b", "enter")

    _press(controller, "/", "backspace", "backspace", "backspace", "s", "esc")

    assert controller.filter_text == "web"
    assert [host.name for host in controller.filtered_hosts] == ["web1"]


def test_escape_clears_committed_filter(sample_groups: list[Group]) -> None:
    """Esc outside entry mode clears the active filter."""

    controller = _loaded(sample_groups)
    _press(controller, "/", "z", "z", "z", "enter")
    assert controller.current_items() == []

    _press(controller, "esc")

    assert controller.filter_text == ""
    assert len(controller.current_items()) == 4


def test_filter_applies_inside_group(sample_groups: list[Group]) -> None:
    """Entered groups show only matching hosts."""

    controller = _loaded(sample_groups)
    _press(controller, "tab", "enter", "/", "d", "b", "2", "enter")

    assert [host.name for host in controller.current_items()] == ["db2"]


def test_selection_toggle_is_involutive(sample_groups: list[Group]) -> None:
    """Toggling the same host twice leaves the selection unchanged."""

    controller = _loaded(sample_groups)
    _press(controller, "s")
    assert controller.bulk_selection_mode

    _press(controller, " ")
    assert [host.name for host in controller.selected] == ["web1"]
    _press(controller, " ")
    assert controller.selected == []


def test_leaving_selection_mode_clears_selection(sample_groups: list[Group]) -> None:
    """Turning bulk mode off forgets the selected hosts."""

    controller = _loaded(sample_groups)
    _press(controller, "s", " ", "s")

    assert not controller.bulk_selection_mode
    assert controller.selected == []


def test_command_prompt_requires_selection(sample_groups: list[Group]) -> None:
    """``c`` only opens the prompt when hosts are selected."""

    controller = _loaded(sample_groups)
    _press(controller, "s", "c")
    assert controller.entry_mode is EntryMode.NONE

    _press(controller, " ", "c")
    assert controller.entry_mode is EntryMode.BULK_COMMAND


def test_start_bulk_scenario() -> None:
    """Two selected hosts running ``uptime`` complete independently."""

    groups = [
        Group(
            name="web",
            hosts=[
                Host(name="h1", hostname="h1.example.com"),
                Host(name="h2", hostname="h2.example.com"),
            ],
        )
    ]
    controller = _loaded(groups)
    _press(controller, "s", " ", "j", " ")
    action = _press(controller, "c", *"uptime", "enter")

    assert action is Action.DISPATCH
    assert controller.view_mode is ViewMode.BULK_RUNNING
    assert controller.breadcrumb == ["Bulk Command: uptime"]
    assert controller.bulk_progress() == (0, 2)
    request = controller.pending_bulk()
    assert request.command == "uptime"
    assert [host.name for host in request.hosts] == ["h1", "h2"]

    h1, h2 = groups[0].hosts
    controller.apply(BulkCommandFinished(h1, "up 3 days", None))
    assert controller.bulk_progress() == (1, 2)
    controller.apply(BulkCommandFinished(h2, "", RuntimeError("connection refused")))

    assert controller.bulk_progress() == (2, 2)
    assert controller.bulk_results[h1.key].output == "up 3 days"
    assert controller.bulk_results[h1.key].error is None
    assert str(controller.bulk_results[h2.key].error) == "connection refused"


def test_bulk_view_ignores_navigation_and_tab_resets(sample_groups: list[Group]) -> None:
    """Only tab leaves the results view, clearing the run."""

    controller = _loaded(sample_groups)
    _press(controller, "s", " ", "c", "l", "s", "enter")
    controller.bulk_started(Path("/tmp/run.log"))

    assert _press(controller, "enter") is Action.NONE
    assert _press(controller, "/") is Action.NONE
    assert controller.entry_mode is EntryMode.NONE
    _press(controller, "down", "down", "up")
    assert controller.bulk_scroll == 1

    _press(controller, "tab")

    assert controller.view_mode is ViewMode.ALL_HOSTS
    assert controller.selected == []
    assert controller.bulk_results == {}
    assert controller.bulk_log_path is None
    assert not controller.bulk_selection_mode


def test_bulk_scroll_stops_at_reported_limit(sample_groups: list[Group]) -> None:
    """Scrolling past the last page does not accumulate hidden offset."""

    controller = _loaded(sample_groups)
    _press(controller, "s", " ", "c", "l", "s", "enter")
    controller.bulk_started(Path("/tmp/run.log"))

    assert controller.clamp_bulk_scroll(2) == 0
    _press(controller, "down", "down", "down", "down", "down")
    assert controller.bulk_scroll == 2

    _press(controller, "up")
    assert controller.bulk_scroll == 1
    assert controller.clamp_bulk_scroll(0) == 0


def test_late_bulk_events_are_ignored(sample_groups: list[Group]) -> None:
    """Results arriving after the run was left do not resurrect it."""

    controller = _loaded(sample_groups)
    _press(controller, "s", " ", "c", "l", "s", "enter", "tab")

    controller.apply(BulkCommandFinished(sample_groups[0].hosts[0], "late", None))

    assert controller.bulk_results == {}


def test_log_failures_surface_as_status(sample_groups: list[Group]) -> None:
    """Workers report log write failures without failing the host."""

    controller = _loaded(sample_groups)
    _press(controller, "s", " ", "c", "l", "s", "enter")
    host = sample_groups[0].hosts[0]

    controller.apply(BulkCommandFinished(host, "ok", None, "failed to save result for web1: disk full"))

    assert controller.bulk_results[host.key].done
    assert controller.status == "Warning: failed to save result for web1: disk full"


def test_error_state_reloads_or_quits() -> None:
    """An error screen offers retry on any key and quit on ``q``."""

    controller = NavigationController(error=RuntimeError("connection error"))

    assert not controller.loading
    assert controller.handle_key("q") is Action.QUIT
    assert controller.handle_key("x") is Action.RELOAD
    assert controller.error is None
    assert controller.loading


def test_failed_load_enters_error_state() -> None:
    """A load failure is kept for display."""

    controller = NavigationController()
    controller.apply(InventoryLoaded(None, RuntimeError("failed to load data from prod")))

    assert controller.error is not None
    assert controller.hosts == []
    assert controller.handle_key("enter") is Action.RELOAD


def test_reload_while_in_group_returns_to_group_list(sample_groups: list[Group]) -> None:
    """Refreshed inventories invalidate the entered group."""

    controller = _loaded(sample_groups)
    _press(controller, "tab", "enter")

    controller.apply(InventoryLoaded(Inventory(groups=sample_groups, hosts=flatten(sample_groups))))

    assert controller.view_mode is ViewMode.BY_GROUP
    assert controller.current_group is None
    assert controller.breadcrumb == [ALL_GROUPS_LABEL]


def test_navigation_uses_rendered_column_count() -> None:
    """Right moves across the same columns the grid draws."""

    controller = _loaded(_hosts(7), width=200)

    assert controller.columns == 3
    _press(controller, "right", "right", "right", "down")

    assert (controller.cursor.row, controller.cursor.col) == (1, 2)
    assert controller.current_host() == controller.filtered_hosts[5]

    controller.set_width(80)
    assert controller.columns == 1
    assert controller.current_host() == controller.filtered_hosts[5]


def test_group_items_are_not_hosts(sample_groups: list[Group]) -> None:
    """In the group list the cursor selects groups, not hosts."""

    controller = _loaded(sample_groups)
    _press(controller, "tab")

    assert controller.current_host() is None
    assert controller.current_group_item() is sample_groups[0]
    _press(controller, "u", "s")
    assert controller.entry_mode is EntryMode.NONE
    assert not controller.bulk_selection_mode


def test_breadcrumb_is_a_copy(sample_groups: list[Group]) -> None:
    """Mutating the returned breadcrumb leaves the controller unchanged."""

    controller = _loaded(sample_groups)

    controller.breadcrumb.append("mutated")

    assert controller.breadcrumb == [ALL_HOSTS_LABEL]
