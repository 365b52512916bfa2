"""Turn navigation state into styled text rows for the terminal."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from lssh.core.models import Group, Host, current_username
from lssh.core.navigation import (
    EntryMode,
    NavigationController,
    ViewMode,
    grid_width,
)

__all__ = ["Row", "Span", "TITLE", "help_text", "render"]

TITLE = "LSSH - SSH Host Manager"

_HEADER_SPACING = 2
_CELL_GAP = 2
_DETAILS_INDENT = "  "


@dataclass(frozen=True, slots=True)
class Span:
    """A run of text drawn with one named style."""

    text: str
    style: str = "normal"


Row = list[Span]


def _row(text: str = "", style: str = "normal") -> Row:
    return [Span(text, style)] if text else []


def render(controller: NavigationController, width: int, height: int) -> list[Row]:
    """Produce the rows of one frame; callers clip them to the screen."""

    rows: list[Row] = [_row(TITLE, "title"), []]

    if controller.loading:
        rows.append(_row("Loading data..."))
        return rows

    if controller.error is not None:
        rows.append(_row(f"⚠ {controller.error}", "error"))
        rows.append([])
        rows.append(_row("Press any key to continue, q to quit", "help"))
        return rows

    rows.append(_row(" > ".join(controller.breadcrumb), "help"))
    rows.append([])
    rows.extend(_prompt_rows(controller))
    if controller.status:
        rows.append(_row(controller.status, "error"))
        rows.append([])

    footer = [[], _row(help_text(controller), "help")]
    body_height = max(1, height - len(rows) - len(footer))

    if controller.view_mode is ViewMode.BULK_RUNNING:
        rows.extend(_bulk_rows(controller, body_height))
    else:
        rows.extend(_grid_rows(controller, width, body_height))
    rows.extend(footer)
    return rows


def _prompt_rows(controller: NavigationController) -> list[Row]:
    rows: list[Row] = []
    if controller.entry_mode is EntryMode.FILTER:
        rows.append(_row(f"Filter: {controller.entry_buffer}_", "bold"))
        rows.append([])
    elif controller.filter_text:
        rows.append(_row(f"Filter: {controller.filter_text} (Press Esc to clear)"))
        rows.append([])

    if controller.entry_mode is EntryMode.USERNAME:
        rows.append(_row(f"Enter username: {controller.entry_buffer}_", "bold"))
        rows.append([])
    elif controller.entry_mode is EntryMode.BULK_COMMAND:
        rows.append(_row(f"Enter command: {controller.entry_buffer}_", "bold"))
        rows.append([])
    elif controller.bulk_selection_mode:
        count = len(controller.selected)
        rows.append(
            _row(
                f"Bulk Selection Mode - {count} hosts selected (Space: toggle, c: command)",
                "accent",
            )
        )
        rows.append([])
    return rows


def _host_label(controller: NavigationController, host: Host) -> str:
    prefix = ""
    if controller.bulk_selection_mode:
        prefix = "[✓] " if controller.is_selected(host) else "[ ] "
    return f"{prefix}{host.name} ({host.hostname})"


def _group_label(group: Group) -> str:
    return f"{group.name} ({group.host_count()} hosts)"


def _labels(controller: NavigationController) -> list[str]:
    items = controller.current_items()
    if controller.view_mode is ViewMode.BY_GROUP:
        return [_group_label(group) for group in items]  # type: ignore[arg-type]
    return [_host_label(controller, host) for host in items]  # type: ignore[arg-type]


def _column_widths(labels: Sequence[str], columns: int, available: int) -> list[int]:
    widths = [0] * columns
    for index, label in enumerate(labels):
        col = index % columns
        widths[col] = max(widths[col], len(label) + 2)
    if sum(widths) + _CELL_GAP * (columns - 1) > available and columns > 1:
        cap = max(4, available // columns - _CELL_GAP)
        widths = [min(value, cap) for value in widths]
    return widths


def _clip(text: str, width: int) -> str:
    if width <= 0:
        return ""
    if len(text) <= width:
        return text
    if width == 1:
        return text[:1]
    return text[: width - 1] + "…"


def _grid_rows(controller: NavigationController, width: int, body_height: int) -> list[Row]:
    labels = _labels(controller)
    available = max(20, grid_width(width))
    columns = max(1, controller.columns)

    grid: list[Row] = []
    if not labels:
        grid.append(_row("No items available."))
    else:
        widths = _column_widths(labels, columns, available)
        total_rows = (len(labels) + columns - 1) // columns
        visible = max(1, body_height)
        first = max(0, controller.cursor.row - visible + 1)
        for row in range(first, min(total_rows, first + visible)):
            spans: Row = []
            for col in range(columns):
                index = row * columns + col
                if index >= len(labels):
                    break
                selected = row == controller.cursor.row and col == controller.cursor.col
                marker = "► " if selected else "  "
                cell = _clip(marker + labels[index], widths[col])
                if col < columns - 1 and index + 1 < len(labels):
                    cell = cell.ljust(widths[col] + _CELL_GAP)
                spans.append(Span(cell, "selected" if selected else "normal"))
            grid.append(spans)

    details = _details_rows(controller)
    merged: list[Row] = []
    for index in range(max(len(grid), len(details))):
        left = grid[index] if index < len(grid) else []
        used = sum(len(span.text) for span in left)
        spans = list(left)
        if index < len(details) and details[index]:
            spans.append(Span(" " * max(0, available - used) + _DETAILS_INDENT))
            spans.extend(details[index])
        merged.append(spans)
    return merged


def _details_rows(controller: NavigationController) -> list[Row]:
    group = controller.current_group_item()
    if group is not None:
        rows = [_row("Group Details", "detail_header"), []]
        rows.append([Span("Name: ", "detail_label"), Span(group.name)])
        if group.description:
            rows.append([Span("Description: ", "detail_label"), Span(group.description)])
        rows.append([Span("Hosts: ", "detail_label"), Span(str(group.host_count()))])
        if group.subgroups:
            names = ", ".join(subgroup.name for subgroup in group.subgroups)
            rows.append([Span("Subgroups: ", "detail_label"), Span(names)])
        return rows

    host = controller.current_host()
    if host is None:
        return [_row("No host selected", "dim")]

    username = host.user
    if not username:
        operator = current_username()
        username = f"{operator} (current user)" if operator else "(current user)"

    return [
        _row("Connection Details", "detail_header"),
        [],
        [Span("Name: ", "detail_label"), Span(host.name)],
        [Span("Hostname: ", "detail_label"), Span(host.hostname)],
        [Span("Port: ", "detail_label"), Span(str(host.effective_port()))],
        [Span("User: ", "detail_label"), Span(username)],
        [],
        _row("SSH Command:", "detail_label"),
        _row(host.ssh_command()),
    ]


def _bulk_rows(controller: NavigationController, body_height: int) -> list[Row]:
    header: list[Row] = [
        _row(f"Command: {controller.bulk_command}"),
        _row(f"Hosts: {len(controller.selected)}"),
    ]
    if controller.bulk_log_path is not None:
        header.append([Span("Output: "), Span(str(controller.bulk_log_path), "accent")])
    done, total = controller.bulk_progress()
    header.append([])
    header.append(_row(f"Progress: {done}/{total} completed"))
    header.append([])

    body: list[Row] = []
    for host in controller.selected:
        body.append(_row(f"=== {host.name} ===", "bold"))
        result = controller.bulk_results.get(host.key)
        if result is None:
            body.append(_row("Initializing..."))
        elif not result.done:
            body.append(_row("Running...", "dim"))
        else:
            if result.error is not None:
                body.append(_row(f"Error: {result.error}", "error"))
            body.extend(
                _row(line) for line in result.output.splitlines() if line.strip()
            )
        body.append([])

    visible = max(1, body_height - len(header))
    offset = controller.clamp_bulk_scroll(len(body) - visible)
    return header + body[offset : offset + visible]


def help_text(controller: NavigationController) -> str:
    """Key hints for the current state."""

    if controller.view_mode is ViewMode.BULK_RUNNING:
        return "Tab: back to hosts, ↑↓: scroll, q: quit"

    parts = ["↑↓←→/hjkl: navigate"]
    if controller.bulk_selection_mode:
        parts.append("Space: toggle selection")
        if controller.selected:
            parts.append("c: enter command")
    else:
        parts.append("Enter: select")

    if controller.view_mode is not ViewMode.BY_GROUP:
        parts.append("u: custom user, s: bulk mode")
    if controller.view_mode is ViewMode.IN_GROUP and len(controller.breadcrumb) > 1:
        parts.append("Backspace: back")

    parts.append("Tab: switch view, /: filter")
    if controller.filter_text:
        parts.append("Esc: clear filter")
    parts.append("q: quit")
    return ", ".join(parts)
