"""Exit status handling for interactive ssh sessions."""

from __future__ import annotations

from typing import Any

import pytest

from lssh.cli import ssh_launcher
from lssh.core.models import Host


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (0, 0),
        (17 << 8, 17),
        (255 << 8, 255),
        (9, 137),
        (15, 143),
        (0x137F, 0x137F),
    ],
    ids=["clean", "exit-17", "exit-255", "sigkill", "sigterm", "stopped"],
)
def test_session_exit_code(status: int, expected: int) -> None:
    """Exits keep their code and signals map to shell-style codes."""

    assert ssh_launcher.session_exit_code(status) == expected


def test_spawn_ssh_uses_pty(monkeypatch: Any) -> None:
    """Sessions are spawned through the pty module."""

    calls: list[list[str]] = []

    def fake_spawn(argv: list[str]) -> int:
        calls.append(list(argv))
        return 23

    monkeypatch.setattr(ssh_launcher.pty, "spawn", fake_spawn)

    assert ssh_launcher._spawn_ssh(["ssh", "deploy@web1"]) == 23
    assert calls == [["ssh", "deploy@web1"]]


def test_run_ssh_reports_remote_exit_code(monkeypatch: Any) -> None:
    """Non-zero exits from ssh are returned to the browser."""

    monkeypatch.setattr(ssh_launcher.shutil, "which", lambda _: "/usr/bin/ssh")
    monkeypatch.setattr(ssh_launcher, "_spawn_ssh", lambda argv: 255 << 8)

    assert ssh_launcher.run_ssh(Host(name="web", hostname="web", user="deploy")) == 255


def test_run_ssh_reports_spawn_failure(
    monkeypatch: Any, capsys: pytest.CaptureFixture[str]
) -> None:
    """Failing to start the pty child is reported instead of raised."""

    def broken_spawn(argv: list[str]) -> int:
        raise OSError("out of pty devices")

    monkeypatch.setattr(ssh_launcher.shutil, "which", lambda _: "/usr/bin/ssh")
    monkeypatch.setattr(ssh_launcher, "_spawn_ssh", broken_spawn)

    assert ssh_launcher.run_ssh(Host(name="web", hostname="web")) == 1
    assert "failed to start ssh: out of pty devices" in capsys.readouterr().err
