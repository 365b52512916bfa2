"""Shared pytest configuration for the test suite."""

from __future__ import annotations

from pathlib import Path

import pytest

from lssh.core.models import Group, Host

_ENV_OVERRIDES = (
    "LSSH_CONFIG",
    "LSSH_CACHE_ENABLED",
    "LSSH_CACHE_DIR",
    "LSSH_CACHE_TTL",
    "LSSH_EXCLUDE_GROUPS",
    "LSSH_HIDE_GROUPS",
    "LSSH_EXCLUDE_HOSTS",
    "LSSH_HOSTS_FILE",
    "LSSH_PROVIDER_TYPE",
)


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Tag every test that is not marked as system as a unit test."""

    for item in items:
        if "system" not in item.keywords:
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Keep tests away from the operator's real data directory and overrides."""

    for name in _ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    data_dir = tmp_path / "lssh-data"
    monkeypatch.setenv("LSSH_DATA_DIR", str(data_dir))
    return data_dir


@pytest.fixture
def sample_groups() -> list[Group]:
    """A small two-level forest used across tests."""

    return [
        Group(
            name="production",
            description="Live traffic",
            hosts=[Host(name="web1", hostname="web1.example.com", user="deploy")],
            subgroups=[
                Group(
                    name="databases",
                    hosts=[
                        Host(name="db1", hostname="db1.example.com", port=2222),
                        Host(name="db2", hostname="db2.example.com"),
                    ],
                )
            ],
        ),
        Group(
            name="staging",
            hosts=[Host(name="stage1", hostname="stage1.internal")],
        ),
    ]
