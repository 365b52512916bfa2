"""Inventory provider that shells out to ``ansible-inventory``."""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Any

from lssh.core.interfaces import ProviderError
from lssh.core.models import Group, Host, current_username

__all__ = ["AnsibleProvider", "parse_inventory"]

logger = logging.getLogger(__name__)

_SKIPPED_GROUPS = frozenset({"_meta", "all", "ungrouped"})
_DEFAULT_TIMEOUT = 60.0


def _host_vars(inventory: dict[str, Any]) -> dict[str, dict[str, Any]]:
    meta = inventory.get("_meta")
    if not isinstance(meta, dict):
        return {}
    raw = meta.get("hostvars")
    if not isinstance(raw, dict):
        return {}
    return {name: values for name, values in raw.items() if isinstance(values, dict)}


def _build_host(name: str, variables: dict[str, Any], default_user: str | None) -> Host:
    hostname = variables.get("ansible_host")
    user = variables.get("ansible_user")
    port = variables.get("ansible_port")
    if isinstance(port, str) and port.isdigit():
        port = int(port)
    return Host(
        name=name,
        hostname=hostname if isinstance(hostname, str) and hostname else name,
        port=port if isinstance(port, int) and not isinstance(port, bool) and port > 0 else None,
        user=user if isinstance(user, str) and user else default_user,
    )


def parse_inventory(inventory: Any, default_user: str | None = None) -> list[Group]:
    """Convert ``ansible-inventory --list`` output into groups.

    Only groups with direct hosts are returned; the implicit ``all`` and
    ``ungrouped`` groups are skipped.
    """

    if not isinstance(inventory, dict):
        msg = "ansible-inventory output must be a JSON object"
        raise ProviderError(msg)

    host_vars = _host_vars(inventory)
    groups: list[Group] = []
    for group_name, data in inventory.items():
        if group_name in _SKIPPED_GROUPS or not isinstance(data, dict):
            continue
        raw_hosts = data.get("hosts")
        if not isinstance(raw_hosts, list):
            continue
        hosts = [
            _build_host(item, host_vars.get(item, {}), default_user)
            for item in raw_hosts
            if isinstance(item, str) and item
        ]
        if hosts:
            groups.append(Group(name=group_name, hosts=hosts))
    return groups


class AnsibleProvider:
    """Resolve hosts from an Ansible inventory file."""

    def __init__(
        self,
        name: str,
        path: Path | str,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
        binary: str = "ansible-inventory",
    ) -> None:
        self._name = name
        self._path = Path(path).expanduser()
        self._timeout = timeout
        self._binary = binary

    @property
    def name(self) -> str:
        return self._name

    @property
    def path(self) -> Path:
        return self._path

    def fetch(self) -> list[Group]:
        binary = shutil.which(self._binary)
        if binary is None:
            raise ProviderError(f"{self._binary} command not found")

        argv = [binary, "-i", str(self._path), "--list"]
        logger.debug("Running %s", " ".join(argv))
        try:
            completed = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise ProviderError(
                f"ansible-inventory timed out after {self._timeout:g}s"
            ) from exc
        except OSError as exc:
            raise ProviderError(f"failed to run ansible-inventory: {exc}") from exc

        if completed.returncode != 0:
            raise ProviderError(f"ansible-inventory command failed: {completed.stderr.strip()}")

        try:
            inventory = json.loads(completed.stdout)
        except json.JSONDecodeError as exc:
            raise ProviderError(f"failed to parse ansible-inventory output: {exc}") from exc

        return parse_inventory(inventory, default_user=current_username())
