"""Host and group records that make up an inventory tree."""

from __future__ import annotations

import getpass
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

__all__ = [
    "DEFAULT_SSH_PORT",
    "Group",
    "Host",
    "count_hosts",
    "current_username",
    "flatten",
]

DEFAULT_SSH_PORT = 22

logger = logging.getLogger(__name__)


def current_username() -> str | None:
    """Return the login name of the invoking operator, if it can be resolved."""

    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return None


@dataclass(frozen=True, slots=True)
class Host:
    """A single addressable SSH target."""

    name: str
    hostname: str
    port: int | None = None
    user: str | None = None

    @property
    def key(self) -> str:
        """Identity used for selection membership and bulk results."""

        return f"{self.name}@{self.hostname}"

    def same_target(self, other: Host) -> bool:
        return self.name == other.name and self.hostname == other.hostname

    def effective_port(self) -> int:
        return self.port if self.port else DEFAULT_SSH_PORT

    def address(self) -> str:
        """Return ``hostname`` with the port appended when it is non-default."""

        if self.port and self.port != DEFAULT_SSH_PORT:
            return f"{self.hostname}:{self.port}"
        return self.hostname

    def ssh_command(self) -> str:
        """Render the equivalent ssh invocation for display purposes."""

        username = self.user or current_username()
        if username:
            return f"ssh {username}@{self.address()}"
        return f"ssh {self.address()}"

    def to_payload(self) -> dict[str, Any]:
        """Serialize the host into a JSON-compatible dictionary."""

        payload: dict[str, Any] = {"name": self.name, "hostname": self.hostname}
        if self.port:
            payload["port"] = self.port
        if self.user:
            payload["user"] = self.user
        return payload

    @classmethod
    def from_payload(cls, payload: Any) -> Host:
        """Build a host from serialized data, validating field types."""

        if not isinstance(payload, dict):
            msg = "Host entry must be an object"
            raise ValueError(msg)

        hostname = payload.get("hostname")
        if not isinstance(hostname, str) or not hostname.strip():
            msg = "Host entry is missing 'hostname'"
            raise ValueError(msg)
        hostname = hostname.strip()

        name = payload.get("name")
        if not isinstance(name, str) or not name.strip():
            name = hostname

        port = payload.get("port")
        if port is not None:
            try:
                port = int(port)
            except (TypeError, ValueError, OverflowError) as exc:
                raise ValueError(f"Invalid port for host '{name}'") from exc
            if port < 0 or port > 65535:
                raise ValueError(f"Port out of range for host '{name}'")

        user = payload.get("user")
        if not isinstance(user, str) or not user:
            user = None

        return cls(name=name.strip(), hostname=hostname, port=port or None, user=user)


@dataclass(slots=True)
class Group:
    """A named node owning hosts and nested subgroups."""

    name: str
    hosts: list[Host] = field(default_factory=list)
    subgroups: list[Group] = field(default_factory=list)
    description: str = ""

    def all_hosts(self) -> list[Host]:
        """Return every host reachable from this group in pre-order.

        Own hosts come first, followed by each subgroup's hosts depth-first.
        A subgroup that is already being visited higher up the current path
        is skipped so that a cyclic tree cannot recurse forever.
        """

        collected: list[Host] = []
        self._collect(collected, set())
        return collected

    def _collect(self, collected: list[Host], path: set[int]) -> None:
        path.add(id(self))
        collected.extend(self.hosts)
        for subgroup in self.subgroups:
            if id(subgroup) in path:
                logger.debug("Skipping cyclic reference to group %r under %r", subgroup.name, self.name)
                continue
            subgroup._collect(collected, path)
        path.discard(id(self))

    def host_count(self) -> int:
        return len(self.all_hosts())

    def to_payload(self) -> dict[str, Any]:
        """Serialize the group tree into a JSON-compatible dictionary."""

        payload: dict[str, Any] = {
            "name": self.name,
            "hosts": [host.to_payload() for host in self.hosts],
        }
        if self.description:
            payload["description"] = self.description
        if self.subgroups:
            payload["subgroups"] = [group.to_payload() for group in self.subgroups]
        return payload

    @classmethod
    def from_payload(cls, payload: Any) -> Group:
        """Reconstruct a group tree from serialized data."""

        if not isinstance(payload, dict):
            msg = "Group entry must be an object"
            raise ValueError(msg)

        name = payload.get("name")
        if not isinstance(name, str) or not name.strip():
            msg = "Group entry is missing 'name'"
            raise ValueError(msg)

        raw_hosts = payload.get("hosts") or []
        raw_subgroups = payload.get("subgroups") or []
        if not isinstance(raw_hosts, list):
            raise ValueError(f"'hosts' of group '{name}' must be a list")
        if not isinstance(raw_subgroups, list):
            raise ValueError(f"'subgroups' of group '{name}' must be a list")

        description = payload.get("description")
        return cls(
            name=name.strip(),
            hosts=[Host.from_payload(item) for item in raw_hosts],
            subgroups=[cls.from_payload(item) for item in raw_subgroups],
            description=description if isinstance(description, str) else "",
        )


def flatten(groups: Iterable[Group]) -> list[Host]:
    """Concatenate ``all_hosts`` of every group in order."""

    hosts: list[Host] = []
    for group in groups:
        hosts.extend(group.all_hosts())
    return hosts


def count_hosts(groups: Iterable[Group]) -> int:
    return len(flatten(groups))
