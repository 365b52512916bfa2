"""Substring filtering over hosts and groups."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from lssh.core.models import Group, Host

__all__ = ["FilteredView", "filter_groups", "filter_hosts", "group_matches", "host_matches"]


def _needle(text: str) -> str:
    return text.lower()


def host_matches(host: Host, text: str) -> bool:
    """Return whether ``text`` occurs in the host's name or hostname, ignoring case."""

    needle = _needle(text)
    return needle in host.name.lower() or needle in host.hostname.lower()


def group_matches(group: Group, text: str) -> bool:
    """A group matches on its own name or on any host reachable beneath it."""

    needle = _needle(text)
    if needle in group.name.lower():
        return True
    return any(host_matches(host, needle) for host in group.all_hosts())


def filter_hosts(hosts: Iterable[Host], text: str) -> list[Host]:
    if not text:
        return list(hosts)
    return [host for host in hosts if host_matches(host, text)]


def filter_groups(groups: Iterable[Group], text: str) -> list[Group]:
    if not text:
        return list(groups)
    return [group for group in groups if group_matches(group, text)]


@dataclass(frozen=True, slots=True)
class FilteredView:
    """Hosts and groups that survive a filter string."""

    hosts: list[Host]
    groups: list[Group]

    @classmethod
    def derive(cls, groups: Iterable[Group], hosts: Iterable[Host], text: str) -> FilteredView:
        return cls(hosts=filter_hosts(hosts, text), groups=filter_groups(groups, text))
