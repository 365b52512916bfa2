"""Loading provider forests and applying exclusion rules."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field

from lssh.core.interfaces import Provider, ProviderError
from lssh.core.models import Group, Host, flatten

__all__ = [
    "ExclusionRules",
    "Inventory",
    "InventoryLoaded",
    "load_inventory",
    "matches_pattern",
]

logger = logging.getLogger(__name__)


def matches_pattern(name: str, pattern: str) -> bool:
    """Match ``name`` against a pattern where ``*`` stands for any run of characters."""

    pattern = pattern.strip()
    if not pattern:
        return False
    if "*" not in pattern:
        return name == pattern
    expression = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.fullmatch(expression, name, flags=re.DOTALL) is not None


def _matches_any(name: str, patterns: Iterable[str]) -> bool:
    return any(matches_pattern(name, pattern) for pattern in patterns)


def _walk(groups: Iterable[Group], path: frozenset[int] = frozenset()) -> Iterator[Group]:
    for group in groups:
        if id(group) in path:
            continue
        yield group
        yield from _walk(group.subgroups, path | {id(group)})


@dataclass(frozen=True, slots=True)
class ExclusionRules:
    """Patterns removing groups and hosts before they reach the browser.

    ``exclude_groups`` removes matching groups and every host beneath them
    wherever those hosts appear. ``hide_groups`` only removes the groups from
    the group listing; their hosts stay in the flattened host list.
    ``exclude_hosts`` matches against a host's name or hostname.
    """

    exclude_groups: tuple[str, ...] = ()
    hide_groups: tuple[str, ...] = ()
    exclude_hosts: tuple[str, ...] = ()

    def is_empty(self) -> bool:
        return not (self.exclude_groups or self.hide_groups or self.exclude_hosts)

    def is_group_excluded(self, name: str) -> bool:
        return _matches_any(name, self.exclude_groups)

    def is_group_hidden(self, name: str) -> bool:
        return self.is_group_excluded(name) or _matches_any(name, self.hide_groups)

    def is_host_excluded(self, host: Host) -> bool:
        return _matches_any(host.name, self.exclude_hosts) or _matches_any(
            host.hostname, self.exclude_hosts
        )

    def apply(self, groups: Sequence[Group]) -> Inventory:
        """Return the pruned group forest and the flattened, filtered host list."""

        if self.is_empty():
            return Inventory(groups=list(groups), hosts=flatten(groups))

        removed = {
            host.key
            for group in _walk(groups)
            if self.is_group_excluded(group.name)
            for host in group.all_hosts()
        }

        def keep(host: Host) -> bool:
            return host.key not in removed and not self.is_host_excluded(host)

        return Inventory(
            groups=self._prune(groups, keep, frozenset()),
            hosts=[host for host in flatten(groups) if keep(host)],
        )

    def _prune(
        self,
        groups: Iterable[Group],
        keep: Callable[[Host], bool],
        path: frozenset[int],
    ) -> list[Group]:
        pruned: list[Group] = []
        for group in groups:
            if id(group) in path or self.is_group_hidden(group.name):
                continue
            hosts = [host for host in group.hosts if keep(host)]
            subgroups = self._prune(group.subgroups, keep, path | {id(group)})
            had_content = bool(group.hosts or group.subgroups)
            if had_content and not (hosts or subgroups):
                logger.debug("Dropping group %r emptied by exclusions", group.name)
                continue
            pruned.append(
                Group(
                    name=group.name,
                    hosts=hosts,
                    subgroups=subgroups,
                    description=group.description,
                )
            )
        return pruned


@dataclass(slots=True)
class Inventory:
    """Root groups plus the flattened host list derived from them."""

    groups: list[Group] = field(default_factory=list)
    hosts: list[Host] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class InventoryLoaded:
    """Event posted when a background inventory load completes."""

    inventory: Inventory | None
    error: Exception | None = None


def load_inventory(
    providers: Iterable[Provider],
    rules: ExclusionRules | None = None,
) -> Inventory:
    """Fetch every provider in order and concatenate their forests.

    The first failing provider aborts the load with a ``ProviderError`` that
    names it.
    """

    forest: list[Group] = []
    for provider in providers:
        try:
            groups = provider.fetch()
        except ProviderError as exc:
            raise ProviderError(f"failed to load data from {provider.name}: {exc}") from exc
        logger.info("Loaded %d groups from %s", len(groups), provider.name)
        forest.extend(groups)

    return (rules or ExclusionRules()).apply(forest)
