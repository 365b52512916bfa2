"""On-disk caching of provider inventories with a freshness window."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from platformdirs import user_cache_path

from lssh.core.interfaces import Provider
from lssh.core.models import Group, count_hosts

__all__ = [
    "DEFAULT_TTL",
    "CacheEntry",
    "CacheError",
    "CachedProvider",
    "cache_dir",
    "cache_ttl",
    "clear_cache",
    "fingerprint",
    "parse_ttl",
    "resolve_stale_caches",
]

DEFAULT_TTL = timedelta(hours=24)

_ENTRY_PREFIX = "lssh_"
_ENTRY_SUFFIX = ".json"
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
    "s": timedelta(seconds=1),
    "ms": timedelta(milliseconds=1),
}

logger = logging.getLogger(__name__)

ConfirmFn = Callable[[str], bool]
OutputFn = Callable[[str], None]


def _utcnow() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(UTC)


class CacheError(Exception):
    """Raised when cached inventories cannot be removed."""


def parse_ttl(value: str | None) -> timedelta | None:
    """Parse a TTL given in whole hours (``"12"``) or as a duration (``"1h30m"``).

    Returns ``None`` when the value is empty or cannot be interpreted.
    """

    if value is None:
        return None
    text = value.strip().lower()
    if not text:
        return None
    if text.isdigit():
        return timedelta(hours=int(text))

    total = timedelta()
    position = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            return None
        total += _DURATION_UNITS[match.group(2)] * float(match.group(1))
        position = match.end()
    if position == 0 or position != len(text):
        return None
    return total


def cache_dir(configured: str | None = None) -> Path:
    """Resolve the cache directory.

    ``LSSH_CACHE_DIR`` wins over the configured value, which wins over the
    platform user cache directory.
    """

    override = os.getenv("LSSH_CACHE_DIR") or configured
    if override:
        return Path(override).expanduser()
    return user_cache_path("lssh")


def cache_ttl(configured: str | None = None) -> timedelta:
    """Resolve the freshness window from ``LSSH_CACHE_TTL`` or configuration."""

    for candidate in (os.getenv("LSSH_CACHE_TTL"), configured):
        parsed = parse_ttl(candidate)
        if parsed is not None:
            return parsed
        if candidate:
            logger.warning("Ignoring invalid cache TTL %r", candidate)
    return DEFAULT_TTL


def fingerprint(provider_type: str, locator: str, name: str) -> str:
    """Return the cache key for a provider source."""

    digest = hashlib.sha256(f"{provider_type}:{locator}:{name}".encode()).hexdigest()
    return f"{_ENTRY_PREFIX}{digest[:16]}"


@dataclass(slots=True)
class CacheEntry:
    """A cached forest together with the time it was fetched."""

    groups: list[Group]
    timestamp: datetime

    def to_payload(self) -> dict[str, Any]:
        return {
            "groups": [group.to_payload() for group in self.groups],
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_payload(cls, payload: Any) -> CacheEntry:
        if not isinstance(payload, dict):
            msg = "Cache entry must be an object"
            raise ValueError(msg)
        raw_groups = payload.get("groups")
        if not isinstance(raw_groups, list):
            msg = "Cache entry is missing 'groups'"
            raise ValueError(msg)
        raw_timestamp = payload.get("timestamp")
        if not isinstance(raw_timestamp, str):
            msg = "Cache entry is missing 'timestamp'"
            raise ValueError(msg)
        timestamp = datetime.fromisoformat(raw_timestamp)
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=UTC)
        return cls(groups=[Group.from_payload(item) for item in raw_groups], timestamp=timestamp)


class CachedProvider:
    """Provider decorator that memoizes the inner provider's forest on disk."""

    def __init__(
        self,
        inner: Provider,
        provider_type: str,
        locator: str,
        *,
        directory: Path | None = None,
        ttl: timedelta | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._inner = inner
        self._provider_type = provider_type
        self._locator = locator
        self._directory = directory if directory is not None else cache_dir()
        self._ttl = ttl if ttl is not None else cache_ttl()
        self._clock = clock if clock is not None else _utcnow
        self.trust_stale = False

    @property
    def name(self) -> str:
        return self._inner.name

    @property
    def inner(self) -> Provider:
        return self._inner

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def path(self) -> Path:
        """Return the file backing this provider's cache entry."""

        key = fingerprint(self._provider_type, self._locator, self._inner.name)
        return self._directory / f"{key}{_ENTRY_SUFFIX}"

    def fetch(self) -> list[Group]:
        entry = self.inspect()
        if entry is not None and (self.trust_stale or not self.is_stale(entry)):
            logger.debug("Serving %s from cache (%s)", self.name, self.path)
            return entry.groups

        groups = self._inner.fetch()
        if count_hosts(groups) > 0:
            self._store(groups)
        else:
            logger.debug("Not caching empty inventory from %s", self.name)
        return groups

    def inspect(self) -> CacheEntry | None:
        """Read the persisted entry, treating unreadable data as absent."""

        try:
            raw = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Ignoring unreadable cache entry %s: %s", self.path, exc)
            return None
        try:
            return CacheEntry.from_payload(json.loads(raw))
        except (ValueError, TypeError, OverflowError) as exc:
            logger.debug("Ignoring corrupt cache entry %s: %s", self.path, exc)
            return None

    def age(self, entry: CacheEntry) -> timedelta:
        return self._clock() - entry.timestamp

    def is_stale(self, entry: CacheEntry) -> bool:
        return self.age(entry) >= self._ttl

    def discard(self) -> None:
        """Remove the persisted entry so the next fetch goes to the source."""

        self.path.unlink(missing_ok=True)

    def _store(self, groups: list[Group]) -> None:
        entry = CacheEntry(groups=groups, timestamp=self._clock())
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            data = json.dumps(entry.to_payload(), indent=2)
            tmp_path = self.path.with_suffix(".tmp")
            tmp_path.write_text(data, encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as exc:
            logger.debug("Could not write cache entry %s: %s", self.path, exc)


def _format_age(age: timedelta) -> str:
    minutes = max(0, round(age.total_seconds() / 60))
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h{minutes}m"
    return f"{minutes}m"


def resolve_stale_caches(
    providers: Iterable[Provider],
    confirm: ConfirmFn,
    output: OutputFn,
) -> None:
    """Ask once per stale cache whether to keep using it for this session.

    Accepting marks the provider as trusting its stale entry; declining
    removes the entry so that the next fetch is live.
    """

    for provider in providers:
        if not isinstance(provider, CachedProvider):
            continue
        entry = provider.inspect()
        if entry is None or not provider.is_stale(entry):
            continue

        output(f"Cache for {provider.name} expired {_format_age(provider.age(entry))} ago.")
        if confirm("Use expired cache?"):
            provider.trust_stale = True
            continue
        try:
            provider.discard()
        except OSError as exc:
            output(f"Warning: could not remove expired cache: {exc}")


def clear_cache(directory: Path | None = None) -> int:
    """Delete every cached inventory entry and return how many were removed."""

    target = directory if directory is not None else cache_dir()
    if not target.exists():
        return 0

    removed = 0
    failures: list[str] = []
    for path in sorted(target.glob(f"{_ENTRY_PREFIX}*{_ENTRY_SUFFIX}")):
        if not path.is_file():
            continue
        try:
            path.unlink()
        except OSError as exc:
            failures.append(f"failed to delete {path.name}: {exc}")
            continue
        removed += 1

    if failures:
        msg = "some cache files could not be deleted:\n" + "\n".join(failures)
        raise CacheError(msg)
    return removed
