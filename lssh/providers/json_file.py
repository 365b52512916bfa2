"""Inventory provider backed by a JSON hosts file."""

from __future__ import annotations

import json
from pathlib import Path

from lssh.core.interfaces import ProviderError
from lssh.core.models import Group

__all__ = ["JSONProvider"]


class JSONProvider:
    """Read a JSON list of groups.

    Each group carries ``name``, ``hosts`` and optionally ``description`` and
    ``subgroups``; each host carries ``hostname`` and optionally ``name``,
    ``port`` and ``user``.
    """

    def __init__(self, name: str, path: Path | str) -> None:
        self._name = name
        self._path = Path(path).expanduser()

    @property
    def name(self) -> str:
        return self._name

    @property
    def path(self) -> Path:
        return self._path

    def fetch(self) -> list[Group]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ProviderError(f"failed to read JSON file {self._path}: {exc}") from exc

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ProviderError(f"failed to parse JSON file {self._path}: {exc}") from exc

        if not isinstance(payload, list):
            raise ProviderError(f"JSON file {self._path} must contain a list of groups")

        try:
            return [Group.from_payload(item) for item in payload]
        except ValueError as exc:
            raise ProviderError(f"invalid group in {self._path}: {exc}") from exc
