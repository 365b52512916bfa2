"""Protocol definitions for lssh core services."""

from __future__ import annotations

from typing import Protocol

from lssh.core.models import Group, Host

__all__ = ["CommandExecutor", "Provider", "ProviderError"]


class ProviderError(Exception):
    """Raised when a provider cannot produce its inventory."""


class Provider(Protocol):
    """Source of an inventory forest."""

    @property
    def name(self) -> str: ...

    def fetch(self) -> list[Group]:
        """Return the root groups of this source, raising ``ProviderError`` on failure."""


class CommandExecutor(Protocol):
    """Runs a non-interactive command on a host."""

    def __call__(
        self,
        host: Host,
        command: str,
        *,
        username: str | None = None,
        timeout: float | None = None,
    ) -> tuple[str, Exception | None]: ...
