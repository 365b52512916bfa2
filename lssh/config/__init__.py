"""Configuration models and loading helpers for lssh."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from lssh.core.inventory import ExclusionRules
from lssh.paths import config_dir

__all__ = [
    "AppConfig",
    "ConfigError",
    "ConfigStore",
    "ProviderConfig",
    "default_config_path",
    "default_hosts_file",
    "default_provider_type",
    "default_providers",
]

_DEFAULT_CONFIG_FILENAME = "config.json"
_DEFAULT_HOSTS_FILENAME = "hosts.json"
_SYSTEM_HOSTS_FILE = Path("/etc/lssh/hosts.json")
_TRUE_VALUES = {"1", "t", "true", "y", "yes", "on"}
_FALSE_VALUES = {"0", "f", "false", "n", "no", "off"}


class ConfigError(Exception):
    """Raised when configuration is unreadable or describes an unusable setup."""


def _clean_patterns(raw: Any) -> list[str]:
    patterns: list[str] = []
    if isinstance(raw, list):
        for item in raw:
            if not isinstance(item, str):
                continue
            normalized = item.strip()
            if normalized and normalized not in patterns:
                patterns.append(normalized)
    return patterns


def _env_patterns(name: str) -> list[str] | None:
    value = os.getenv(name)
    if not value:
        return None
    return _clean_patterns(value.split(","))


def _parse_bool(value: str) -> bool | None:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return None


@dataclass(slots=True)
class ProviderConfig:
    """Declaration of one inventory source."""

    type: str
    name: str
    options: dict[str, Any] = field(default_factory=dict)

    @property
    def file(self) -> str | None:
        value = self.options.get("file")
        return value if isinstance(value, str) and value else None

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.type, "name": self.name, "config": dict(self.options)}

    @classmethod
    def from_payload(cls, payload: Any) -> ProviderConfig:
        if not isinstance(payload, dict):
            msg = "Provider entries must be objects"
            raise ConfigError(msg)
        provider_type = payload.get("type")
        if not isinstance(provider_type, str) or not provider_type:
            msg = "Provider entry is missing 'type'"
            raise ConfigError(msg)
        name = payload.get("name")
        if not isinstance(name, str) or not name:
            name = provider_type
        options = payload.get("config", {})
        if not isinstance(options, dict):
            raise ConfigError(f"'config' of provider '{name}' must be an object")
        return cls(type=provider_type, name=name, options=dict(options))


def default_config_path() -> Path:
    """Return the configuration file location, honouring ``LSSH_CONFIG``."""

    override = os.getenv("LSSH_CONFIG")
    if override:
        return Path(override).expanduser()
    return config_dir() / _DEFAULT_CONFIG_FILENAME


def default_hosts_file() -> str:
    """Locate the hosts file used when no providers are configured."""

    override = os.getenv("LSSH_HOSTS_FILE")
    if override:
        return override

    candidates = [
        Path.cwd() / _DEFAULT_HOSTS_FILENAME,
        config_dir() / _DEFAULT_HOSTS_FILENAME,
        _SYSTEM_HOSTS_FILE,
    ]
    for candidate in candidates:
        if candidate.exists():
            return str(candidate)
    return f"./{_DEFAULT_HOSTS_FILENAME}"


def default_provider_type(path: str) -> str:
    """Infer the provider type of ``path`` unless ``LSSH_PROVIDER_TYPE`` is set."""

    override = os.getenv("LSSH_PROVIDER_TYPE")
    if override:
        return override
    if Path(path).suffix.lower() in {".yml", ".yaml"}:
        return "ansible"
    return "json"


def default_providers() -> list[ProviderConfig]:
    """Derive a single provider from the hosts file search path."""

    hosts_file = default_hosts_file()
    return [
        ProviderConfig(
            type=default_provider_type(hosts_file),
            name="default",
            options={"file": hosts_file},
        )
    ]


@dataclass(slots=True)
class AppConfig:
    """Top-level application configuration settings."""

    providers: list[ProviderConfig] = field(default_factory=list)
    cache_enabled: bool | None = None
    cache_ttl: str | None = None
    cache_dir: str | None = None
    exclude_groups: list[str] = field(default_factory=list)
    hide_groups: list[str] = field(default_factory=list)
    exclude_hosts: list[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        """Serialize the configuration into a JSON-compatible structure."""

        payload: dict[str, Any] = {
            "providers": [provider.to_payload() for provider in self.providers],
            "exclude_groups": list(self.exclude_groups),
            "hide_groups": list(self.hide_groups),
            "exclude_hosts": list(self.exclude_hosts),
        }
        if self.cache_enabled is not None:
            payload["cache_enabled"] = self.cache_enabled
        if self.cache_ttl is not None:
            payload["cache_ttl"] = self.cache_ttl
        if self.cache_dir is not None:
            payload["cache_dir"] = self.cache_dir
        return payload

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> AppConfig:
        """Create a configuration instance from serialized data."""

        raw_providers = payload.get("providers", [])
        if not isinstance(raw_providers, list):
            msg = "'providers' must be a list"
            raise ConfigError(msg)

        cache_enabled = payload.get("cache_enabled")
        cache_ttl = payload.get("cache_ttl")
        cache_dir = payload.get("cache_dir")
        return cls(
            providers=[ProviderConfig.from_payload(item) for item in raw_providers],
            cache_enabled=cache_enabled if isinstance(cache_enabled, bool) else None,
            cache_ttl=str(cache_ttl) if isinstance(cache_ttl, (str, int)) else None,
            cache_dir=cache_dir if isinstance(cache_dir, str) and cache_dir else None,
            exclude_groups=_clean_patterns(payload.get("exclude_groups", [])),
            hide_groups=_clean_patterns(payload.get("hide_groups", [])),
            exclude_hosts=_clean_patterns(payload.get("exclude_hosts", [])),
        )

    def is_cache_enabled(self) -> bool:
        """``LSSH_CACHE_ENABLED`` overrides the file; caching defaults to on."""

        env_value = os.getenv("LSSH_CACHE_ENABLED")
        if env_value:
            parsed = _parse_bool(env_value)
            if parsed is not None:
                return parsed
        if self.cache_enabled is not None:
            return self.cache_enabled
        return True

    def exclusion_rules(self) -> ExclusionRules:
        """Combine configured patterns with their environment overrides."""

        exclude_groups = _env_patterns("LSSH_EXCLUDE_GROUPS")
        hide_groups = _env_patterns("LSSH_HIDE_GROUPS")
        exclude_hosts = _env_patterns("LSSH_EXCLUDE_HOSTS")
        return ExclusionRules(
            exclude_groups=tuple(exclude_groups if exclude_groups is not None else self.exclude_groups),
            hide_groups=tuple(hide_groups if hide_groups is not None else self.hide_groups),
            exclude_hosts=tuple(exclude_hosts if exclude_hosts is not None else self.exclude_hosts),
        )


class ConfigStore:
    """Read the application configuration file."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path if path is not None else default_config_path()

    @property
    def path(self) -> Path:
        """Expose the backing configuration file path."""

        return self._path

    def load(self) -> AppConfig:
        """Load configuration from disk.

        A missing or blank file yields defaults with a single provider derived
        from the hosts file search path. Malformed content raises
        :class:`ConfigError`.
        """

        if not self._path.exists():
            return AppConfig(providers=default_providers())
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"failed to read config file {self._path}: {exc}") from exc
        if not raw.strip():
            return AppConfig(providers=default_providers())
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"failed to parse config file {self._path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise ConfigError(f"config file {self._path} must contain a JSON object")
        return AppConfig.from_payload(payload)

    def save(self, config: AppConfig) -> None:
        """Persist the provided configuration to disk atomically."""

        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = json.dumps(config.to_payload(), indent=2, sort_keys=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(data, encoding="utf-8")
        tmp_path.replace(self._path)
