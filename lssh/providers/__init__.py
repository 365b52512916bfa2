"""Inventory providers and the factory that builds them from configuration."""

from __future__ import annotations

from lssh.config import AppConfig, ConfigError, ProviderConfig
from lssh.core.cache import CachedProvider, cache_dir, cache_ttl
from lssh.core.interfaces import Provider
from lssh.providers.ansible import AnsibleProvider
from lssh.providers.json_file import JSONProvider

__all__ = ["AnsibleProvider", "JSONProvider", "build_provider", "build_providers"]

_PROVIDER_TYPES = {
    "json": JSONProvider,
    "ansible": AnsibleProvider,
}


def build_provider(config: ProviderConfig, app_config: AppConfig) -> Provider:
    """Instantiate the provider described by ``config``.

    The provider is wrapped in a :class:`CachedProvider` when caching is
    enabled.
    """

    factory = _PROVIDER_TYPES.get(config.type)
    if factory is None:
        raise ConfigError(f"unknown provider type: {config.type}")

    path = config.file
    if path is None:
        raise ConfigError(f"{config.type} provider requires 'file' config parameter")

    provider: Provider = factory(config.name, path)
    if app_config.is_cache_enabled():
        return CachedProvider(
            provider,
            config.type,
            path,
            directory=cache_dir(app_config.cache_dir),
            ttl=cache_ttl(app_config.cache_ttl),
        )
    return provider


def build_providers(app_config: AppConfig) -> list[Provider]:
    """Build every configured provider, failing on the first invalid entry."""

    if not app_config.providers:
        msg = "no providers configured"
        raise ConfigError(msg)

    providers: list[Provider] = []
    for provider_config in app_config.providers:
        try:
            providers.append(build_provider(provider_config, app_config))
        except ConfigError as exc:
            raise ConfigError(f"failed to create provider {provider_config.name}: {exc}") from exc
    return providers
