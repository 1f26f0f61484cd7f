#!/usr/bin/env python3
# CUI // SP-CTI
"""Provider Registry — lazy, cached Protocol -> Provider resolution.

The registry is an explicit object owned by the caller; there is no
module-level instance. Each protocol's provider is built on first request
from StorageConfig and reused for the registry's lifetime. Entries are never
evicted or refreshed.

Usage:
    from storage_agent.storage.registry import ProviderRegistry
    from storage_agent.storage.protocol import Protocol

    registry = ProviderRegistry()
    provider = registry.get_provider(Protocol.S3)
    provider.fetch("my-bucket", "models/v1", "/mnt/models/v1")
"""

import logging
import threading
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from storage_agent.resilience.errors import UnsupportedSchemeError
from storage_agent.storage.credentials import StorageConfig
from storage_agent.storage.gcs_provider import build_gcs_provider
from storage_agent.storage.https_provider import HTTPSProvider
from storage_agent.storage.protocol import ArtifactLocation, Protocol, parse_uri
from storage_agent.storage.provider import Provider
from storage_agent.storage.s3_provider import build_s3_provider

logger = logging.getLogger("storage_agent.registry")

ProviderBuilder = Callable[[StorageConfig], Provider]


def _build_gcs(config: StorageConfig) -> Provider:
    return build_gcs_provider(config.gcs)


def _build_s3(config: StorageConfig) -> Provider:
    return build_s3_provider(config.s3)


def _build_https(config: StorageConfig) -> Provider:
    return HTTPSProvider(Protocol.HTTPS, timeout=config.http.timeout)


def _build_http(config: StorageConfig) -> Provider:
    return HTTPSProvider(Protocol.HTTP, timeout=config.http.timeout)


DEFAULT_BUILDERS: Dict[Protocol, ProviderBuilder] = {
    Protocol.GCS: _build_gcs,
    Protocol.S3: _build_s3,
    Protocol.HTTPS: _build_https,
    Protocol.HTTP: _build_http,
}


class ProviderRegistry:
    """Cache of constructed providers, one per protocol.

    Args:
        config: Fixed configuration. When omitted, configuration is resolved
            from the environment each time a provider has to be built, so a
            failed construction is retried with fresh values.
        builders: Protocol -> builder mapping; defaults to DEFAULT_BUILDERS.
    """

    def __init__(self, config: Optional[StorageConfig] = None,
                 builders: Optional[Mapping[Protocol, ProviderBuilder]] = None):
        self._config = config
        self._builders: Dict[Protocol, ProviderBuilder] = dict(
            DEFAULT_BUILDERS if builders is None else builders
        )
        self._providers: Dict[Protocol, Provider] = {}
        self._lock = threading.Lock()

    def _resolve_config(self) -> StorageConfig:
        if self._config is not None:
            return self._config
        return StorageConfig.from_env()

    def get_provider(self, protocol: Protocol) -> Optional[Provider]:
        """Return the cached provider for protocol, building it on first use.

        Returns None (not an error) for a value that is not a known protocol.

        Raises:
            CredentialConstructionError: the backend client could not be
                built. Nothing is cached, so the next call tries again.
        """
        builder = self._builders.get(protocol) if isinstance(protocol, Protocol) else None
        if builder is None:
            logger.warning("No storage provider for protocol %r", protocol)
            return None

        with self._lock:
            provider = self._providers.get(protocol)
        if provider is not None:
            logger.debug("Provider cache hit: %s", protocol.name)
            return provider

        provider = builder(self._resolve_config())

        # First writer wins; a racing builder's result is discarded.
        with self._lock:
            published = self._providers.setdefault(protocol, provider)
        if published is not provider:
            logger.debug("Discarding duplicate %s provider built concurrently", protocol.name)
            provider.close()
        else:
            logger.info("Storage provider constructed: %s (%s)",
                        protocol.name, provider.provider_name)
        return published

    def get_provider_for_uri(self, uri: str) -> Tuple[Provider, ArtifactLocation]:
        """Classify uri and return its provider with the parsed location."""
        location = parse_uri(uri)
        provider = self.get_provider(location.protocol)
        if provider is None:
            raise UnsupportedSchemeError(uri=uri)
        return provider, location

    def cached_protocols(self) -> List[Protocol]:
        with self._lock:
            return list(self._providers)

    def __contains__(self, protocol) -> bool:
        with self._lock:
            return protocol in self._providers
