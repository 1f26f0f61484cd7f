#!/usr/bin/env python3
# CUI // SP-CTI
"""Artifact storage providers.

Resolves artifact locators (gs://, s3://, https://, http://) to a cached,
per-protocol Provider that fetches objects into a local directory.

Pattern: ABC + one implementation per backend, built lazily by
ProviderRegistry from an explicit StorageConfig.
"""

from storage_agent.storage.credentials import (  # noqa: F401
    GCSConfig,
    HTTPConfig,
    S3Config,
    StorageConfig,
    load_config,
)
from storage_agent.storage.protocol import ArtifactLocation, Protocol, parse_uri  # noqa: F401
from storage_agent.storage.provider import Provider  # noqa: F401
from storage_agent.storage.registry import ProviderRegistry  # noqa: F401
