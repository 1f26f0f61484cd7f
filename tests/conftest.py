#!/usr/bin/env python3
# CUI // SP-CTI
"""Shared pytest fixtures for the storage agent test suite.

Clears storage-related environment variables for every test and provides a
fake Provider so registry/downloader tests never touch a real backend.
"""

import os
import sys
from pathlib import Path
from typing import List

import pytest

# Ensure project root is on sys.path
BASE_DIR = Path(__file__).resolve().parent.parent
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from storage_agent.storage.credentials import (  # noqa: E402
    AWS_ANONYMOUS_CREDENTIAL,
    AWS_ENDPOINT_URL,
    AWS_REGION,
    GCS_CREDENTIAL_ENV_KEY,
    S3_USE_VIRTUAL_BUCKET,
)
from storage_agent.resilience.errors import ObjectNotFoundError  # noqa: E402
from storage_agent.storage.fsutil import create  # noqa: E402
from storage_agent.storage.protocol import Protocol  # noqa: E402
from storage_agent.storage.provider import Provider, in_prefix, local_target  # noqa: E402

STORAGE_ENV_KEYS = (
    GCS_CREDENTIAL_ENV_KEY,
    AWS_REGION,
    S3_USE_VIRTUAL_BUCKET,
    AWS_ENDPOINT_URL,
    AWS_ANONYMOUS_CREDENTIAL,
)


@pytest.fixture(autouse=True)
def clean_storage_env(monkeypatch):
    """Remove storage env vars so tests start from defaults."""
    for key in STORAGE_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    yield


class FakeProvider(Provider):
    """In-memory provider: objects is a {bucket: {key: bytes}} mapping."""

    def __init__(self, protocol: Protocol, objects=None):
        self._protocol = protocol
        self.objects = objects or {}
        self.fetch_calls = []
        self.closed = False

    @property
    def protocol(self) -> Protocol:
        return self._protocol

    @property
    def provider_name(self) -> str:
        return f"fake-{self._protocol.name.lower()}"

    def close(self):
        self.closed = True

    def fetch(self, bucket: str, path: str, dest_dir: str) -> List[str]:
        self.fetch_calls.append((bucket, path, dest_dir))
        written = []
        for key, data in self.objects.get(bucket, {}).items():
            if not in_prefix(path, key):
                continue
            target = local_target(dest_dir, path, key)
            with create(target) as f:
                f.write(data)
            written.append(target)
        if not written:
            raise ObjectNotFoundError(service="fake", bucket=bucket, path=path)
        return written


@pytest.fixture
def fake_provider_cls():
    return FakeProvider
