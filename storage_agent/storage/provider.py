#!/usr/bin/env python3
# CUI // SP-CTI
"""Provider — backend-agnostic fetch capability.

ABC + implementations: GCS (gcs_provider.py), S3 (s3_provider.py),
HTTP/HTTPS (https_provider.py). Instances are built by ProviderRegistry and
are not mutated afterwards, so a published provider may be shared across
threads.
"""

import os
import posixpath
from abc import ABC, abstractmethod
from typing import List

from storage_agent.resilience.errors import LocalIOError
from storage_agent.storage.protocol import Protocol


class Provider(ABC):
    """Abstract base class for storage backends."""

    @property
    @abstractmethod
    def protocol(self) -> Protocol:
        """Return the protocol this provider serves."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return provider identifier."""

    @abstractmethod
    def fetch(self, bucket: str, path: str, dest_dir: str) -> List[str]:
        """Stage the object(s) at bucket/path into dest_dir.

        Args:
            bucket: Bucket name (GCS/S3) or host (HTTP/HTTPS).
            path: Object key, or a prefix denoting a "directory".
            dest_dir: Local directory; created if missing.

        Returns:
            Local file paths in the order they were written.

        Raises:
            ObjectNotFoundError: Nothing exists at bucket/path.
            TransportError: Network-level failure.
            LocalIOError: Local directory or file could not be written.
        """

    def close(self):
        """Release the backend client. Only used for discarded duplicates."""


def is_directory_marker(key: str) -> bool:
    """Zero-byte "folder" objects created by consoles end with a slash."""
    return key.endswith("/")


def in_prefix(prefix: str, key: str) -> bool:
    """True when key is the object named by prefix or lies below it.

    Listing APIs match plain string prefixes, so "models/v1" also returns
    "models/v10/..." and "models/v1-old/..."; those are not part of the request.
    """
    prefix = prefix.strip("/")
    return not prefix or key == prefix or key.startswith(prefix + "/")


def local_target(dest_dir: str, prefix: str, key: str) -> str:
    """Map a remote key to its mirrored location under dest_dir.

    A key equal to the requested prefix (a single object) lands at
    dest_dir/<basename>; keys below the prefix keep their relative layout.
    Keys outside the prefix are rejected.
    """
    if not in_prefix(prefix, key):
        raise LocalIOError(f"Object key '{key}' is outside requested prefix '{prefix}'",
                           path=dest_dir)
    prefix = prefix.strip("/")
    if not prefix:
        relative = key
    elif key == prefix:
        relative = posixpath.basename(key)
    else:
        relative = key[len(prefix) + 1:]

    target = os.path.normpath(os.path.join(dest_dir, *relative.split("/")))
    root = os.path.normpath(dest_dir)
    if os.path.commonpath([root, target]) != root:
        raise LocalIOError(f"Object key '{key}' escapes destination {dest_dir}", path=target)
    return target
