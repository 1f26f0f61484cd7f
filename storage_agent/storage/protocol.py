#!/usr/bin/env python3
# CUI // SP-CTI
"""Storage protocols and artifact locator classification.

A locator has the shape ``<scheme>://<bucket-or-host>/<path>``. Only the
scheme prefix is matched; the remainder is split at the first ``/``.
"""

from dataclasses import dataclass
from enum import Enum

from storage_agent.resilience.errors import InvalidLocatorError, UnsupportedSchemeError


class Protocol(Enum):
    GCS = "gs://"
    S3 = "s3://"
    HTTPS = "https://"
    HTTP = "http://"

    @property
    def prefix(self) -> str:
        return self.value

    @classmethod
    def from_uri(cls, uri: str) -> "Protocol":
        """Return the protocol implied by the locator's scheme prefix."""
        for protocol in cls:
            if uri.startswith(protocol.value):
                return protocol
        raise UnsupportedSchemeError(uri=uri)


@dataclass(frozen=True)
class ArtifactLocation:
    """Classified locator: protocol, bucket (or host) and object path."""
    protocol: Protocol
    bucket: str
    path: str
    uri: str = ""


def parse_uri(uri: str) -> ArtifactLocation:
    """Split a locator into ``(protocol, bucket/host, path)``.

    Raises:
        UnsupportedSchemeError: prefix matches no known protocol.
        InvalidLocatorError: bucket/host component is empty.
    """
    protocol = Protocol.from_uri(uri)
    remainder = uri[len(protocol.prefix):]
    bucket, _, path = remainder.partition("/")
    if not bucket:
        raise InvalidLocatorError(uri=uri)
    return ArtifactLocation(protocol=protocol, bucket=bucket, path=path, uri=uri)
