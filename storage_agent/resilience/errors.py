#!/usr/bin/env python3
# CUI // SP-CTI
"""Storage Agent Resilience — Structured Exception Hierarchy.

Every failure raised by the storage layer is one of these types so callers
can tell permanent failures (bad locator, missing object, broken credentials)
from transient ones (network/transport) without inspecting SDK exceptions.

Usage:
    from storage_agent.resilience.errors import ObjectNotFoundError, TransportError

    try:
        provider.fetch(bucket, path, dest_dir)
    except ObjectNotFoundError:
        ...  # permanent, do not retry
    except TransportError:
        ...  # transient, caller may retry
"""


class StorageAgentError(Exception):
    """Raised when a locator cannot be resolved or its object cannot be staged.

    Attributes:
        service: Which stage failed: a backend ("gcs", "s3", "https"),
            "classifier" for locator parsing, or "local" for disk writes.
        retryable: True when fetching the same locator again may succeed.
    """

    def __init__(self, message: str, service: str = "", retryable: bool = False):
        super().__init__(message)
        self.service = service
        self.retryable = retryable


class TransientError(StorageAgentError):
    """The backend could not be reached or answered with a server-side fault.

    The locator and credentials are fine; the same fetch can be retried.
    """

    def __init__(self, message: str, service: str = "", retryable: bool = True):
        super().__init__(message, service=service, retryable=retryable)


class PermanentError(StorageAgentError):
    """The locator, credentials, object or destination directory is wrong.

    Fetching the same locator again fails the same way until the input or
    the remote bucket changes.
    """

    def __init__(self, message: str, service: str = "", retryable: bool = False):
        super().__init__(message, service=service, retryable=retryable)


class UnsupportedSchemeError(PermanentError):
    """Locator prefix matches none of the known protocols."""

    def __init__(self, message: str = "", uri: str = ""):
        super().__init__(
            message or f"Unsupported storage scheme in '{uri}'",
            service="classifier",
        )
        self.uri = uri


class InvalidLocatorError(PermanentError):
    """Locator has a known scheme but no bucket/host component."""

    def __init__(self, message: str = "", uri: str = ""):
        super().__init__(
            message or f"Missing bucket or host in '{uri}'",
            service="classifier",
        )
        self.uri = uri


class CredentialConstructionError(PermanentError):
    """Backend client or session setup failed."""

    def __init__(self, message: str, protocol: str = ""):
        super().__init__(message, service=protocol)
        self.protocol = protocol


class ObjectNotFoundError(PermanentError):
    """Remote object (or prefix) is absent.

    Attributes:
        bucket: Bucket or host that was queried.
        path: Object key or prefix that was requested.
    """

    def __init__(self, message: str = "", service: str = "",
                 bucket: str = "", path: str = ""):
        super().__init__(
            message or f"Object not found: {bucket}/{path}",
            service=service,
        )
        self.bucket = bucket
        self.path = path


class TransportError(TransientError):
    """Network-level failure, distinct from a missing object."""


class LocalIOError(PermanentError):
    """Directory creation, file write, or cleanup failed."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message, service="local")
        self.path = path
