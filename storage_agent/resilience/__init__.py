#!/usr/bin/env python3
# CUI // SP-CTI
"""Storage Agent Resilience Package — structured errors."""

from storage_agent.resilience.errors import (  # noqa: F401
    CredentialConstructionError,
    InvalidLocatorError,
    LocalIOError,
    ObjectNotFoundError,
    PermanentError,
    StorageAgentError,
    TransientError,
    TransportError,
    UnsupportedSchemeError,
)
