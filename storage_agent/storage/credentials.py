#!/usr/bin/env python3
# CUI // SP-CTI
"""Credential and client configuration for each storage backend.

Values are resolved once into plain dataclasses and handed to the provider
registry. The environment is the default source; an optional YAML file
(storage_agent/args/storage_config.yaml, shipped as package data)
may override it, with ${VAR:-default} expansion.

Environment variables:
  GOOGLE_APPLICATION_CREDENTIALS  GCS service-account key (absent = anonymous,
                                  empty = default credential discovery)
  AWS_REGION                      S3 region
  S3_USER_VIRTUAL_BUCKET          "false" forces path-style addressing
  AWS_ENDPOINT_URL                S3-compatible endpoint override
  awsAnonymousCredential          "true" sends unsigned S3 requests
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

logger = logging.getLogger("storage_agent.credentials")

PACKAGE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_PATH = PACKAGE_DIR / "args" / "storage_config.yaml"

GCS_CREDENTIAL_ENV_KEY = "GOOGLE_APPLICATION_CREDENTIALS"
AWS_REGION = "AWS_REGION"
S3_USE_VIRTUAL_BUCKET = "S3_USER_VIRTUAL_BUCKET"
AWS_ENDPOINT_URL = "AWS_ENDPOINT_URL"
AWS_ANONYMOUS_CREDENTIAL = "awsAnonymousCredential"


def _env_flag(value: Any, expected: str) -> bool:
    """True when value equals expected ("true"/"false"), case-insensitive."""
    if value is None:
        return False
    return str(value).strip().lower() == expected


def _expand_env(value, environ: Mapping[str, str]):
    """Expand ${VAR:-default} patterns in string values."""
    if not isinstance(value, str):
        return value
    pattern = r'\$\{([^}]+)\}'

    def replacer(match):
        expr = match.group(1)
        if ":-" in expr:
            var, default = expr.split(":-", 1)
            return environ.get(var, default)
        return environ.get(expr, match.group(0))
    return re.sub(pattern, replacer, value)


@dataclass(frozen=True)
class GCSConfig:
    credentials_path: Optional[str] = None

    @property
    def anonymous(self) -> bool:
        # Only an absent variable means anonymous; "" selects default discovery.
        return self.credentials_path is None


@dataclass(frozen=True)
class S3Config:
    region: str = ""
    use_virtual_bucket: bool = True
    endpoint_url: Optional[str] = None
    anonymous: bool = False

    @property
    def addressing_style(self) -> str:
        return "virtual" if self.use_virtual_bucket else "path"


@dataclass(frozen=True)
class HTTPConfig:
    timeout: Optional[float] = None


@dataclass(frozen=True)
class StorageConfig:
    """Per-backend configuration bundle consumed by ProviderRegistry."""
    gcs: GCSConfig = field(default_factory=GCSConfig)
    s3: S3Config = field(default_factory=S3Config)
    http: HTTPConfig = field(default_factory=HTTPConfig)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "StorageConfig":
        """Build configuration from environment variables. Never fails."""
        env = os.environ if environ is None else environ

        gcs = GCSConfig(credentials_path=env.get(GCS_CREDENTIAL_ENV_KEY))

        use_virtual_bucket = True
        if S3_USE_VIRTUAL_BUCKET in env and _env_flag(env[S3_USE_VIRTUAL_BUCKET], "false"):
            use_virtual_bucket = False
        s3 = S3Config(
            region=env.get(AWS_REGION, ""),
            use_virtual_bucket=use_virtual_bucket,
            endpoint_url=env.get(AWS_ENDPOINT_URL),
            anonymous=_env_flag(env.get(AWS_ANONYMOUS_CREDENTIAL), "true"),
        )
        return cls(gcs=gcs, s3=s3, http=HTTPConfig())

    @classmethod
    def from_dict(cls, data: Dict, base: Optional["StorageConfig"] = None,
                  environ: Optional[Mapping[str, str]] = None) -> "StorageConfig":
        """Overlay a parsed ``storage:`` mapping onto ``base``.

        Empty strings after expansion are treated as unset.
        """
        env = os.environ if environ is None else environ
        base = base or cls()
        section = data.get("storage", data) or {}

        def _get(block: Dict, key: str):
            value = _expand_env(block.get(key), env)
            if value == "":
                return None
            return value

        gcs_cfg = section.get("gcs", {}) or {}
        s3_cfg = section.get("s3", {}) or {}
        http_cfg = section.get("http", {}) or {}

        gcs = GCSConfig(credentials_path=_get(gcs_cfg, "credentials_path") or base.gcs.credentials_path)

        use_virtual_bucket = base.s3.use_virtual_bucket
        raw_virtual = _get(s3_cfg, "use_virtual_bucket")
        if raw_virtual is not None:
            use_virtual_bucket = not _env_flag(raw_virtual, "false")
        anonymous = base.s3.anonymous
        raw_anonymous = _get(s3_cfg, "anonymous")
        if raw_anonymous is not None:
            anonymous = _env_flag(raw_anonymous, "true")
        s3 = S3Config(
            region=_get(s3_cfg, "region") or base.s3.region,
            use_virtual_bucket=use_virtual_bucket,
            endpoint_url=_get(s3_cfg, "endpoint_url") or base.s3.endpoint_url,
            anonymous=anonymous,
        )

        timeout = _get(http_cfg, "timeout")
        http = HTTPConfig(timeout=float(timeout) if timeout is not None else base.http.timeout)
        return cls(gcs=gcs, s3=s3, http=http)


def load_config(config_path: Optional[str] = None,
                environ: Optional[Mapping[str, str]] = None) -> StorageConfig:
    """Resolve configuration from the environment plus optional YAML file.

    Falls back to environment-only configuration when the file does not
    exist or cannot be parsed.
    """
    config = StorageConfig.from_env(environ)
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if not path.exists():
        if config_path:
            logger.warning("Storage config not found at %s — using environment", path)
        return config
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Failed to load storage config %s: %s", path, exc)
        return config

    config = StorageConfig.from_dict(data, base=config, environ=environ)
    logger.info("Storage config loaded from %s (s3 addressing=%s, gcs anonymous=%s)",
                path, config.s3.addressing_style, config.gcs.anonymous)
    return config
