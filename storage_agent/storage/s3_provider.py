#!/usr/bin/env python3
# CUI // SP-CTI
"""S3 Provider — AWS S3 and S3-compatible stores (MinIO, Ceph RGW, ...).

Addressing style, region, endpoint override and anonymous access come from
S3Config. Objects under a prefix are listed with the list_objects_v2
paginator and streamed through the SDK transfer manager.
"""

import logging
from typing import List, Optional

import boto3
from botocore import UNSIGNED
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from storage_agent.resilience.errors import (
    CredentialConstructionError,
    LocalIOError,
    ObjectNotFoundError,
    TransportError,
)
from storage_agent.storage.credentials import S3Config
from storage_agent.storage.fsutil import create
from storage_agent.storage.protocol import Protocol
from storage_agent.storage.provider import (
    Provider,
    in_prefix,
    is_directory_marker,
    local_target,
)

logger = logging.getLogger("storage_agent.s3")

NOT_FOUND_CODES = {"NoSuchKey", "NoSuchBucket", "404", "NotFound"}


class S3Provider(Provider):
    """Fetches objects from an S3 bucket into a local directory."""

    def __init__(self, client, config: Optional[S3Config] = None):
        self._client = client
        self._config = config or S3Config()

    @property
    def protocol(self) -> Protocol:
        return Protocol.S3

    @property
    def provider_name(self) -> str:
        return "s3"

    @property
    def client(self):
        return self._client

    @property
    def addressing_style(self) -> str:
        return self._config.addressing_style

    @property
    def endpoint_url(self) -> Optional[str]:
        return self._config.endpoint_url

    @property
    def anonymous(self) -> bool:
        return self._config.anonymous

    def fetch(self, bucket: str, path: str, dest_dir: str) -> List[str]:
        written: List[str] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=bucket, Prefix=path):
                for obj in page.get("Contents", []):
                    key = obj["Key"]
                    if is_directory_marker(key) or not in_prefix(path, key):
                        continue
                    target = local_target(dest_dir, path, key)
                    self._download(bucket, key, target)
                    written.append(target)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in NOT_FOUND_CODES:
                raise ObjectNotFoundError(
                    f"s3://{bucket}/{path}: {code}", service="s3", bucket=bucket, path=path,
                ) from exc
            raise TransportError(f"S3 request failed for s3://{bucket}/{path}: {exc}",
                                 service="s3") from exc
        except BotoCoreError as exc:
            raise TransportError(f"S3 transport error for s3://{bucket}/{path}: {exc}",
                                 service="s3") from exc

        if not written:
            raise ObjectNotFoundError(service="s3", bucket=bucket, path=path)
        logger.info("Fetched %d object(s) from s3://%s/%s into %s",
                    len(written), bucket, path, dest_dir)
        return written

    def _download(self, bucket: str, key: str, target: str):
        try:
            f = create(target)
        except OSError as exc:
            raise LocalIOError(f"Cannot create {target}: {exc}", path=target) from exc
        with f:
            logger.debug("Downloading s3://%s/%s -> %s", bucket, key, target)
            try:
                self._client.download_fileobj(bucket, key, f)
            except OSError as exc:
                raise LocalIOError(f"Cannot write {target}: {exc}", path=target) from exc


def build_s3_provider(config: S3Config) -> S3Provider:
    """Construct an S3 client from config.

    Raises:
        CredentialConstructionError: session or client setup failed
            (e.g. malformed endpoint URL).
    """
    client_config = Config(s3={"addressing_style": config.addressing_style})
    if config.anonymous:
        client_config = client_config.merge(Config(signature_version=UNSIGNED))

    try:
        session = boto3.session.Session(region_name=config.region or None)
        client = session.client(
            "s3",
            endpoint_url=config.endpoint_url or None,
            config=client_config,
        )
    except (BotoCoreError, ValueError) as exc:
        raise CredentialConstructionError(
            f"Failed to construct S3 client: {exc}", protocol="s3",
        ) from exc

    logger.info("S3 client ready (region=%s, addressing=%s, endpoint=%s, anonymous=%s)",
                config.region or "<default>", config.addressing_style,
                config.endpoint_url or "<aws>", config.anonymous)
    return S3Provider(client, config)
