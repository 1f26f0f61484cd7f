#!/usr/bin/env python3
# CUI // SP-CTI
"""GCS Provider — Google Cloud Storage.

With a credentials file configured (GOOGLE_APPLICATION_CREDENTIALS) the client
authenticates with it. If the variable is set but empty the SDK's default
credential discovery is used. If it is absent an anonymous client is used,
which can only read public buckets.
"""

import logging
from typing import List, Optional

import google.auth
import google.auth.exceptions
import requests
from google.api_core import exceptions as gapi_exceptions
from google.cloud import storage

from storage_agent.resilience.errors import (
    CredentialConstructionError,
    LocalIOError,
    ObjectNotFoundError,
    TransportError,
)
from storage_agent.storage.credentials import GCSConfig
from storage_agent.storage.fsutil import create
from storage_agent.storage.protocol import Protocol
from storage_agent.storage.provider import (
    Provider,
    in_prefix,
    is_directory_marker,
    local_target,
)

logger = logging.getLogger("storage_agent.gcs")


class GCSProvider(Provider):
    """Fetches blobs from a GCS bucket into a local directory."""

    def __init__(self, client, config: Optional[GCSConfig] = None):
        self._client = client
        self._config = config or GCSConfig()

    @property
    def protocol(self) -> Protocol:
        return Protocol.GCS

    @property
    def provider_name(self) -> str:
        return "gcs"

    @property
    def client(self):
        return self._client

    @property
    def anonymous(self) -> bool:
        return self._config.anonymous

    def fetch(self, bucket: str, path: str, dest_dir: str) -> List[str]:
        written: List[str] = []
        try:
            for blob in self._client.list_blobs(bucket, prefix=path):
                if is_directory_marker(blob.name) or not in_prefix(path, blob.name):
                    continue
                target = local_target(dest_dir, path, blob.name)
                self._download(blob, target)
                written.append(target)
        except gapi_exceptions.NotFound as exc:
            raise ObjectNotFoundError(
                f"gs://{bucket}/{path}: {exc}", service="gcs", bucket=bucket, path=path,
            ) from exc
        except (gapi_exceptions.GoogleAPIError,
                google.auth.exceptions.TransportError,
                requests.RequestException) as exc:
            raise TransportError(f"GCS transport error for gs://{bucket}/{path}: {exc}",
                                 service="gcs") from exc

        if not written:
            raise ObjectNotFoundError(service="gcs", bucket=bucket, path=path)
        logger.info("Fetched %d object(s) from gs://%s/%s into %s",
                    len(written), bucket, path, dest_dir)
        return written

    def _download(self, blob, target: str):
        try:
            f = create(target)
        except OSError as exc:
            raise LocalIOError(f"Cannot create {target}: {exc}", path=target) from exc
        with f:
            logger.debug("Downloading gs://%s/%s -> %s", blob.bucket.name, blob.name, target)
            try:
                blob.download_to_file(f)
            except OSError as exc:
                raise LocalIOError(f"Cannot write {target}: {exc}", path=target) from exc


def build_gcs_provider(config: GCSConfig) -> GCSProvider:
    """Construct a GCS client from config.

    Raises:
        CredentialConstructionError: the credentials file is missing or
            malformed, or client setup failed.
    """
    try:
        if config.anonymous:
            client = storage.Client.create_anonymous_client()
        elif not config.credentials_path:
            client = storage.Client()
        else:
            credentials, project = google.auth.load_credentials_from_file(config.credentials_path)
            client = storage.Client(project=project, credentials=credentials)
    except (google.auth.exceptions.GoogleAuthError, ValueError, OSError) as exc:
        raise CredentialConstructionError(
            f"Failed to construct GCS client: {exc}", protocol="gcs",
        ) from exc

    logger.info("GCS client ready (anonymous=%s)", config.anonymous)
    return GCSProvider(client, config)
