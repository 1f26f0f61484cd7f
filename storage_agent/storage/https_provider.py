#!/usr/bin/env python3
# CUI // SP-CTI
"""HTTP(S) Provider — plain GET against a URL.

One implementation serves both http:// and https://; the registry keeps a
separate instance (and requests.Session) per protocol. Archive responses
(zip, tar, gzipped tar) are unpacked into the destination directory, any
other body is written as a single file.
"""

import logging
import os
import posixpath
import shutil
import tarfile
import tempfile
import zipfile
from typing import List, Optional

import requests

from storage_agent.resilience.errors import (
    LocalIOError,
    ObjectNotFoundError,
    TransportError,
)
from storage_agent.storage.fsutil import DIR_MODE, create
from storage_agent.storage.protocol import Protocol
from storage_agent.storage.provider import Provider, local_target

logger = logging.getLogger("storage_agent.https")

CHUNK_SIZE = 1024 * 1024
NOT_FOUND_STATUSES = (404, 410)
ZIP_CONTENT_TYPES = {"application/zip", "application/x-zip-compressed"}
TAR_CONTENT_TYPES = {
    "application/x-tar",
    "application/x-gtar",
    "application/x-gzip",
    "application/gzip",
}
DEFAULT_FILENAME = "index"


class HTTPSProvider(Provider):
    """Downloads a single URL, unpacking archives."""

    def __init__(self, protocol: Protocol = Protocol.HTTPS,
                 session: Optional[requests.Session] = None,
                 timeout: Optional[float] = None):
        if protocol not in (Protocol.HTTP, Protocol.HTTPS):
            raise ValueError(f"HTTPSProvider cannot serve {protocol}")
        self._protocol = protocol
        self._session = session or requests.Session()
        self._timeout = timeout

    @property
    def protocol(self) -> Protocol:
        return self._protocol

    @property
    def provider_name(self) -> str:
        return self._protocol.name.lower()

    @property
    def session(self) -> requests.Session:
        return self._session

    def close(self):
        self._session.close()

    def url_for(self, host: str, path: str) -> str:
        return f"{self._protocol.prefix}{host}/{path}"

    def fetch(self, bucket: str, path: str, dest_dir: str) -> List[str]:
        url = self.url_for(bucket, path)
        try:
            resp = self._session.get(url, stream=True, timeout=self._timeout)
        except requests.RequestException as exc:
            raise TransportError(f"GET {url} failed: {exc}", service=self.provider_name) from exc

        with resp:
            if resp.status_code in NOT_FOUND_STATUSES:
                raise ObjectNotFoundError(
                    f"GET {url} returned {resp.status_code}",
                    service=self.provider_name, bucket=bucket, path=path,
                )
            if not resp.ok:
                raise TransportError(f"GET {url} returned {resp.status_code}",
                                     service=self.provider_name)

            content_type = resp.headers.get("Content-Type", "").split(";")[0].strip().lower()
            if content_type in ZIP_CONTENT_TYPES or content_type in TAR_CONTENT_TYPES:
                written = self._extract(resp, content_type, dest_dir, url)
            else:
                written = [self._write_body(resp, path, dest_dir, url)]

        logger.info("Fetched %s into %s (%d file(s))", url, dest_dir, len(written))
        return written

    def _stream_into(self, resp, f, url: str):
        try:
            for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    f.write(chunk)
        except requests.RequestException as exc:
            raise TransportError(f"GET {url} interrupted: {exc}",
                                 service=self.provider_name) from exc

    def _write_body(self, resp, path: str, dest_dir: str, url: str) -> str:
        name = posixpath.basename(path.split("?", 1)[0]) or DEFAULT_FILENAME
        target = local_target(dest_dir, "", name)
        try:
            f = create(target)
        except OSError as exc:
            raise LocalIOError(f"Cannot create {target}: {exc}", path=target) from exc
        with f:
            try:
                self._stream_into(resp, f, url)
            except OSError as exc:
                raise LocalIOError(f"Cannot write {target}: {exc}", path=target) from exc
        return target

    def _extract(self, resp, content_type: str, dest_dir: str, url: str) -> List[str]:
        try:
            os.makedirs(dest_dir, mode=DIR_MODE, exist_ok=True)
            with tempfile.TemporaryFile() as tmp:
                self._stream_into(resp, tmp, url)
                tmp.seek(0)
                if content_type in ZIP_CONTENT_TYPES:
                    return _extract_zip(tmp, dest_dir)
                return _extract_tar(tmp, dest_dir)
        except (zipfile.BadZipFile, tarfile.TarError) as exc:
            raise LocalIOError(f"Cannot unpack archive from {url}: {exc}", path=dest_dir) from exc
        except OSError as exc:
            raise LocalIOError(f"Cannot unpack archive into {dest_dir}: {exc}",
                               path=dest_dir) from exc


def _extract_zip(fileobj, dest_dir: str) -> List[str]:
    written = []
    with zipfile.ZipFile(fileobj) as archive:
        for member in archive.infolist():
            if member.is_dir():
                continue
            target = local_target(dest_dir, "", member.filename)
            with archive.open(member) as src, create(target) as dst:
                shutil.copyfileobj(src, dst)
            written.append(target)
    return written


def _extract_tar(fileobj, dest_dir: str) -> List[str]:
    written = []
    with tarfile.open(fileobj=fileobj, mode="r:*") as archive:
        for member in archive.getmembers():
            if not member.isfile():
                continue
            target = local_target(dest_dir, "", member.name)
            src = archive.extractfile(member)
            with src, create(target) as dst:
                shutil.copyfileobj(src, dst)
            written.append(target)
    return written
