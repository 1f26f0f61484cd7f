#!/usr/bin/env python3
# CUI // SP-CTI
"""Tests for storage_agent.storage.https_provider."""

import io
import sys
import tarfile
import zipfile
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from unittest.mock import MagicMock

import pytest
import requests

from storage_agent.resilience.errors import (
    LocalIOError,
    ObjectNotFoundError,
    TransportError,
)
from storage_agent.storage.https_provider import HTTPSProvider
from storage_agent.storage.protocol import Protocol


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _response(status=200, body=b"", content_type="application/octet-stream"):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 400
    resp.headers = {"Content-Type": content_type}
    resp.iter_content.side_effect = lambda chunk_size=1: iter([body[i:i + 4] for i in range(0, len(body), 4)])
    return resp


def _provider(resp, protocol=Protocol.HTTPS):
    session = MagicMock()
    session.get.return_value = resp
    return HTTPSProvider(protocol, session=session, timeout=5), session


def _zip_bytes(files):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    return buf.getvalue()


def _tar_gz_bytes(files):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tf:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tf.addfile(info, io.BytesIO(data))
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------
class TestHTTPSProviderInit:
    def test_https_defaults(self):
        p = HTTPSProvider()
        assert p.protocol is Protocol.HTTPS
        assert p.provider_name == "https"
        assert isinstance(p.session, requests.Session)

    def test_http(self):
        p = HTTPSProvider(Protocol.HTTP)
        assert p.provider_name == "http"
        assert p.url_for("example.com", "a/b.bin") == "http://example.com/a/b.bin"

    def test_rejects_object_store_protocols(self):
        with pytest.raises(ValueError):
            HTTPSProvider(Protocol.S3)

    def test_close_closes_session(self):
        session = MagicMock()
        HTTPSProvider(session=session).close()
        session.close.assert_called_once_with()


# ---------------------------------------------------------------------------
# fetch — plain files
# ---------------------------------------------------------------------------
class TestHTTPSFetch:
    def test_writes_body_to_basename(self, tmp_path):
        provider, session = _provider(_response(body=b"model-weights"))
        dest = tmp_path / "out" / "nested"
        written = provider.fetch("example.com", "models/model.bin", str(dest))
        session.get.assert_called_once_with(
            "https://example.com/models/model.bin", stream=True, timeout=5,
        )
        assert written == [str(dest / "model.bin")]
        assert (dest / "model.bin").read_bytes() == b"model-weights"

    def test_query_string_stripped_from_filename(self, tmp_path):
        provider, _ = _provider(_response(body=b"x"))
        written = provider.fetch("host", "dl/model.onnx?sig=abc", str(tmp_path))
        assert written == [str(tmp_path / "model.onnx")]

    def test_empty_path_uses_default_name(self, tmp_path):
        provider, _ = _provider(_response(body=b"x"))
        written = provider.fetch("host", "", str(tmp_path))
        assert written == [str(tmp_path / "index")]

    @pytest.mark.parametrize("status", [404, 410])
    def test_not_found(self, tmp_path, status):
        provider, _ = _provider(_response(status=status))
        with pytest.raises(ObjectNotFoundError) as exc_info:
            provider.fetch("host", "missing.bin", str(tmp_path))
        assert exc_info.value.retryable is False

    @pytest.mark.parametrize("status", [401, 403, 500, 503])
    def test_other_errors_are_transport(self, tmp_path, status):
        provider, _ = _provider(_response(status=status))
        with pytest.raises(TransportError):
            provider.fetch("host", "x.bin", str(tmp_path))

    def test_connection_error(self, tmp_path):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("refused")
        provider = HTTPSProvider(Protocol.HTTP, session=session)
        with pytest.raises(TransportError) as exc_info:
            provider.fetch("host", "x.bin", str(tmp_path))
        assert exc_info.value.service == "http"
        assert exc_info.value.retryable is True

    def test_stream_interrupted(self, tmp_path):
        resp = _response(body=b"")
        resp.iter_content.side_effect = requests.exceptions.ChunkedEncodingError("broken")
        provider, _ = _provider(resp)
        with pytest.raises(TransportError):
            provider.fetch("host", "x.bin", str(tmp_path))


# ---------------------------------------------------------------------------
# fetch — archives
# ---------------------------------------------------------------------------
class TestHTTPSArchives:
    def test_zip_extracted(self, tmp_path):
        body = _zip_bytes({"model/saved_model.pb": b"pb", "model/vars/v.index": b"idx"})
        provider, _ = _provider(_response(body=body, content_type="application/zip"))
        written = provider.fetch("host", "model.zip", str(tmp_path))
        assert sorted(written) == sorted([
            str(tmp_path / "model" / "saved_model.pb"),
            str(tmp_path / "model" / "vars" / "v.index"),
        ])
        assert (tmp_path / "model" / "vars" / "v.index").read_bytes() == b"idx"
        assert not (tmp_path / "model.zip").exists()

    def test_tar_gz_extracted(self, tmp_path):
        body = _tar_gz_bytes({"model.joblib": b"joblib"})
        provider, _ = _provider(_response(body=body, content_type="application/x-gzip"))
        written = provider.fetch("host", "model.tar.gz", str(tmp_path))
        assert written == [str(tmp_path / "model.joblib")]
        assert (tmp_path / "model.joblib").read_bytes() == b"joblib"

    def test_content_type_parameters_ignored(self, tmp_path):
        body = _zip_bytes({"a.txt": b"a"})
        provider, _ = _provider(_response(body=body, content_type="application/zip; charset=binary"))
        assert provider.fetch("host", "a.zip", str(tmp_path)) == [str(tmp_path / "a.txt")]

    def test_path_traversal_rejected(self, tmp_path):
        body = _zip_bytes({"../escape.txt": b"evil"})
        dest = tmp_path / "dest"
        provider, _ = _provider(_response(body=body, content_type="application/zip"))
        with pytest.raises(LocalIOError):
            provider.fetch("host", "evil.zip", str(dest))
        assert not (tmp_path / "escape.txt").exists()

    def test_corrupt_archive(self, tmp_path):
        provider, _ = _provider(_response(body=b"not a zip", content_type="application/zip"))
        with pytest.raises(LocalIOError):
            provider.fetch("host", "bad.zip", str(tmp_path))
