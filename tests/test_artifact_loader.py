"""Tests for artifact loading state (native load, credentialed fallback, timeout)"""

import json
from unittest.mock import MagicMock

import pytest
import requests

from errors import HttpError
from managers.artifact_loader import TIMEOUT_MESSAGE, ArtifactLoader, NfcDataLoader
from managers.blob_store import BlobStore
from models.artifact import ArtifactType, join_url
from models.scan import LoadState

BASE_URL = "https://assets.example.test"
QR_PATH = "/uploads/digital-assets/qr_ASSET555_1754296433008.png"


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client(png_bytes):
    fake = MagicMock()
    fake.base_url = BASE_URL
    fake.absolute_url.side_effect = lambda url: join_url(BASE_URL, url)
    fake.fetch_artifact.return_value = png_bytes
    return fake


@pytest.fixture
def blob_store():
    return BlobStore()


def refuse(url, timeout):
    raise requests.ConnectionError("blocked")


class TestArtifactLoader:
    def test_native_load(self, client, blob_store, clock, png_bytes):
        loader = ArtifactLoader(client, blob_store, clock=clock, native_fetch=lambda url, timeout: png_bytes)
        assert loader.load(QR_PATH) is LoadState.LOADED
        assert loader.display_url == f"{BASE_URL}{QR_PATH}"
        assert loader.metadata["width"] == 300
        assert len(blob_store) == 0
        client.fetch_artifact.assert_not_called()

    def test_fallback_serves_object_url(self, client, blob_store, clock, png_bytes):
        loader = ArtifactLoader(client, blob_store, clock=clock, native_fetch=refuse)
        assert loader.load(QR_PATH) is LoadState.LOADED
        assert loader.display_url.startswith("blob:")
        assert loader.content() == png_bytes
        assert blob_store.content_type(loader.display_url) == "image/png"
        assert client.fetch_artifact.call_args.args[0] == f"{BASE_URL}{QR_PATH}"
        assert client.fetch_artifact.call_args.kwargs["accept"] == "image/*"

    def test_undecodable_native_bytes_trigger_fallback(self, client, blob_store, clock):
        loader = ArtifactLoader(client, blob_store, clock=clock, native_fetch=lambda url, timeout: b"<html>login</html>")
        assert loader.load(QR_PATH) is LoadState.LOADED
        client.fetch_artifact.assert_called_once()

    def test_fallback_failure_reports_url(self, client, blob_store, clock):
        client.fetch_artifact.side_effect = HttpError(403, "Access denied.")
        loader = ArtifactLoader(client, blob_store, clock=clock, native_fetch=refuse)
        assert loader.load(QR_PATH) is LoadState.FAILED
        assert f"{BASE_URL}{QR_PATH}" in loader.error
        assert loader.display_url is None

    def test_fallback_rejects_non_image(self, client, blob_store, clock):
        client.fetch_artifact.return_value = b"not an image"
        loader = ArtifactLoader(client, blob_store, clock=clock, native_fetch=refuse)
        assert loader.load(QR_PATH) is LoadState.FAILED
        assert len(blob_store) == 0

    def test_timeout_fails_pending_load(self, client, blob_store, clock):
        loader = ArtifactLoader(client, blob_store, timeout=10.0, clock=clock)
        loader.set_url(QR_PATH)
        clock.now += 9.5
        assert loader.check_timeout() is LoadState.LOADING
        clock.now += 1
        assert loader.check_timeout() is LoadState.FAILED
        assert loader.error == TIMEOUT_MESSAGE

    def test_timeout_before_fallback(self, client, blob_store, clock):
        def slow_refusal(url, timeout):
            clock.now += 11
            raise requests.ConnectionError("blocked")

        loader = ArtifactLoader(client, blob_store, timeout=10.0, clock=clock, native_fetch=slow_refusal)
        assert loader.load(QR_PATH) is LoadState.FAILED
        assert loader.error == TIMEOUT_MESSAGE
        client.fetch_artifact.assert_not_called()

    def test_late_native_result_after_timeout_is_ignored(self, client, blob_store, clock):
        loader = ArtifactLoader(client, blob_store, clock=clock)
        loader.set_url(QR_PATH)
        clock.now += 20
        loader.check_timeout()
        assert loader.on_native_load({"width": 1}) is LoadState.FAILED
        assert loader.on_native_error("late") is LoadState.FAILED

    def test_close_during_fallback_drops_result(self, client, blob_store, clock, png_bytes):
        loader = ArtifactLoader(client, blob_store, clock=clock, native_fetch=refuse)

        def close_then_return(*args, **kwargs):
            loader.close()
            return png_bytes

        client.fetch_artifact.side_effect = close_then_return
        loader.load(QR_PATH)
        assert loader.state is not LoadState.LOADED
        assert loader.display_url is None
        assert len(blob_store) == 0

    def test_replacing_url_revokes_object_url(self, client, blob_store, clock):
        loader = ArtifactLoader(client, blob_store, clock=clock, native_fetch=refuse)
        loader.load(QR_PATH)
        first = loader.display_url
        assert first in blob_store

        loader.load("/uploads/digital-assets/qr_ASSET555_1754296439999.png")
        assert first not in blob_store
        assert len(blob_store) == 1

    def test_close_revokes_object_url(self, client, blob_store, clock):
        loader = ArtifactLoader(client, blob_store, clock=clock, native_fetch=refuse)
        loader.load(QR_PATH)
        loader.close()
        assert len(blob_store) == 0
        assert loader.set_url(QR_PATH) is LoadState.LOADED

    def test_refresh_adds_cache_buster(self, client, blob_store, clock, png_bytes):
        fetched = []

        def record(url, timeout):
            fetched.append(url)
            return png_bytes

        loader = ArtifactLoader(client, blob_store, clock=clock, native_fetch=record)
        loader.load(QR_PATH)
        assert loader.refresh() is LoadState.LOADED
        assert "?_t=" in fetched[-1]
        assert fetched[-1].startswith(f"{BASE_URL}{QR_PATH}")

    def test_refresh_without_url_is_noop(self, client, blob_store, clock):
        loader = ArtifactLoader(client, blob_store, clock=clock)
        assert loader.refresh() is LoadState.IDLE

    def test_snapshot(self, client, blob_store, clock):
        loader = ArtifactLoader(client, blob_store, artifact_type=ArtifactType.BARCODE, clock=clock, native_fetch=refuse)
        loader.load("/uploads/digital-assets/barcode_ASSET555_1.png")
        snapshot = loader.snapshot()
        assert snapshot["state"] == "loaded"
        assert snapshot["type"] == "barcode"
        assert snapshot["display_url"].startswith("blob:")


class TestNfcDataLoader:
    def test_loads_wrapped_document(self, client, clock):
        client.fetch_artifact.return_value = json.dumps({"data": {"id": "ASSET555", "checksum": "ab12"}}).encode()
        loader = NfcDataLoader(client, clock=clock)
        assert loader.load("/uploads/digital-assets/nfc_ASSET555_1.json") is LoadState.LOADED
        assert loader.document == {"id": "ASSET555", "checksum": "ab12"}
        assert client.fetch_artifact.call_args.kwargs["accept"] == "application/json"

    def test_invalid_json_fails(self, client, clock):
        client.fetch_artifact.return_value = b"{not json"
        loader = NfcDataLoader(client, clock=clock)
        assert loader.load("/n.json") is LoadState.FAILED
        assert loader.error == "Failed to load NFC data"
        assert loader.document is None

    def test_slow_fetch_times_out(self, client, clock):
        def slow(*args, **kwargs):
            clock.now += 12
            return b"{}"

        client.fetch_artifact.side_effect = slow
        loader = NfcDataLoader(client, timeout=10.0, clock=clock)
        assert loader.load("/n.json") is LoadState.FAILED
        assert loader.error == TIMEOUT_MESSAGE
