"""Loading state for artifact previews (images and NFC JSON)"""

import logging
import time
from typing import Any, Callable, Dict, Optional

import requests

from artifact_processor import add_cache_buster, fetch_plain_bytes, inspect_image, mime_type_for, parse_nfc_document
from errors import DigitalAssetError
from managers.blob_store import BlobStore
from models.artifact import ArtifactType
from models.scan import LoadState

logger = logging.getLogger("MCP_Server")

DEFAULT_LOAD_TIMEOUT = 10.0
TIMEOUT_MESSAGE = "Timed out loading artifact"
NFC_FAILURE_MESSAGE = "Failed to load NFC data"


class _BaseLoader:
    """State shared by image and JSON loaders: url, timing, cancellation"""

    def __init__(self, client, timeout: float = DEFAULT_LOAD_TIMEOUT, clock: Callable[[], float] = time.monotonic):
        self.client = client
        self.timeout = timeout
        self.clock = clock
        self.state = LoadState.IDLE
        self.url: Optional[str] = None
        self.error: Optional[str] = None
        self._started_at: Optional[float] = None
        self.closed = False

    @property
    def elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        return self.clock() - self._started_at

    def _remaining(self) -> float:
        return self.timeout - self.elapsed

    def _start(self, url: str):
        self.url = self.client.absolute_url(url)
        self.state = LoadState.LOADING
        self.error = None
        self._started_at = self.clock()

    def _fail(self, message: str):
        self.state = LoadState.FAILED
        self.error = message
        logger.warning(f"Artifact load failed for {self.url}: {message}")

    def check_timeout(self) -> LoadState:
        """Force FAILED once a pending load has outlived the timeout"""
        if self.state.pending and self.elapsed >= self.timeout:
            self._fail(TIMEOUT_MESSAGE)
        return self.state

    def close(self):
        """Tear down: later results are dropped"""
        self.closed = True

    def snapshot(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "url": self.url,
            "error": self.error,
        }


class ArtifactLoader(_BaseLoader):
    """Image artifact loader.

    Idle -> Loading -> Loaded, or Loading -> FallbackFetching -> Loaded/Failed.
    The native attempt is a plain GET whose bytes must decode as an image. On
    failure the artifact is fetched again with credentials and served from a
    local object URL, which is revoked when the artifact is replaced or the
    loader is closed.
    """

    def __init__(
        self,
        client,
        blob_store: BlobStore,
        artifact_type: ArtifactType = ArtifactType.QR,
        timeout: float = DEFAULT_LOAD_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
        native_fetch: Callable[..., bytes] = fetch_plain_bytes,
    ):
        super().__init__(client, timeout=timeout, clock=clock)
        self.blob_store = blob_store
        self.artifact_type = artifact_type
        self.native_fetch = native_fetch
        self.display_url: Optional[str] = None
        self.metadata: Dict[str, Any] = {}

    def _release_blob(self):
        if self.display_url and self.blob_store.revoke(self.display_url):
            logger.debug(f"Released object URL for {self.url}")
        self.display_url = None

    def set_url(self, url: str) -> LoadState:
        if self.closed:
            return self.state
        self._release_blob()
        self.metadata = {}
        self._start(url)
        return self.state

    def on_native_load(self, metadata: Optional[Dict[str, Any]] = None) -> LoadState:
        if self.closed or self.state is not LoadState.LOADING:
            return self.state
        if self.check_timeout() is LoadState.FAILED:
            return self.state
        self.metadata = metadata or {}
        self.display_url = self.url
        self.state = LoadState.LOADED
        return self.state

    def on_native_error(self, reason: str = "") -> LoadState:
        if self.closed or self.state is not LoadState.LOADING:
            return self.state
        logger.info(f"Native load failed for {self.url} ({reason}), fetching with credentials")
        self.state = LoadState.FALLBACK_FETCHING
        return self._fallback_fetch()

    def _fallback_fetch(self) -> LoadState:
        if self.check_timeout() is LoadState.FAILED:
            return self.state
        try:
            content = self.client.fetch_artifact(self.url, accept=self.artifact_type.accept, timeout=self._remaining())
            metadata = inspect_image(content)
        except (DigitalAssetError, ValueError) as e:
            if not self.closed:
                self._fail(f"Failed to load {self.artifact_type.label}: {e} ({self.url})")
            return self.state

        if self.closed or self.state is not LoadState.FALLBACK_FETCHING:
            return self.state
        if self.check_timeout() is LoadState.FAILED:
            return self.state

        self.display_url = self.blob_store.create(content, mime_type_for(metadata.get("format")))
        self.metadata = metadata
        self.state = LoadState.LOADED
        return self.state

    def load(self, url: Optional[str] = None) -> LoadState:
        """Run a full load cycle for ``url`` (or the current URL)"""
        if url is not None:
            self.set_url(url)
        if self.closed or self.state is not LoadState.LOADING:
            return self.state

        try:
            content = self.native_fetch(self.url, timeout=max(self._remaining(), 0.001))
            metadata = inspect_image(content)
        except (requests.RequestException, ValueError) as e:
            return self.on_native_error(str(e))
        return self.on_native_load(metadata)

    def refresh(self) -> LoadState:
        """Reload with a cache-busting query parameter"""
        if self.url is None or self.closed:
            return self.state
        return self.load(add_cache_buster(self.url))

    def content(self) -> Optional[bytes]:
        """Bytes behind the rendered URL, when it is a local object URL"""
        if self.display_url:
            return self.blob_store.get(self.display_url)
        return None

    def close(self):
        super().close()
        self._release_blob()

    def snapshot(self) -> Dict[str, Any]:
        result = super().snapshot()
        result.update({
            "type": self.artifact_type.value,
            "display_url": self.display_url,
            "metadata": self.metadata,
        })
        return result


class NfcDataLoader(_BaseLoader):
    """Loads an NFC JSON artifact for field-by-field display"""

    def __init__(self, client, timeout: float = DEFAULT_LOAD_TIMEOUT, clock: Callable[[], float] = time.monotonic):
        super().__init__(client, timeout=timeout, clock=clock)
        self.document: Optional[Dict[str, Any]] = None

    def load(self, url: str) -> LoadState:
        if self.closed:
            return self.state
        self.document = None
        self._start(url)
        try:
            content = self.client.fetch_artifact(self.url, accept=ArtifactType.NFC.accept, timeout=self._remaining())
            document = parse_nfc_document(content)
        except (DigitalAssetError, ValueError) as e:
            logger.warning(f"NFC data load failed for {self.url}: {e}")
            if not self.closed:
                self._fail(NFC_FAILURE_MESSAGE)
            return self.state

        if self.closed:
            return self.state
        if self.check_timeout() is LoadState.FAILED:
            return self.state
        self.document = document
        self.state = LoadState.LOADED
        return self.state

    def snapshot(self) -> Dict[str, Any]:
        result = super().snapshot()
        result["type"] = ArtifactType.NFC.value
        result["document"] = self.document
        return result
