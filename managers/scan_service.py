"""Scan flow: raw scanned text -> canonical tag -> asset -> history"""

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from errors import ValidationError
from managers.scan_history import ScanHistory
from models.artifact import join_url
from models.scan import ScannedAsset
from reference_resolver import ARTIFACT_PATH_REGEX, resolve_reference

logger = logging.getLogger("MCP_Server")

FrameDecoder = Callable[[Any], Optional[str]]


class ScanService:
    """Owns the current scan and the scan history for one session.

    Camera decoding is not built in: scans arrive as decoded text. A decoder
    callable can be supplied for ``detect``.
    """

    def __init__(self, client, history: Optional[ScanHistory] = None, decoder: Optional[FrameDecoder] = None):
        self.client = client
        self.history = history if history is not None else ScanHistory()
        self.decoder = decoder

    def detect(self, frame: Any) -> Optional[str]:
        """Decode a frame to text with the configured decoder, if any"""
        if self.decoder is None:
            return None
        return self.decoder(frame)

    def _artifact_url(self, raw: str, asset) -> Optional[str]:
        stored = asset.artifact_url("qrCode")
        if stored:
            return join_url(self.client.base_url, stored)
        if ARTIFACT_PATH_REGEX.search(raw):
            return join_url(self.client.base_url, raw)
        return None

    def process_scanned_code(self, raw: str) -> ScannedAsset:
        """Resolve and look up a scanned reference, then record it.

        On any failure the history and current scan are left untouched.
        """
        raw = (raw or "").strip()
        if not raw:
            raise ValidationError("Scanned code is empty")

        tag = resolve_reference(raw)
        if not tag.strip():
            raise ValidationError(f"Could not extract an asset tag from {raw!r}")
        logger.info(f"Processing scanned code {raw!r} as tag {tag!r}")

        asset = self.client.get_asset(tag)
        scanned = ScannedAsset(
            asset=asset,
            scanned_at=datetime.now(),
            artifact_url=self._artifact_url(raw, asset),
            raw_input=raw,
        )
        self.history.add(scanned)
        logger.info(f'Asset "{asset.tag_id}" scanned successfully')
        return scanned

    def scan_frame(self, frame: Any) -> Optional[ScannedAsset]:
        decoded = self.detect(frame)
        if decoded is None:
            return None
        return self.process_scanned_code(decoded)

    @property
    def current(self) -> Optional[ScannedAsset]:
        return self.history.current

    def clear_current(self):
        self.history.clear_current()
