"""Local object URLs for artifact bytes fetched through the fallback path"""

import logging
import uuid
from typing import Dict, Optional

logger = logging.getLogger("MCP_Server")

BLOB_PREFIX = "blob:"


class BlobStore:
    """Holds fetched bytes behind ``blob:<uuid>`` URLs until they are revoked.

    Every URL created here must be revoked when the artifact it backs is
    replaced or its view is closed. Using the store as a context manager
    revokes whatever is left on exit.
    """

    def __init__(self):
        self._blobs: Dict[str, bytes] = {}
        self._content_types: Dict[str, str] = {}

    def create(self, content: bytes, content_type: str = "application/octet-stream") -> str:
        url = f"{BLOB_PREFIX}{uuid.uuid4()}"
        self._blobs[url] = content
        self._content_types[url] = content_type
        logger.debug(f"Created object URL {url} ({len(content)} bytes)")
        return url

    def get(self, url: str) -> Optional[bytes]:
        return self._blobs.get(url)

    def content_type(self, url: str) -> Optional[str]:
        return self._content_types.get(url)

    def revoke(self, url: Optional[str]) -> bool:
        """Release an object URL. Unknown or non-blob URLs are ignored."""
        if not url or not url.startswith(BLOB_PREFIX):
            return False
        self._content_types.pop(url, None)
        if self._blobs.pop(url, None) is None:
            return False
        logger.debug(f"Revoked object URL {url}")
        return True

    def revoke_all(self) -> int:
        count = len(self._blobs)
        self._blobs.clear()
        self._content_types.clear()
        if count:
            logger.info(f"Revoked {count} object URLs")
        return count

    def __len__(self) -> int:
        return len(self._blobs)

    def __contains__(self, url: str) -> bool:
        return url in self._blobs

    def __enter__(self) -> "BlobStore":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.revoke_all()
        return False
