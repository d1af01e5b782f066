"""Bounded, most-recent-first history of scanned assets"""

from collections import deque
from typing import Deque, List, Optional

from models.scan import ScannedAsset

DEFAULT_HISTORY_LIMIT = 10


class ScanHistory:
    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT):
        if limit < 1:
            raise ValueError("History limit must be at least 1")
        self._entries: Deque[ScannedAsset] = deque(maxlen=limit)
        self.current: Optional[ScannedAsset] = None

    @property
    def limit(self) -> int:
        return self._entries.maxlen

    def add(self, scanned: ScannedAsset):
        """Record a scan; the oldest entry falls off once the limit is reached"""
        self._entries.appendleft(scanned)
        self.current = scanned

    def entries(self) -> List[ScannedAsset]:
        return list(self._entries)

    def clear_current(self):
        self.current = None

    def clear(self):
        self._entries.clear()
        self.current = None

    def __len__(self) -> int:
        return len(self._entries)
