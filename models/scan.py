"""Scan and artifact-loading state models"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from models.asset import Asset


@dataclass
class ScannedAsset:
    """A resolved asset paired with when and from what it was scanned"""
    asset: Asset
    scanned_at: datetime
    artifact_url: Optional[str] = None
    raw_input: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "asset": self.asset.to_dict(),
            "scanned_at": self.scanned_at.isoformat(),
            "artifact_url": self.artifact_url,
            "raw_input": self.raw_input,
        }


class LoadState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    FALLBACK_FETCHING = "fallback_fetching"
    LOADED = "loaded"
    FAILED = "failed"

    @property
    def pending(self) -> bool:
        return self in (LoadState.LOADING, LoadState.FALLBACK_FETCHING)
