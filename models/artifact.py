"""Digital artifact data models (QR code, barcode, NFC payload)"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ArtifactType(str, Enum):
    QR = "qr"
    BARCODE = "barcode"
    NFC = "nfc"

    @property
    def response_key(self) -> str:
        """Key the backend uses for this artifact in generation envelopes"""
        return {"qr": "qrCode", "barcode": "barcode", "nfc": "nfcData"}[self.value]

    @property
    def accept(self) -> str:
        return "application/json" if self is ArtifactType.NFC else "image/*"

    @property
    def extension(self) -> str:
        return "json" if self is ArtifactType.NFC else "png"

    @property
    def label(self) -> str:
        return {"qr": "QR code", "barcode": "barcode", "nfc": "NFC data"}[self.value]

    @property
    def title(self) -> str:
        return self.label[0].upper() + self.label[1:]

    @classmethod
    def parse(cls, value: str) -> "ArtifactType":
        normalized = value.strip().lower()
        aliases = {"qrcode": "qr", "qr_code": "qr", "nfcdata": "nfc", "nfc_data": "nfc"}
        return cls(aliases.get(normalized, normalized))


def join_url(base_url: str, url: str) -> str:
    """Join a host-relative artifact URL onto the API host"""
    if url.startswith(("http://", "https://", "blob:", "data:")):
        return url
    return f"{base_url.rstrip('/')}/{url.lstrip('/')}"


@dataclass
class DigitalArtifact:
    """One generated artifact. ``url`` is host-relative as returned by the API."""
    type: ArtifactType
    url: str
    data: Any
    short_url: Optional[str] = None
    format: Optional[str] = None

    @classmethod
    def from_api(cls, artifact_type: ArtifactType, payload: Dict[str, Any]) -> "DigitalArtifact":
        return cls(
            type=artifact_type,
            url=payload.get("url") or "",
            data=payload.get("data"),
            short_url=payload.get("shortUrl"),
            format=payload.get("format"),
        )

    def absolute_url(self, base_url: str) -> str:
        return join_url(base_url, self.url)

    def to_dict(self, base_url: Optional[str] = None) -> Dict[str, Any]:
        result = {
            "type": self.type.value,
            "url": self.url,
            "data": self.data,
        }
        if self.short_url:
            result["short_url"] = self.short_url
        if self.format:
            result["format"] = self.format
        if base_url and self.url:
            result["absolute_url"] = self.absolute_url(base_url)
        return result


class ArtifactStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    NOT_REQUESTED = "not_requested"
    # Requested, absent from the response, and no failure reported
    MISSING = "missing"


@dataclass
class ArtifactResult:
    type: ArtifactType
    status: ArtifactStatus
    artifact: Optional[DigitalArtifact] = None
    error: Optional[str] = None

    def to_dict(self, base_url: Optional[str] = None) -> Dict[str, Any]:
        result: Dict[str, Any] = {"type": self.type.value, "status": self.status.value}
        if self.artifact:
            result["artifact"] = self.artifact.to_dict(base_url)
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class BulkGenerationResult:
    asset_id: str
    results: Dict[ArtifactType, ArtifactResult] = field(default_factory=dict)
    message: Optional[str] = None

    def _with_status(self, status: ArtifactStatus) -> List[ArtifactResult]:
        return [result for result in self.results.values() if result.status is status]

    @property
    def succeeded(self) -> List[ArtifactResult]:
        return self._with_status(ArtifactStatus.SUCCEEDED)

    @property
    def failed(self) -> List[ArtifactResult]:
        return self._with_status(ArtifactStatus.FAILED)

    @property
    def missing(self) -> List[ArtifactResult]:
        return self._with_status(ArtifactStatus.MISSING)

    def artifact(self, artifact_type: ArtifactType) -> Optional[DigitalArtifact]:
        result = self.results.get(artifact_type)
        return result.artifact if result else None

    def to_dict(self, base_url: Optional[str] = None) -> Dict[str, Any]:
        return {
            "asset_id": self.asset_id,
            "message": self.message,
            "results": [result.to_dict(base_url) for result in self.results.values()],
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "missing": len(self.missing),
        }


@dataclass
class SessionArtifact:
    """Artifact generated during the current session, tracked by the registry"""
    artifact_id: str
    asset_id: str
    artifact: DigitalArtifact
    created_at: datetime
    expires_at: Optional[datetime]
    metadata: Dict[str, Any] = field(default_factory=dict)
