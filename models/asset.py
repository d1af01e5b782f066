"""Asset data models"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class AssetLocation:
    latitude: str = ""
    longitude: str = ""
    floor: str = ""
    room: str = ""
    building: str = ""

    @classmethod
    def from_api(cls, payload: Optional[Dict[str, Any]]) -> "AssetLocation":
        payload = payload or {}
        return cls(
            latitude=str(payload.get("latitude", "") or ""),
            longitude=str(payload.get("longitude", "") or ""),
            floor=str(payload.get("floor", "") or ""),
            room=str(payload.get("room", "") or ""),
            building=str(payload.get("building", "") or ""),
        )


@dataclass
class Asset:
    """Read-only snapshot of a backend asset.

    The backend owns the asset; this is never written back.
    """
    id: str
    tag_id: str
    asset_type: str = ""
    subcategory: str = ""
    brand: str = ""
    model: str = ""
    serial_number: str = ""
    status: str = ""
    priority: str = ""
    project_name: str = ""
    digital_tag_type: str = ""
    location: AssetLocation = field(default_factory=AssetLocation)
    digital_assets: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Asset":
        return cls(
            id=str(payload.get("_id") or payload.get("id") or ""),
            tag_id=str(payload.get("tagId") or ""),
            asset_type=payload.get("assetType") or "",
            subcategory=payload.get("subcategory") or "",
            brand=payload.get("brand") or "",
            model=payload.get("model") or "",
            serial_number=payload.get("serialNumber") or "",
            status=payload.get("status") or "",
            priority=payload.get("priority") or "",
            project_name=payload.get("projectName") or "",
            digital_tag_type=payload.get("digitalTagType") or "",
            location=AssetLocation.from_api(payload.get("location")),
            digital_assets=payload.get("digitalAssets") or {},
            created_at=payload.get("createdAt"),
            updated_at=payload.get("updatedAt"),
            raw=payload,
        )

    def artifact_url(self, key: str) -> Optional[str]:
        """Host-relative URL of a stored artifact ("qrCode", "barcode", "nfcData")"""
        entry = self.digital_assets.get(key)
        if isinstance(entry, dict):
            return entry.get("url")
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tag_id": self.tag_id,
            "asset_type": self.asset_type,
            "subcategory": self.subcategory,
            "brand": self.brand,
            "model": self.model,
            "serial_number": self.serial_number,
            "status": self.status,
            "priority": self.priority,
            "project_name": self.project_name,
            "location": vars(self.location).copy(),
            "digital_assets": self.digital_assets,
        }


def assets_from_api(items: List[Dict[str, Any]]) -> List[Asset]:
    return [Asset.from_api(item) for item in items if isinstance(item, dict)]
