"""Response decoders, one per endpoint.

Each decoder matches the envelope shapes the backend is known to return and
raises MalformedResponseError when none matches.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from errors import DigitalAssetError, MalformedResponseError
from models.artifact import (
    ArtifactResult,
    ArtifactStatus,
    ArtifactType,
    BulkGenerationResult,
    DigitalArtifact,
)
from models.asset import Asset, assets_from_api

logger = logging.getLogger("DigitalAssetClient")

INVALID_FORMAT = "Invalid response format from server"

# Keys under which each artifact type has been observed
ARTIFACT_KEYS = {
    ArtifactType.QR: ("qrCode", "qr"),
    ArtifactType.BARCODE: ("barcode",),
    ArtifactType.NFC: ("nfcData", "nfc"),
}


def _check_success(payload: Mapping[str, Any], action: str):
    if payload.get("success") is False:
        raise DigitalAssetError(payload.get("message") or f"{action} failed")


def decode_asset(payload: Any) -> Asset:
    """Decode ``GET /api/assets/{id}``"""
    if not isinstance(payload, dict):
        raise MalformedResponseError(INVALID_FORMAT)
    _check_success(payload, "Asset lookup")

    if isinstance(payload.get("asset"), dict):
        return Asset.from_api(payload["asset"])
    data = payload.get("data")
    if isinstance(data, dict):
        if isinstance(data.get("asset"), dict):
            return Asset.from_api(data["asset"])
        if "tagId" in data or "_id" in data:
            return Asset.from_api(data)
    raise MalformedResponseError(INVALID_FORMAT)


def decode_asset_list(payload: Any) -> List[Asset]:
    """Decode ``GET /api/assets``.

    Accepted shapes: ``{success, assets}``, ``{assets}``, a bare list, ``{data: [...]}``.
    """
    if isinstance(payload, list):
        return assets_from_api(payload)
    if not isinstance(payload, dict):
        raise MalformedResponseError(INVALID_FORMAT)
    _check_success(payload, "Asset listing")

    if isinstance(payload.get("assets"), list):
        return assets_from_api(payload["assets"])
    data = payload.get("data")
    if isinstance(data, list):
        return assets_from_api(data)
    if isinstance(data, dict) and isinstance(data.get("assets"), list):
        return assets_from_api(data["assets"])
    raise MalformedResponseError(INVALID_FORMAT)


def _find_entry(container: Mapping[str, Any], artifact_type: ArtifactType) -> Optional[Any]:
    for key in ARTIFACT_KEYS[artifact_type]:
        if key in container and container[key] is not None:
            return container[key]
    return None


def _valid_artifact(artifact_type: ArtifactType, entry: Any) -> bool:
    if not isinstance(entry, dict) or entry.get("data") is None:
        return False
    # NFC payloads may come back without a stored file
    return artifact_type is ArtifactType.NFC or bool(entry.get("url"))


def decode_artifact(artifact_type: ArtifactType, payload: Any) -> DigitalArtifact:
    """Decode a single generation response such as ``{success, qrCode: {url, data, shortUrl}}``"""
    if not isinstance(payload, dict):
        raise MalformedResponseError(INVALID_FORMAT)
    _check_success(payload, f"{artifact_type.title} generation")

    entry = _find_entry(payload, artifact_type)
    if entry is None and isinstance(payload.get("data"), dict):
        entry = _find_entry(payload["data"], artifact_type)
    if not _valid_artifact(artifact_type, entry):
        raise MalformedResponseError(INVALID_FORMAT)
    return DigitalArtifact.from_api(artifact_type, entry)


def _bulk_container(payload: Dict[str, Any]) -> Dict[str, Any]:
    for key in ("digitalAssets", "data"):
        nested = payload.get(key)
        if isinstance(nested, dict) and any(
            _find_entry(nested, artifact_type) is not None for artifact_type in ArtifactType
        ):
            return nested
    return payload


def _reported_failures(payload: Mapping[str, Any], container: Mapping[str, Any]) -> Dict[ArtifactType, str]:
    """Collect explicit per-type failures from an ``errors`` or ``failed`` field"""
    failures: Dict[ArtifactType, str] = {}
    for source in (payload, container):
        for field_name in ("errors", "failed"):
            reported = source.get(field_name)
            if isinstance(reported, dict):
                items: Iterable = reported.items()
            elif isinstance(reported, list):
                items = ((name, None) for name in reported)
            else:
                continue
            for name, message in items:
                try:
                    artifact_type = ArtifactType.parse(str(name))
                except ValueError:
                    logger.warning("Ignoring failure reported for unknown artifact type %r", name)
                    continue
                failures[artifact_type] = str(message) if message else f"{artifact_type.title} generation failed"
    return failures


def decode_bulk(asset_id: str, requested: Iterable[ArtifactType], payload: Any) -> BulkGenerationResult:
    """Decode ``POST /digital-assets/all/{id}`` into one status per artifact type"""
    if not isinstance(payload, dict):
        raise MalformedResponseError(INVALID_FORMAT)
    _check_success(payload, "Bulk digital assets generation")

    requested = set(requested)
    container = _bulk_container(payload)
    failures = _reported_failures(payload, container)
    result = BulkGenerationResult(asset_id=asset_id, message=payload.get("message"))

    for artifact_type in ArtifactType:
        if artifact_type not in requested:
            result.results[artifact_type] = ArtifactResult(artifact_type, ArtifactStatus.NOT_REQUESTED)
            continue

        entry = _find_entry(container, artifact_type)
        if isinstance(entry, dict) and entry.get("success") is False:
            failures.setdefault(artifact_type, entry.get("message") or f"{artifact_type.title} generation failed")
            entry = None

        if artifact_type in failures:
            result.results[artifact_type] = ArtifactResult(
                artifact_type, ArtifactStatus.FAILED, error=failures[artifact_type]
            )
        elif entry is None:
            result.results[artifact_type] = ArtifactResult(artifact_type, ArtifactStatus.MISSING)
        elif _valid_artifact(artifact_type, entry):
            result.results[artifact_type] = ArtifactResult(
                artifact_type,
                ArtifactStatus.SUCCEEDED,
                artifact=DigitalArtifact.from_api(artifact_type, entry),
            )
        else:
            result.results[artifact_type] = ArtifactResult(
                artifact_type, ArtifactStatus.FAILED, error=INVALID_FORMAT
            )

    return result


def unwrap_data_envelope(document: Any) -> Any:
    """Return ``document["data"]`` when the document is wrapped, else the document"""
    if isinstance(document, dict) and isinstance(document.get("data"), dict):
        return document["data"]
    return document
