import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import requests

from envelopes import decode_artifact, decode_asset, decode_asset_list, decode_bulk
from errors import (
    ArtifactLoadError,
    AuthMissingError,
    HttpError,
    MalformedResponseError,
    NetworkFailureError,
    ValidationError,
    http_error_for_status,
)
from managers.settings_manager import SettingsManager
from models.artifact import ArtifactType, BulkGenerationResult, DigitalArtifact, join_url
from models.asset import Asset
from reference_resolver import is_object_id, validate_asset_id

logger = logging.getLogger("DigitalAssetClient")

USER_AGENTS = {
    ArtifactType.QR: "FacilioTrack-QR-Generator/1.0",
    ArtifactType.BARCODE: "FacilioTrack-Barcode-Generator/1.0",
    ArtifactType.NFC: "FacilioTrack-NFC-Generator/1.0",
}
BULK_USER_AGENT = "FacilioTrack-Bulk-Generator/1.0"
DEFAULT_USER_AGENT = "FacilioTrack-Client/1.0"


class DigitalAssetClient:
    """Client for the asset lookup and digital-asset generation API.

    Generation calls are not idempotent: each one creates a new timestamped
    artifact on the backend, so URLs differ between calls for the same asset.
    """

    def __init__(self, settings: SettingsManager):
        self.settings = settings

    @property
    def base_url(self) -> str:
        return self.settings.base_url

    def absolute_url(self, url: str) -> str:
        return join_url(self.base_url, url)

    def _token(self) -> str:
        token = self.settings.get_auth_token()
        if token is None:
            raise AuthMissingError()
        if not token.strip():
            raise AuthMissingError("Authentication token is empty. Please provide a valid token.")
        return token

    def _headers(self, accept: str = "application/json", user_agent: str = DEFAULT_USER_AGENT) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token()}",
            "Accept": accept,
            "User-Agent": user_agent,
        }

    def _error_detail(self, response: requests.Response) -> str:
        try:
            body = response.json()
            if isinstance(body, dict):
                return body.get("message") or body.get("error") or "Unknown error"
        except ValueError:
            pass
        return response.text or "Unknown error"

    def _send(
        self,
        method: str,
        url: str,
        subject: str,
        identifier: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        **kwargs,
    ) -> requests.Response:
        """Send a request and map transport and HTTP failures to client errors"""
        headers = headers if headers is not None else self._headers()
        timeout = timeout if timeout is not None else self.settings.request_timeout
        started = time.monotonic()
        try:
            if method == "GET":
                response = requests.get(url, headers=headers, timeout=timeout, **kwargs)
            else:
                response = requests.post(url, headers=headers, timeout=timeout, **kwargs)
        except requests.Timeout:
            logger.warning("%s %s timed out after %ss", method, url, timeout)
            raise NetworkFailureError("The request timed out. Please check your connection and try again.")
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise NetworkFailureError(f"Network error: {e}. Please check your connection and try again.")

        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info("%s %s -> %s (%sms)", method, url, response.status_code, elapsed_ms)

        if not response.ok:
            detail = self._error_detail(response)
            logger.error("API error response from %s: %s", url, detail)
            raise http_error_for_status(response.status_code, detail, subject, identifier)
        return response

    def _json(self, response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            raise MalformedResponseError("Invalid response format from server")

    def get_asset(self, identifier: str) -> Asset:
        """Fetch full asset metadata by tag or internal id"""
        identifier = validate_asset_id(identifier)
        response = self._send(
            "GET",
            f"{self.base_url}/api/assets/{identifier}",
            subject="view this asset",
            identifier=identifier,
        )
        asset = decode_asset(self._json(response))
        logger.info("Fetched asset %s (%s)", asset.tag_id, asset.id)
        return asset

    def resolve_asset_id(self, identifier: str) -> str:
        """Map a display tag to the backend internal id.

        24-hex ids are returned unchanged without a request.
        """
        identifier = validate_asset_id(identifier)
        if is_object_id(identifier):
            return identifier
        asset = self.get_asset(identifier)
        if not asset.id:
            raise MalformedResponseError("Invalid response format from server")
        logger.info('Resolved tag "%s" to id "%s"', identifier, asset.id)
        return asset.id

    def list_assets(self, page: int = 1, limit: int = 50) -> List[Asset]:
        response = self._send(
            "GET",
            f"{self.base_url}/api/assets",
            subject="list assets",
            params={"page": page, "limit": limit},
        )
        return decode_asset_list(self._json(response))

    def find_asset_by_tag(self, tag_id: str, limit: int = 1000) -> Optional[Asset]:
        """Look a tag up in the asset list (the select-from-list flow)"""
        for asset in self.list_assets(page=1, limit=limit):
            if asset.tag_id == tag_id:
                return asset
        return None

    def _check_options(self, namespace: str, values: Dict[str, Any]):
        errors = self.settings.validate(namespace, values)
        if errors:
            raise ValidationError(errors[0])

    def _generate(self, artifact_type: ArtifactType, asset_id: str, body: Dict[str, Any]) -> DigitalArtifact:
        url = f"{self.base_url}/digital-assets/{artifact_type.value}/{asset_id}"
        logger.info("Generating %s for asset %s", artifact_type.label, asset_id)
        response = self._send(
            "POST",
            url,
            subject=f"generate {artifact_type.label}s for this asset",
            identifier=asset_id,
            headers=self._headers(user_agent=USER_AGENTS[artifact_type]),
            json=body,
        )
        artifact = decode_artifact(artifact_type, self._json(response))
        logger.info("Generated %s at %s", artifact_type.label, artifact.url)
        return artifact

    def generate_qr_code(self, asset_id: str, size: Optional[int] = None, include_url: Optional[bool] = None) -> DigitalArtifact:
        """Generate a QR code. ``asset_id`` must be the internal id, not the display tag."""
        self._token()
        asset_id = validate_asset_id(asset_id)
        body = {
            "size": self.settings.get_default("qr", "size", size),
            "includeUrl": self.settings.get_default("qr", "include_url", include_url),
        }
        self._check_options("qr", {"size": body["size"]})
        return self._generate(ArtifactType.QR, asset_id, body)

    def generate_barcode(
        self,
        asset_id: str,
        format: Optional[str] = None,
        height: Optional[int] = None,
        scale: Optional[int] = None,
    ) -> DigitalArtifact:
        self._token()
        asset_id = validate_asset_id(asset_id)
        body = {
            "format": self.settings.get_default("barcode", "format", format),
            "height": self.settings.get_default("barcode", "height", height),
            "scale": self.settings.get_default("barcode", "scale", scale),
        }
        self._check_options("barcode", body)
        return self._generate(ArtifactType.BARCODE, asset_id, body)

    def generate_nfc_data(self, asset_id: str) -> DigitalArtifact:
        self._token()
        asset_id = validate_asset_id(asset_id)
        return self._generate(ArtifactType.NFC, asset_id, {})

    def _bulk_options(self, options: Optional[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        """Per-type option objects, with missing or null entries as empty dicts"""
        if options is None:
            options = {}
        if not isinstance(options, dict):
            raise ValidationError("Options must be an object keyed by artifact type")
        normalized = {}
        for key in ("qr", "barcode", "nfc"):
            value = options.get(key)
            if value is None:
                value = {}
            if not isinstance(value, dict):
                raise ValidationError(f"Options for {key} must be an object")
            normalized[key] = value
        return normalized

    def generate_all(
        self,
        asset_id: str,
        types: Optional[Iterable[str]] = None,
        options: Optional[Dict[str, Dict[str, Any]]] = None,
    ) -> BulkGenerationResult:
        """Request several artifact types in one call.

        Each requested type ends up succeeded, failed or missing; types not
        requested are reported as not_requested.
        """
        self._token()
        asset_id = validate_asset_id(asset_id)
        types = ("qr", "barcode", "nfc") if types is None else types
        requested: Sequence[ArtifactType] = [ArtifactType.parse(t) for t in types]
        if not requested:
            raise ValidationError("Please select at least one digital asset type to generate")

        options = self._bulk_options(options)
        qr_options = {
            "size": self.settings.get_default("qr", "size", options["qr"].get("size")),
            "includeUrl": self.settings.get_default("qr", "include_url", options["qr"].get("includeUrl")),
        }
        barcode_options = {
            key: self.settings.get_default("barcode", key, options["barcode"].get(key))
            for key in ("format", "height", "scale")
        }
        self._check_options("qr", {"size": qr_options["size"]})
        self._check_options("barcode", barcode_options)
        body = {
            "types": [artifact_type.value for artifact_type in requested],
            "options": {
                "qr": qr_options,
                "barcode": barcode_options,
                "nfc": {"includeUrl": True, **options["nfc"]},
            },
        }

        logger.info("Generating %s for asset %s", body["types"], asset_id)
        response = self._send(
            "POST",
            f"{self.base_url}/digital-assets/all/{asset_id}",
            subject="generate digital assets for this asset",
            identifier=asset_id,
            headers=self._headers(user_agent=BULK_USER_AGENT),
            json=body,
        )
        result = decode_bulk(asset_id, requested, self._json(response))
        logger.info(
            "Bulk generation for %s: %s succeeded, %s failed, %s missing",
            asset_id,
            len(result.succeeded),
            len(result.failed),
            len(result.missing),
        )
        return result

    def fetch_artifact(self, url: str, accept: str = "image/*", timeout: Optional[float] = None) -> bytes:
        """Download artifact bytes with authorization"""
        if not url or not url.strip():
            raise ValidationError("Artifact URL is required")
        absolute = self.absolute_url(url)
        response = self._send(
            "GET",
            absolute,
            subject="download this file",
            headers=self._headers(accept=accept),
            timeout=timeout,
        )
        if not response.content:
            raise ArtifactLoadError("Downloaded file is empty", url=absolute)
        return response.content

    def download_artifact(self, artifact: DigitalArtifact, destination: Path) -> Path:
        """Write an artifact to ``destination`` (a file, or a directory to place it in)"""
        content = self.fetch_artifact(artifact.url, accept=artifact.type.accept)
        destination = Path(destination)
        if destination.is_dir():
            name = Path(artifact.url.split("?", 1)[0]).name or f"{artifact.type.value}.{artifact.type.extension}"
            destination = destination / name
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(content)
        logger.info("Saved %s to %s (%s bytes)", artifact.type.label, destination, len(content))
        return destination

    def collect_bundle(self, artifacts: Iterable[DigitalArtifact], tag_id: str) -> Dict[str, bytes]:
        """Fetch artifacts keyed by archive filename (``qr_<tag>.png`` etc.).

        Artifacts that fail to download are skipped.
        """
        files: Dict[str, bytes] = {}
        for artifact in artifacts:
            name = f"{artifact.type.value}_{tag_id}.{artifact.type.extension}"
            if not artifact.url and artifact.type is ArtifactType.NFC:
                files[name] = json.dumps(artifact.data, indent=2).encode("utf-8")
                continue
            try:
                content = self.fetch_artifact(artifact.url, accept=artifact.type.accept)
            except HttpError as e:
                if e.requires_reauth:
                    raise
                logger.warning("Skipping %s in bundle: %s", artifact.type.label, e)
                continue
            except (ArtifactLoadError, NetworkFailureError) as e:
                logger.warning("Skipping %s in bundle: %s", artifact.type.label, e)
                continue
            files[name] = content
        return files
