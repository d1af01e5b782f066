"""Digital asset generation tools (QR code, barcode, NFC data)"""

import logging
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from models.artifact import ArtifactStatus
from tools.helpers import error_response, register_and_build_response

logger = logging.getLogger("MCP_Server")


def register_generation_tools(
    mcp: FastMCP,
    client,
    settings_manager,
    artifact_registry
):
    """Register generation tools with the MCP server.

    Every tool accepts a display tag or an internal id; tags are mapped to
    the internal id before the generation request is sent.
    """

    @mcp.tool()
    def generate_qr_code(asset: str, size: Optional[int] = None, include_url: Optional[bool] = None) -> dict:
        """Generate a QR code for an asset.

        Args:
            asset: Asset tag (e.g. "ASSET555") or internal id
            size: Image size in pixels, 100-1000 (default: 300)
            include_url: Encode the asset URL in the QR payload (default: True)

        Returns:
            url (host-relative), absolute_url, short_url and the encoded data.
            Each call creates a new artifact with a new URL.
        """
        try:
            asset_id = client.resolve_asset_id(asset)
            artifact = client.generate_qr_code(asset_id, size=size, include_url=include_url)
        except Exception as exc:
            return error_response(exc, settings_manager)
        return register_and_build_response(asset_id, artifact, artifact_registry, client.base_url, tag_id=asset)

    @mcp.tool()
    def generate_barcode(
        asset: str,
        format: Optional[str] = None,
        height: Optional[int] = None,
        scale: Optional[int] = None,
    ) -> dict:
        """Generate a barcode for an asset.

        Args:
            asset: Asset tag or internal id
            format: code128, code39, ean13, ean8, upca or upce (default: code128)
            height: Bar height, 1-100 (default: 10)
            scale: Scale factor, 1-10 (default: 3)
        """
        try:
            asset_id = client.resolve_asset_id(asset)
            artifact = client.generate_barcode(asset_id, format=format, height=height, scale=scale)
        except Exception as exc:
            return error_response(exc, settings_manager)
        return register_and_build_response(asset_id, artifact, artifact_registry, client.base_url, tag_id=asset)

    @mcp.tool()
    def generate_nfc_data(asset: str) -> dict:
        """Generate the NFC payload (asset metadata, timestamp, checksum, signature)."""
        try:
            asset_id = client.resolve_asset_id(asset)
            artifact = client.generate_nfc_data(asset_id)
        except Exception as exc:
            return error_response(exc, settings_manager)
        return register_and_build_response(asset_id, artifact, artifact_registry, client.base_url, tag_id=asset)

    @mcp.tool()
    def generate_all_digital_assets(
        asset: str,
        types: Optional[List[str]] = None,
        options: Optional[Dict[str, Dict[str, Any]]] = None,
    ) -> dict:
        """Generate several artifact types in one request.

        Args:
            asset: Asset tag or internal id
            types: Subset of ["qr", "barcode", "nfc"] (default: all three)
            options: Per-type options, e.g. {"qr": {"size": 400}, "barcode": {"format": "code39"}}

        Returns:
            One result per type with status succeeded, failed, missing
            (requested but not returned) or not_requested.
        """
        try:
            asset_id = client.resolve_asset_id(asset)
            result = client.generate_all(asset_id, types=types, options=options)
        except Exception as exc:
            return error_response(exc, settings_manager)

        response = result.to_dict(client.base_url)
        for entry, artifact_result in zip(response["results"], result.results.values()):
            if artifact_result.status is ArtifactStatus.SUCCEEDED:
                record = artifact_registry.register(asset_id, artifact_result.artifact, metadata={"tag_id": asset})
                entry["artifact_id"] = record.artifact_id
        if result.succeeded:
            response["message"] = f"Successfully generated {len(result.succeeded)} digital asset(s)!"
        return response
