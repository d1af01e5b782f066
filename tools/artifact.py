"""Artifact loading, viewing and download tools"""

import logging
from pathlib import Path
from typing import Dict, Optional

from mcp.server.fastmcp import FastMCP, Image as FastMCPImage

from artifact_processor import encode_preview, get_cache_key, write_bundle
from envelopes import unwrap_data_envelope
from managers.artifact_loader import ArtifactLoader, NfcDataLoader
from models.artifact import ArtifactType
from models.scan import LoadState
from tools.helpers import error_response

logger = logging.getLogger("MCP_Server")


def register_artifact_tools(
    mcp: FastMCP,
    client,
    settings_manager,
    artifact_registry,
    blob_store
):
    """Register artifact viewing tools with the MCP server"""

    # One loader per artifact_id, owned by this server instance
    loaders: Dict[str, ArtifactLoader] = {}

    def _release_loader(artifact_id: str):
        loader = loaders.pop(artifact_id, None)
        if loader is not None:
            loader.close()
            logger.debug(f"Closed loader for discarded artifact {artifact_id}")

    artifact_registry.add_discard_listener(_release_loader)

    def _record_or_error(artifact_id: str):
        artifact_registry.cleanup_expired()
        record = artifact_registry.get(artifact_id)
        if not record:
            return None, {
                "error": f"Artifact {artifact_id} not found (registry is in-memory and resets on restart). "
                         f"Generate it again to get a new artifact_id."
            }
        return record, None

    def _load(artifact_id: str, refresh: bool = False):
        record, error = _record_or_error(artifact_id)
        if error:
            return None, error
        if record.artifact.type is ArtifactType.NFC:
            return None, {"error": "NFC artifacts are JSON documents; use load_nfc_data instead."}

        loader = loaders.get(artifact_id)
        if refresh and loader is not None and not loader.closed:
            loader.refresh()
        else:
            if loader is not None:
                loader.close()
            loader = ArtifactLoader(
                client,
                blob_store,
                artifact_type=record.artifact.type,
                timeout=settings_manager.load_timeout,
            )
            loaders[artifact_id] = loader
            loader.load(record.artifact.url)
        loader.check_timeout()
        return loader, None

    @mcp.tool()
    def list_session_artifacts(asset_id: Optional[str] = None) -> dict:
        """List artifacts generated in this session, newest first."""
        records = artifact_registry.list(asset_id)
        return {
            "artifacts": [
                {
                    "artifact_id": record.artifact_id,
                    "asset_id": record.asset_id,
                    "type": record.artifact.type.value,
                    "url": record.artifact.url,
                    "created_at": record.created_at.isoformat(),
                    "load_state": loaders[record.artifact_id].state.value
                    if record.artifact_id in loaders else LoadState.IDLE.value,
                }
                for record in records
            ],
            "count": len(records),
        }

    @mcp.tool()
    def load_artifact(artifact_id: str) -> dict:
        """Load a QR code or barcode image, falling back to an authorized fetch.

        Returns the load state (loaded or failed), the URL to render and the
        image dimensions. A failed load includes the attempted URL.
        """
        loader, error = _load(artifact_id)
        if error:
            return error
        return loader.snapshot()

    @mcp.tool()
    def refresh_artifact(artifact_id: str) -> dict:
        """Reload an artifact image, bypassing caches."""
        loader, error = _load(artifact_id, refresh=True)
        if error:
            return error
        return loader.snapshot()

    @mcp.tool()
    def close_artifact(artifact_id: str) -> dict:
        """Close an artifact view and release its local object URL."""
        loader = loaders.pop(artifact_id, None)
        if loader is None:
            return {"closed": False}
        loader.close()
        return {"closed": True}

    @mcp.tool()
    def view_artifact(artifact_id: str, max_dim: Optional[int] = None, max_b64_chars: Optional[int] = None):
        """View a generated QR code or barcode inline in chat.

        Args:
            artifact_id: Artifact ID returned by a generation tool
            max_dim: Maximum preview dimension in pixels (default: 512)
            max_b64_chars: Maximum base64 size (default: 100000)
        """
        loader, error = _load(artifact_id)
        if error:
            return error
        if loader.state is not LoadState.LOADED:
            return loader.snapshot()

        try:
            content = loader.content()
            if content is None:
                content = client.fetch_artifact(loader.url, accept=loader.artifact_type.accept)
            encoded = encode_preview(
                content,
                max_dim=max_dim or 512,
                max_b64_chars=max_b64_chars or 100_000,
                cache_key=get_cache_key(artifact_id, max_dim or 512, 80),
            )
        except ValueError as e:
            logger.warning(f"Refusing to inline artifact {artifact_id}: {e}")
            return {
                "error": f"Could not inline artifact ({e}).",
                "url": loader.url,
                "hint": "Open the URL directly or use load_artifact for metadata.",
            }
        except Exception as exc:
            return error_response(exc, settings_manager)
        return FastMCPImage(data=encoded.raw_bytes, format="webp")

    @mcp.tool()
    def load_nfc_data(artifact_id: str) -> dict:
        """Load an NFC artifact's JSON document (asset fields, timestamp, checksum, signature)."""
        record, error = _record_or_error(artifact_id)
        if error:
            return error
        if record.artifact.type is not ArtifactType.NFC:
            return {"error": f"Artifact {artifact_id} is a {record.artifact.type.label}, not NFC data."}
        if not record.artifact.url:
            return {
                "state": LoadState.LOADED.value,
                "url": None,
                "error": None,
                "type": ArtifactType.NFC.value,
                "document": unwrap_data_envelope(record.artifact.data),
            }
        loader = NfcDataLoader(client, timeout=settings_manager.load_timeout)
        loader.load(record.artifact.url)
        return loader.snapshot()

    @mcp.tool()
    def download_artifact(artifact_id: str, destination: str) -> dict:
        """Save an artifact to a file or directory."""
        record, error = _record_or_error(artifact_id)
        if error:
            return error
        try:
            path = client.download_artifact(record.artifact, Path(destination).expanduser())
        except Exception as exc:
            return error_response(exc, settings_manager)
        return {"success": True, "path": str(path)}

    @mcp.tool()
    def export_digital_assets(asset_id: str, destination: str, tag_id: Optional[str] = None) -> dict:
        """Bundle the latest QR code, barcode and NFC data of an asset into a ZIP file.

        Args:
            asset_id: Internal asset id the artifacts were generated for
            destination: ZIP file path
            tag_id: Tag used in archive filenames (default: asset_id)
        """
        artifacts = [
            record.artifact
            for record in (artifact_registry.latest(asset_id, artifact_type) for artifact_type in ArtifactType)
            if record is not None
        ]
        if not artifacts:
            return {"error": f"No artifacts generated for asset {asset_id} in this session."}
        try:
            files = client.collect_bundle(artifacts, tag_id or asset_id)
            path = write_bundle(files, Path(destination).expanduser())
        except Exception as exc:
            return error_response(exc, settings_manager)
        return {"success": True, "path": str(path), "files": sorted(files)}
