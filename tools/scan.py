"""Scan and lookup tools"""

import logging

from mcp.server.fastmcp import FastMCP

from reference_resolver import resolve_reference as resolve_reference_text
from tools.helpers import error_response

logger = logging.getLogger("MCP_Server")


def register_scan_tools(
    mcp: FastMCP,
    client,
    scan_service,
    settings_manager
):
    """Register scan, lookup and history tools with the MCP server"""

    @mcp.tool()
    def resolve_reference(raw: str) -> dict:
        """Extract the canonical asset tag from a scanned or typed string.

        Accepts artifact URLs (".../qr_ASSET555_1754296433008.png"), bare artifact
        filenames, generic URLs (the last path segment is used) or a bare tag.
        No network call is made.
        """
        return {"raw": raw, "tag_id": resolve_reference_text(raw)}

    @mcp.tool()
    def scan_asset(code: str) -> dict:
        """Process a scanned code: resolve the tag, fetch the asset, add it to history.

        Args:
            code: Decoded QR/barcode text or manually entered reference

        Returns:
            The scanned asset with its metadata, scan time and artifact URL.
        """
        try:
            scanned = scan_service.process_scanned_code(code)
        except Exception as exc:
            return error_response(exc, settings_manager)
        result = scanned.to_dict()
        result["message"] = f'Asset "{scanned.asset.tag_id}" scanned successfully!'
        return result

    @mcp.tool()
    def get_scan_history() -> dict:
        """List recent scans, most recent first (last 10 kept)."""
        entries = scan_service.history.entries()
        current = scan_service.current
        return {
            "current": current.to_dict() if current else None,
            "history": [entry.to_dict() for entry in entries],
            "count": len(entries),
            "limit": scan_service.history.limit,
        }

    @mcp.tool()
    def clear_current_scan() -> dict:
        """Clear the current scan (history is kept)."""
        scan_service.clear_current()
        return {"success": True}

    @mcp.tool()
    def lookup_asset(identifier: str) -> dict:
        """Fetch full asset metadata by tag (e.g. "ASSET555") or internal id."""
        try:
            asset = client.get_asset(identifier)
        except Exception as exc:
            return error_response(exc, settings_manager)
        return {"asset": asset.to_dict()}

    @mcp.tool()
    def list_assets(page: int = 1, limit: int = 50) -> dict:
        """List assets page by page, for picking an asset by tag."""
        try:
            assets = client.list_assets(page=page, limit=limit)
        except Exception as exc:
            return error_response(exc, settings_manager)
        return {
            "assets": [
                {"id": asset.id, "tag_id": asset.tag_id, "asset_type": asset.asset_type, "status": asset.status}
                for asset in assets
            ],
            "count": len(assets),
            "page": page,
        }
