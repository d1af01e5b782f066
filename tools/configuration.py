"""Configuration tools for the Digital Assets MCP Server"""

from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP


def register_configuration_tools(
    mcp: FastMCP,
    settings_manager
):
    """Register configuration tools with the MCP server"""

    @mcp.tool()
    def get_defaults() -> dict:
        """Get current effective settings for the client, QR codes and barcodes.

        Returns merged values from all sources (runtime, config, env, hardcoded).
        """
        defaults = settings_manager.get_all_defaults()
        defaults["auth_token_set"] = bool(settings_manager.get_auth_token())
        return defaults

    @mcp.tool()
    def set_defaults(
        client: Optional[Dict[str, Any]] = None,
        qr: Optional[Dict[str, Any]] = None,
        barcode: Optional[Dict[str, Any]] = None,
        persist: bool = False
    ) -> dict:
        """Set runtime defaults.

        Args:
            client: e.g. {"base_url": "https://api.example.com", "request_timeout": 20}
            qr: e.g. {"size": 400, "include_url": false}
            barcode: e.g. {"format": "code39", "height": 12, "scale": 2}
            persist: If True, write to ~/.config/digital-assets-mcp/config.json
        """
        results = {}
        errors = []

        for namespace, values in (("client", client), ("qr", qr), ("barcode", barcode)):
            if not values:
                continue
            result = settings_manager.set_defaults(namespace, values)
            if "error" in result or "errors" in result:
                errors.extend(result.get("errors", [result.get("error")]))
                continue
            results[namespace] = result
            if persist:
                persist_result = settings_manager.persist_defaults(namespace, values)
                if "error" in persist_result:
                    errors.append(f"Failed to persist {namespace} defaults: {persist_result['error']}")

        if errors:
            return {"success": False, "errors": errors}

        return {"success": True, "updated": results}

    @mcp.tool()
    def set_auth_token(token: str) -> dict:
        """Store the bearer token used for every API request."""
        if not token or not token.strip():
            return {"success": False, "error": "Authentication token is empty. Please provide a valid token."}
        settings_manager.set_auth_token(token.strip())
        return {"success": True}

    @mcp.tool()
    def clear_auth_token() -> dict:
        """Remove the stored bearer token."""
        settings_manager.clear_auth_token()
        return {"success": True}
