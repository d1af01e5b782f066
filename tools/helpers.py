"""Shared helper functions for tool implementations"""

import logging
from typing import Any, Dict, Optional

from errors import DigitalAssetError, HttpError
from models.artifact import DigitalArtifact

logger = logging.getLogger("MCP_Server")


def error_response(exc: Exception, settings_manager=None) -> Dict[str, Any]:
    """Convert an exception raised inside a tool into a response dict.

    A 401 clears the stored token so the next call asks for a new one.
    """
    if isinstance(exc, DigitalAssetError):
        if isinstance(exc, HttpError) and exc.requires_reauth and settings_manager is not None:
            settings_manager.reject_auth_token()
            logger.warning("Authentication rejected; token cleared")
            response = exc.to_dict()
            if settings_manager.env_token_rejected:
                response["hint"] = (
                    "The rejected token came from DIGITAL_ASSETS_AUTH_TOKEN and will not be reused. "
                    "Call set_auth_token with a new token."
                )
            return response
        return exc.to_dict()
    logger.exception("Unexpected tool failure")
    return {"error": str(exc)}


def register_and_build_response(
    asset_id: str,
    artifact: DigitalArtifact,
    artifact_registry,
    base_url: str,
    tag_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Register a generated artifact for this session and build the tool response"""
    metadata = {"tag_id": tag_id} if tag_id else {}
    record = artifact_registry.register(asset_id, artifact, metadata=metadata)
    response = artifact.to_dict(base_url)
    response.update({
        "artifact_id": record.artifact_id,
        "asset_id": asset_id,
        "created_at": record.created_at.isoformat(),
    })
    if tag_id:
        response["tag_id"] = tag_id
    return response
