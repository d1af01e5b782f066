"""Data models for the Digital Assets MCP Server"""

from models.artifact import (
    ArtifactResult,
    ArtifactStatus,
    ArtifactType,
    BulkGenerationResult,
    DigitalArtifact,
    SessionArtifact,
    join_url,
)
from models.asset import Asset, AssetLocation
from models.scan import LoadState, ScannedAsset

__all__ = [
    "ArtifactResult",
    "ArtifactStatus",
    "ArtifactType",
    "Asset",
    "AssetLocation",
    "BulkGenerationResult",
    "DigitalArtifact",
    "LoadState",
    "ScannedAsset",
    "SessionArtifact",
    "join_url",
]
