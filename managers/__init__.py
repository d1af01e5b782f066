"""Manager classes for the Digital Assets MCP Server"""

from managers.artifact_loader import ArtifactLoader, NfcDataLoader
from managers.artifact_registry import ArtifactRegistry
from managers.blob_store import BlobStore
from managers.scan_history import ScanHistory
from managers.scan_service import ScanService
from managers.settings_manager import SettingsManager

__all__ = [
    "ArtifactLoader",
    "ArtifactRegistry",
    "BlobStore",
    "NfcDataLoader",
    "ScanHistory",
    "ScanService",
    "SettingsManager",
]
