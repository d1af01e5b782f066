"""Session registry of generated artifacts"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from models.artifact import ArtifactType, DigitalArtifact, SessionArtifact

logger = logging.getLogger("MCP_Server")


class ArtifactRegistry:
    """Tracks the artifacts generated in this session.

    One slot per (asset, type): regenerating replaces the previous artifact.
    Nothing is persisted; the registry resets with the server.
    """

    def __init__(self, ttl_hours: int = 24):
        self._artifacts: Dict[str, SessionArtifact] = {}
        self._slots: Dict[Tuple[str, ArtifactType], str] = {}
        self.ttl_hours = ttl_hours
        self._discard_listeners: List[Callable[[str], None]] = []
        logger.info(f"Initialized ArtifactRegistry with TTL: {ttl_hours} hours")

    def add_discard_listener(self, listener: Callable[[str], None]):
        """Call ``listener(artifact_id)`` whenever a record is replaced or expires"""
        self._discard_listeners.append(listener)

    def _notify_discarded(self, artifact_id: str):
        for listener in self._discard_listeners:
            listener(artifact_id)

    def register(
        self,
        asset_id: str,
        artifact: DigitalArtifact,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SessionArtifact:
        """Register an artifact, replacing any earlier one for the same asset and type"""
        slot = (asset_id, artifact.type)
        previous_id = self._slots.get(slot)
        if previous_id:
            self._artifacts.pop(previous_id, None)
            logger.debug(f"Replaced {artifact.type.value} artifact {previous_id} for asset {asset_id}")
            self._notify_discarded(previous_id)

        now = datetime.now()
        record = SessionArtifact(
            artifact_id=str(uuid.uuid4()),
            asset_id=asset_id,
            artifact=artifact,
            created_at=now,
            expires_at=now + timedelta(hours=self.ttl_hours),
            metadata=metadata or {},
        )
        self._artifacts[record.artifact_id] = record
        self._slots[slot] = record.artifact_id
        return record

    def _expired(self, record: SessionArtifact) -> bool:
        return bool(record.expires_at and datetime.now() > record.expires_at)

    def _drop(self, record: SessionArtifact):
        self._artifacts.pop(record.artifact_id, None)
        slot = (record.asset_id, record.artifact.type)
        if self._slots.get(slot) == record.artifact_id:
            del self._slots[slot]
        self._notify_discarded(record.artifact_id)

    def get(self, artifact_id: str) -> Optional[SessionArtifact]:
        """Retrieve a record by id, checking expiration"""
        record = self._artifacts.get(artifact_id)
        if not record:
            return None
        if self._expired(record):
            logger.debug(f"Artifact {artifact_id} has expired")
            self._drop(record)
            return None
        return record

    def latest(self, asset_id: str, artifact_type: ArtifactType) -> Optional[SessionArtifact]:
        artifact_id = self._slots.get((asset_id, artifact_type))
        return self.get(artifact_id) if artifact_id else None

    def list(self, asset_id: Optional[str] = None) -> List[SessionArtifact]:
        self.cleanup_expired()
        records = [record for record in self._artifacts.values() if asset_id is None or record.asset_id == asset_id]
        return sorted(records, key=lambda record: record.created_at, reverse=True)

    def cleanup_expired(self) -> int:
        """Remove expired artifacts from registry"""
        expired = [record for record in self._artifacts.values() if self._expired(record)]
        for record in expired:
            self._drop(record)
        if expired:
            logger.info(f"Cleaned up {len(expired)} expired artifacts")
        return len(expired)
