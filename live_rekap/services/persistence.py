"""
live_rekap.services.persistence
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Best-effort upload of session snapshots to the rekap backend.
"""
from __future__ import annotations

from live_rekap.clients.rekap_api import RekapApiClient
from live_rekap.core.logging import get_logger
from live_rekap.schemas.session import SessionSnapshot

logger = get_logger(__name__)


class PersistenceClient:
    """Pushes snapshots; live state never depends on the upload succeeding."""

    def __init__(self, api: RekapApiClient) -> None:
        self.api = api

    async def save(self, session_id: str, snapshot: SessionSnapshot) -> bool:
        """Upload one snapshot. Failures are logged and reported as ``False``."""
        try:
            await self.api.save_recap(session_id, snapshot.model_dump())
        except Exception as e:
            # Upload failure must not disturb the session
            logger.error("Failed to save data for session %s: %s", session_id, e)
            return False
        logger.info("Data for session %s saved successfully", session_id)
        return True
