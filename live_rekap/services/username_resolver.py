"""
live_rekap.services.username_resolver
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Session id → room handle lookup, cached until the session ends.
"""
from __future__ import annotations

import httpx

from live_rekap.clients.rekap_api import RekapApiClient
from live_rekap.core.errors import LookupFailed, NotFound
from live_rekap.core.logging import get_logger

logger = get_logger(__name__)


class UsernameResolver:
    """Resolves a schedule id to the room handle it is bound to.

    Entries are only removed by ``invalidate()``, which the registry calls
    on every session end so a torn-down session never reuses a stale handle.
    """

    def __init__(self, api: RekapApiClient) -> None:
        self.api = api
        self._cache: dict[str, str] = {}

    async def resolve(self, session_id: str) -> str:
        """Return the room handle for a session.

        Raises:
            NotFound: the backend has no room handle for this session.
            LookupFailed: transport or parse error.
        """
        cached = self._cache.get(session_id)
        if cached is not None:
            return cached

        try:
            body = await self.api.fetch_schedule(session_id)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise NotFound(f"No schedule found for session {session_id}") from e
            raise LookupFailed(f"Failed to fetch username: {e}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise LookupFailed(f"Failed to fetch username: {e}") from e

        try:
            handle = body["data"]["program"]["room_tiktok"]
        except (KeyError, TypeError) as e:
            raise LookupFailed(f"Failed to fetch username: unexpected response shape ({e!r})") from e
        if not handle:
            raise NotFound(f"Username not found for session {session_id}")

        handle = str(handle).lstrip("@")
        self._cache[session_id] = handle
        logger.debug("Resolved session %s -> @%s", session_id, handle)
        return handle

    def invalidate(self, session_id: str) -> None:
        self._cache.pop(session_id, None)
