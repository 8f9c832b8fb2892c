"""
live_rekap.services.session_registry
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Session registry: at most one ``LiveSessionHandler`` per session id.

Created in the FastAPI lifespan and kept on ``app.state``; there is no
module-level instance.
"""
from __future__ import annotations

import asyncio

from live_rekap.core.errors import AlreadyActive, ConnectFailed, NotActive
from live_rekap.core.logging import get_logger
from live_rekap.live import LiveConnector
from live_rekap.schemas.session import SessionInfoData
from live_rekap.services.broadcast_hub import BroadcastHub
from live_rekap.services.live_handler import LiveSessionHandler
from live_rekap.services.persistence import PersistenceClient
from live_rekap.services.username_resolver import UsernameResolver

logger = get_logger(__name__)


class _Reservation:
    """Claim on a session id held by one in-flight start."""

    def __init__(self) -> None:
        self.handler: LiveSessionHandler | None = None


class SessionRegistry:
    """Creates, tracks and tears down one handler per session.

    - ``start(session_id)``  → resolve handle, connect, register
    - ``end(session_id)``    → tear down, unregister, invalidate the handle cache
    - ``disconnect_all()``   → end everything (shutdown)

    A session id is reserved while its start is still resolving/connecting,
    so concurrent starts for the same id cannot both succeed. An entry is
    only stored once the connection is up.
    """

    def __init__(
        self,
        resolver: UsernameResolver,
        connector: LiveConnector,
        hub: BroadcastHub,
        persistence: PersistenceClient,
        *,
        room_info_interval: float,
        data_update_interval: float,
        teardown_timeout: float = 5.0,
    ) -> None:
        self.resolver = resolver
        self.connector = connector
        self.hub = hub
        self.persistence = persistence
        self.room_info_interval = room_info_interval
        self.data_update_interval = data_update_interval
        self.teardown_timeout = teardown_timeout
        self._handlers: dict[str, LiveSessionHandler] = {}
        # Starts in flight, one reservation per start call
        self._pending: dict[str, _Reservation] = {}

    def _create_handler(self, session_id: str, handle: str) -> LiveSessionHandler:
        return LiveSessionHandler(
            session_id,
            handle,
            self.connector,
            self.hub,
            self.persistence,
            room_info_interval=self.room_info_interval,
            data_update_interval=self.data_update_interval,
            teardown_timeout=self.teardown_timeout,
        )

    async def start(self, session_id: str) -> LiveSessionHandler:
        """Start monitoring a session.

        Raises:
            AlreadyActive: the session is already registered or starting.
            ResolutionFailed: the room handle could not be resolved.
            ConnectFailed: the live connection could not be opened.
        """
        if session_id in self._handlers or session_id in self._pending:
            raise AlreadyActive(session_id)
        reservation = _Reservation()
        self._pending[session_id] = reservation

        try:
            handle = await self.resolver.resolve(session_id)
            if self._pending.get(session_id) is not reservation:
                raise ConnectFailed(f"Start of session {session_id} was cancelled")

            handler = self._create_handler(session_id, handle)
            reservation.handler = handler
            await handler.connect()

            if self._pending.get(session_id) is not reservation:
                await handler.end()
                raise ConnectFailed(f"Start of session {session_id} was cancelled")
        finally:
            # A later start may have reserved the id after ours was cancelled
            if self._pending.get(session_id) is reservation:
                del self._pending[session_id]

        self._handlers[session_id] = handler
        logger.info(
            "Session started | session=%s | handle=@%s | room_id=%s",
            session_id, handle, handler.room_id,
        )
        return handler

    async def end(self, session_id: str) -> None:
        """Tear a session down.

        The entry is gone and the handle cache invalidated before the first
        await; background wind-down finishes afterwards.

        Raises:
            NotActive: no such session is registered.
        """
        handler = self._handlers.pop(session_id, None)
        if handler is None:
            raise NotActive(session_id)
        self.resolver.invalidate(session_id)
        await handler.end()
        logger.info("Session ended | session=%s", session_id)

    async def disconnect_all(self) -> None:
        """End every session, including starts still in flight."""
        handlers = list(self._handlers.items())
        self._handlers.clear()
        starting = [r.handler for r in self._pending.values() if r.handler is not None]
        self._pending.clear()

        for session_id, _ in handlers:
            self.resolver.invalidate(session_id)

        to_end = [handler for _, handler in handlers] + starting
        results = await asyncio.gather(*(handler.end() for handler in to_end), return_exceptions=True)
        for handler, result in zip(to_end, results):
            if isinstance(result, Exception):
                logger.error("Error ending session %s: %s", handler.session_id, result)
        logger.info("All sessions disconnected (%d)", len(to_end))

    def get(self, session_id: str) -> LiveSessionHandler:
        handler = self._handlers.get(session_id)
        if handler is None:
            raise NotActive(session_id)
        return handler

    def list_sessions(self) -> list[SessionInfoData]:
        return [handler.info() for handler in self._handlers.values()]

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
