"""
live_rekap.services.live_handler
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

One monitored session: a live subscription, its ``SessionState`` and two
periodic tasks (room metadata refresh, snapshot persistence).

Lifecycle: ``connecting → active → ended`` (or ``connecting → failed``).
Every mutation and broadcast happens under the state lock and only while
the handler is active, so once ``end()`` flips the status nothing else is
emitted for the session, even by a tick that was mid-flight.
"""
from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from enum import Enum

from live_rekap.core.errors import ConnectFailed, TickFailure
from live_rekap.core.logging import get_logger, session_id_ctx_var
from live_rekap.live import LiveConnector, LiveSubscription
from live_rekap.schemas.live_events import (
    FollowEvent,
    GiftEvent,
    LikeEvent,
    LiveEvent,
    LiveEventKind,
    MemberEvent,
    RoomUserEvent,
    ShareEvent,
    TransportErrorEvent,
)
from live_rekap.schemas.session import SessionInfoData
from live_rekap.services.broadcast_hub import BroadcastHub
from live_rekap.services.persistence import PersistenceClient
from live_rekap.services.session_state import SessionState

logger = get_logger(__name__)


class HandlerStatus(str, Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    FAILED = "failed"
    ENDED = "ended"


class LiveSessionHandler:
    """Owns everything that runs on behalf of one session.

    Attributes:
        session_id: schedule id this handler serves.
        handle: resolved room handle.
        room_id: live room id, known once connected.
        state: the session's telemetry, owned exclusively by this handler.
        status: current lifecycle stage.
    """

    def __init__(
        self,
        session_id: str,
        handle: str,
        connector: LiveConnector,
        hub: BroadcastHub,
        persistence: PersistenceClient,
        *,
        room_info_interval: float,
        data_update_interval: float,
        teardown_timeout: float = 5.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.session_id = session_id
        self.handle = handle
        self.connector = connector
        self.hub = hub
        self.persistence = persistence
        self.room_info_interval = room_info_interval
        self.data_update_interval = data_update_interval
        self.teardown_timeout = teardown_timeout
        self._clock = clock

        self.state = SessionState()
        self.status = HandlerStatus.CONNECTING
        self.room_id: str | None = None
        self.subscription: LiveSubscription | None = None
        self._tasks: list[asyncio.Task] = []

        self._dispatch: dict[LiveEventKind, Callable[..., None]] = {
            LiveEventKind.MEMBER: self._on_member,
            LiveEventKind.GIFT: self._on_gift,
            LiveEventKind.ROOM_USER: self._on_room_user,
            LiveEventKind.LIKE: self._on_like,
            LiveEventKind.FOLLOW: self._on_follow,
            LiveEventKind.SHARE: self._on_share,
            LiveEventKind.ERROR: self._on_transport_error,
        }

    @property
    def is_active(self) -> bool:
        return self.status is HandlerStatus.ACTIVE

    def info(self) -> SessionInfoData:
        return SessionInfoData(
            session_id=self.session_id,
            handle=self.handle,
            room_id=self.room_id,
            status=self.status.value,
        )

    # ── Lifecycle ─────────────────────────────────────────────────────

    async def connect(self) -> str:
        """Subscribe to the room and start the background tasks.

        Returns:
            The live room id.

        Raises:
            ConnectFailed: the subscription could not be opened, or the
                handler was ended while connecting.
        """
        try:
            subscription = await self.connector.subscribe(self.handle)
        except ConnectFailed as e:
            self.status = HandlerStatus.FAILED
            logger.error("Connection failed for session %s: %s", self.session_id, e)
            raise
        except Exception as e:
            self.status = HandlerStatus.FAILED
            logger.error("Connection failed for session %s: %s", self.session_id, e, exc_info=True)
            raise ConnectFailed(f"Connection failed for session {self.session_id}: {e}") from e

        if self.status is not HandlerStatus.CONNECTING:
            # Ended while the subscription was being opened
            await subscription.close()
            raise ConnectFailed(f"Session {self.session_id} was ended while connecting")

        self.subscription = subscription
        self.room_id = subscription.room_id
        async with self.state.lock:
            self.state.room_info["roomId"] = self.room_id
            self.status = HandlerStatus.ACTIVE
            self.hub.publish("roomConnected", {"roomId": self.room_id}, self.session_id)
        logger.info("Connected to room_id %s for session %s", self.room_id, self.session_id)

        # Tasks copy the current context, so their log lines carry the session id
        token = session_id_ctx_var.set(self.session_id)
        try:
            self._tasks = [
                asyncio.create_task(
                    self._consume_events(), name=f"session:{self.session_id}:events",
                ),
                asyncio.create_task(
                    self._run_periodic("room-info", self.room_info_interval, self._refresh_room_info),
                    name=f"session:{self.session_id}:room-info",
                ),
                asyncio.create_task(
                    self._run_periodic("snapshot", self.data_update_interval, self._persist_snapshot),
                    name=f"session:{self.session_id}:snapshot",
                ),
            ]
        finally:
            session_id_ctx_var.reset(token)
        return self.room_id

    async def end(self) -> None:
        """Stop the subscription and both periodic tasks. A second call is a no-op."""
        if self.status is HandlerStatus.ENDED:
            return
        # Flip first: anything still running checks this before mutating
        self.status = HandlerStatus.ENDED

        current = asyncio.current_task()
        tasks = [task for task in self._tasks if task is not current]
        for task in tasks:
            task.cancel()
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=self.teardown_timeout)
            if pending:
                logger.warning(
                    "%d task(s) of session %s still winding down after %.1fs",
                    len(pending), self.session_id, self.teardown_timeout,
                )
        self._tasks = []

        if self.subscription is not None:
            try:
                await self.subscription.close()
            except Exception as e:
                logger.warning("Error closing live connection for session %s: %s", self.session_id, e)

        self.state.reset()
        logger.info("Disconnected live connection for session %s", self.session_id)

    # ── Event stream ──────────────────────────────────────────────────

    async def _consume_events(self) -> None:
        if self.subscription is None:
            return
        try:
            async for event in self.subscription.events():
                await self.handle_event(event)
        except Exception as e:
            message = f"Live event stream failed: {e}"
        else:
            if not self.is_active:
                return
            message = "Live event stream ended"
        # Reported, not fatal: the session stays registered until end()
        await self.handle_event(TransportErrorEvent(message=message))

    async def handle_event(self, event: LiveEvent) -> None:
        """Apply one live event to the state and broadcast it (active only)."""
        async with self.state.lock:
            if not self.is_active:
                return
            self._dispatch[event.kind](event)

    def _on_member(self, event: MemberEvent) -> None:
        self.state.members = list(event.members)
        self.hub.publish("memberUpdate", {"data": event.members}, self.session_id)

    def _on_gift(self, event: GiftEvent) -> None:
        self.state.gifts = list(event.gifts)
        self.hub.publish("giftUpdate", {"data": event.gifts}, self.session_id)

    def _on_room_user(self, event: RoomUserEvent) -> None:
        self.state.users = dict(event.top_viewers)
        self.hub.publish("userUpdate", {"data": event.data}, self.session_id)

    def _on_like(self, event: LikeEvent) -> None:
        self.state.add_likes(event.like_count)
        self.hub.publish("likeUpdate", {"data": event.data}, self.session_id)

    def _on_follow(self, event: FollowEvent) -> None:
        count = self.state.increment_follow()
        self.hub.publish("followUpdate", {"count": count}, self.session_id)

    def _on_share(self, event: ShareEvent) -> None:
        count = self.state.increment_share()
        self.hub.publish("shareUpdate", {"count": count}, self.session_id)

    def _on_transport_error(self, event: TransportErrorEvent) -> None:
        # Surfaced only; the operator decides whether to end the session
        logger.error("Live connection error for session %s: %s", self.session_id, event.message)
        self.hub.publish("error", {"message": event.message}, self.session_id)

    # ── Periodic tasks ────────────────────────────────────────────────

    async def _run_periodic(
        self, name: str, interval: float, tick: Callable[[], Awaitable[None]],
    ) -> None:
        """Run ``tick`` every ``interval`` seconds until the session ends.

        A failing tick is logged and broadcast; the next tick still runs.
        """
        while True:
            await asyncio.sleep(interval)
            if not self.is_active:
                return
            try:
                await tick()
            except Exception as e:
                failure = e if isinstance(e, TickFailure) else TickFailure(f"{name} tick failed: {e}")
                logger.error("%s for session %s", failure.message, self.session_id)
                async with self.state.lock:
                    if self.is_active:
                        self.hub.publish("error", {"message": failure.message}, self.session_id)

    async def _refresh_room_info(self) -> None:
        if self.subscription is None:
            return
        try:
            meta = await self.subscription.fetch_room_info()
        except Exception as e:
            raise TickFailure(f"Error updating room info: {e}") from e

        async with self.state.lock:
            if not self.is_active:
                return
            room_info = self.state.apply_room_metadata(meta, self._clock())
            self.hub.publish("roomInfoUpdate", {"roomInfo": dict(room_info)}, self.session_id)

    async def _persist_snapshot(self) -> None:
        async with self.state.lock:
            if not self.is_active:
                return
            snapshot = self.state.snapshot()
        await self.persistence.save(self.session_id, snapshot)
