"""
live_rekap.live.tiktok
~~~~~~~~~~~~~~~~~~~~~~

TikTok LIVE transport built on the ``TikTokLive`` client.

Each subscription owns one ``TikTokLiveClient``. Listener callbacks only
translate the library's events into ``LiveEvent`` values and queue them;
the session handler consumes them through ``events()``.
"""
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any

from TikTokLive import TikTokLiveClient
from TikTokLive.events import (
    DisconnectEvent,
    FollowEvent as TikTokFollowEvent,
    GiftEvent as TikTokGiftEvent,
    JoinEvent,
    LikeEvent as TikTokLikeEvent,
    RoomUserSeqEvent,
    ShareEvent as TikTokShareEvent,
)

from live_rekap.core.errors import ConnectFailed
from live_rekap.core.logging import get_logger
from live_rekap.schemas.live_events import (
    FollowEvent,
    GiftEvent,
    LikeEvent,
    LiveEvent,
    MemberEvent,
    RoomMetadata,
    RoomUserEvent,
    ShareEvent,
    TransportErrorEvent,
)

logger = get_logger(__name__)

_EVENT_BUFFER: int = 1000


def _payload(event: Any) -> dict[str, Any]:
    """Plain-dict view of a protobuf-backed TikTokLive event."""
    to_dict = getattr(event, "to_dict", None)
    return to_dict() if callable(to_dict) else {}


def _top_viewers(event: RoomUserSeqEvent) -> dict[str, dict[str, Any]]:
    viewers: dict[str, dict[str, Any]] = {}
    for contributor in getattr(event, "ranks_list", None) or []:
        user = getattr(contributor, "user", None)
        if user is None:
            continue
        viewers[str(getattr(user, "id", ""))] = {
            "uniqueId": getattr(user, "unique_id", None),
            "nickname": getattr(user, "nickname", None),
            "rank": getattr(contributor, "rank", None),
            "coinCount": getattr(contributor, "score", None),
        }
    return viewers


def _room_metadata(info: dict[str, Any]) -> RoomMetadata:
    stream_url = info.get("stream_url") or {}
    return RoomMetadata(
        create_time=info["create_time"],
        user_count=info.get("user_count", 0),
        like_count=info.get("like_count", 0),
        hls_info={
            "hls_pull_url": stream_url.get("hls_pull_url"),
            "hls_pull_url_map": stream_url.get("hls_pull_url_map", {}),
        },
    )


class TikTokLiveSubscription:
    """One connected ``TikTokLiveClient`` exposed as a ``LiveSubscription``."""

    def __init__(self, client: TikTokLiveClient) -> None:
        self._client = client
        self._queue: asyncio.Queue[LiveEvent | None] = asyncio.Queue(maxsize=_EVENT_BUFFER)
        self._closed = False
        self._task: asyncio.Task | None = None
        self.room_id: str = ""

        client.add_listener(JoinEvent, self._on_join)
        client.add_listener(TikTokGiftEvent, self._on_gift)
        client.add_listener(RoomUserSeqEvent, self._on_room_user)
        client.add_listener(TikTokLikeEvent, self._on_like)
        client.add_listener(TikTokFollowEvent, self._on_follow)
        client.add_listener(TikTokShareEvent, self._on_share)
        client.add_listener(DisconnectEvent, self._on_disconnect)

    async def start(self, timeout: float) -> None:
        self._task = await asyncio.wait_for(
            self._client.start(fetch_room_info=True), timeout=timeout,
        )
        self._task.add_done_callback(self._on_task_done)
        self.room_id = str(self._client.room_id)

    # ── LiveSubscription ──────────────────────────────────────────────

    async def events(self) -> AsyncIterator[LiveEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event

    async def fetch_room_info(self) -> RoomMetadata:
        info: dict[str, Any] = await self._client.web.fetch_room_info()
        return _room_metadata(info)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._client.disconnect()
        except Exception as e:
            logger.warning("TikTok disconnect failed: %s", e)
        finally:
            self._emit(None)

    # ── Listeners ─────────────────────────────────────────────────────

    def _emit(self, event: LiveEvent | None) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("Live event buffer full, dropping %s", type(event).__name__)

    async def _on_join(self, event: JoinEvent) -> None:
        self._emit(MemberEvent(members=[_payload(event)]))

    async def _on_gift(self, event: TikTokGiftEvent) -> None:
        self._emit(GiftEvent(gifts=[_payload(event)]))

    async def _on_room_user(self, event: RoomUserSeqEvent) -> None:
        self._emit(RoomUserEvent(top_viewers=_top_viewers(event), data=_payload(event)))

    async def _on_like(self, event: TikTokLikeEvent) -> None:
        self._emit(LikeEvent(like_count=getattr(event, "count", 0) or 0, data=_payload(event)))

    async def _on_follow(self, event: TikTokFollowEvent) -> None:
        self._emit(FollowEvent(data=_payload(event)))

    async def _on_share(self, event: TikTokShareEvent) -> None:
        self._emit(ShareEvent(data=_payload(event)))

    async def _on_disconnect(self, event: DisconnectEvent) -> None:
        if not self._closed:
            self._emit(TransportErrorEvent(message="Live connection closed by remote"))

    def _on_task_done(self, task: asyncio.Task) -> None:
        if self._closed or task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("TikTok connection error: %s", exc)
            self._emit(TransportErrorEvent(message="Connection error occurred"))


class TikTokConnector:
    """``LiveConnector`` that opens one ``TikTokLiveClient`` per room handle."""

    def __init__(self, connect_timeout: float) -> None:
        self.connect_timeout = connect_timeout

    async def subscribe(self, handle: str) -> TikTokLiveSubscription:
        subscription = TikTokLiveSubscription(TikTokLiveClient(unique_id=handle))
        try:
            await subscription.start(self.connect_timeout)
        except asyncio.TimeoutError as e:
            await subscription.close()
            raise ConnectFailed(f"Connection to @{handle} timed out") from e
        except Exception as e:
            await subscription.close()
            raise ConnectFailed(f"Connection to @{handle} failed: {e}") from e
        logger.info("Connected to @%s | room_id=%s", handle, subscription.room_id)
        return subscription
