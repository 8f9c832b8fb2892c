"""
live_rekap.services.broadcast_hub
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Fan-out of session events to every connected subscriber.

``publish()`` never awaits: each subscriber has its own bounded buffer and
a full buffer drops the message for that subscriber only, so a slow
WebSocket can never stall event processing of any session.
"""
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any

from live_rekap.core.logging import get_logger

logger = get_logger(__name__)


class BroadcastSubscription:
    """One subscriber's buffered view of the broadcast stream.

    Attributes:
        session_id: only deliver events of this session; ``None`` for all.
        dropped: messages discarded because the buffer was full.
    """

    def __init__(self, maxsize: int, session_id: str | None = None) -> None:
        self.session_id = session_id
        self.dropped = 0
        self._queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue(maxsize=maxsize)

    def offer(self, message: dict[str, Any]) -> bool:
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped += 1
            return False
        return True

    def close(self) -> None:
        # Make room for the end marker so close always gets through
        while self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    async def get(self) -> dict[str, Any] | None:
        """Next message, or ``None`` once the hub has closed this subscription."""
        return await self._queue.get()

    def get_nowait(self) -> dict[str, Any] | None:
        return self._queue.get_nowait()

    def pending(self) -> int:
        return self._queue.qsize()

    async def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        while True:
            message = await self.get()
            if message is None:
                return
            yield message


class BroadcastHub:
    """Publishes named events tagged with their session id.

    Every message has the shape ``{"event": name, "data": {..., "sessionId": id}}``.

    Attributes:
        queue_size: buffer size given to each new subscriber.
    """

    def __init__(self, queue_size: int = 256) -> None:
        self.queue_size = queue_size
        self._subscribers: set[BroadcastSubscription] = set()

    def subscribe(self, session_id: str | None = None) -> BroadcastSubscription:
        subscription = BroadcastSubscription(self.queue_size, session_id)
        self._subscribers.add(subscription)
        return subscription

    def unsubscribe(self, subscription: BroadcastSubscription) -> None:
        self._subscribers.discard(subscription)

    def publish(self, event: str, payload: dict[str, Any], session_id: str) -> None:
        """Deliver one event to every current subscriber without waiting on any of them."""
        message = {"event": event, "data": {**payload, "sessionId": session_id}}
        for subscription in list(self._subscribers):
            if subscription.session_id is not None and subscription.session_id != session_id:
                continue
            if not subscription.offer(message):
                logger.warning(
                    "Subscriber buffer full, dropped %s for session %s (%d dropped so far)",
                    event, session_id, subscription.dropped,
                )

    def close(self) -> None:
        """End every subscriber stream. Called at shutdown."""
        for subscription in list(self._subscribers):
            subscription.close()
        self._subscribers.clear()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
