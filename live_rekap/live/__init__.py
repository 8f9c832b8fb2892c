"""
live_rekap.live
~~~~~~~~~~~~~~~

Live-connection transport contract.

The core only depends on these two protocols; ``live_rekap.live.tiktok``
provides the production implementation.
"""
from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol

from live_rekap.schemas.live_events import LiveEvent, RoomMetadata


class LiveSubscription(Protocol):
    """An open subscription to one room's live event stream."""

    room_id: str

    def events(self) -> AsyncIterator[LiveEvent]:
        """Yield events until the subscription is closed."""
        ...

    async def fetch_room_info(self) -> RoomMetadata:
        """Fetch current room metadata."""
        ...

    async def close(self) -> None:
        """Close the subscription. Safe to call more than once."""
        ...


class LiveConnector(Protocol):
    async def subscribe(self, handle: str) -> LiveSubscription:
        """Open a subscription for a room handle.

        Raises:
            ConnectFailed: the connection was refused or timed out.
        """
        ...
