"""
live_rekap.services.session_state
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Per-session telemetry aggregate.

One ``SessionState`` belongs to exactly one session and is only mutated by
that session's handler, while holding ``lock``.
"""
from __future__ import annotations

import asyncio
from typing import Any

from live_rekap.schemas.live_events import RoomMetadata
from live_rekap.schemas.session import SessionSnapshot


class SessionState:
    """Mutable telemetry of one monitored session.

    Attributes:
        room_info: roomId, streamDuration, viewerCount, totalLikeCount.
        hls_info: playback endpoints, replaced on every metadata refresh.
        members: latest join events (replaced, not accumulated).
        users: top viewers keyed by viewer id (replaced).
        gifts: latest gift events (replaced, not accumulated).
        follow_count: follows since the session started.
        share_count: shares since the session started.
        lock: serialises mutations from event callbacks and periodic ticks.
    """

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.reset()

    def reset(self) -> None:
        self.room_info: dict[str, Any] = {}
        self.hls_info: dict[str, Any] = {}
        self.members: list[dict[str, Any]] = []
        self.users: dict[str, Any] = {}
        self.gifts: list[dict[str, Any]] = []
        self.follow_count: int = 0
        self.share_count: int = 0

    def add_likes(self, delta: int) -> int:
        self.room_info["totalLikeCount"] = self.room_info.get("totalLikeCount", 0) + delta
        return self.room_info["totalLikeCount"]

    def increment_follow(self) -> int:
        self.follow_count += 1
        return self.follow_count

    def increment_share(self) -> int:
        self.share_count += 1
        return self.share_count

    def apply_room_metadata(self, meta: RoomMetadata, now: float) -> dict[str, Any]:
        """Recompute the derived room fields from a metadata fetch.

        ``roomId`` set at connect time is kept.

        Args:
            meta: the fetched metadata.
            now: current unix time in seconds.

        Returns:
            The updated ``room_info``.
        """
        self.room_info.update(
            streamDuration=int(now - meta.create_time),
            viewerCount=meta.user_count,
            totalLikeCount=meta.like_count,
        )
        self.hls_info = dict(meta.hls_info)
        return self.room_info

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            room_info=dict(self.room_info),
            hls_info=dict(self.hls_info),
            members=list(self.members),
            users=dict(self.users),
            gifts=list(self.gifts),
            follow_count=self.follow_count,
            share_count=self.share_count,
        )
