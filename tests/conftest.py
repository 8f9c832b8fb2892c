"""
tests.conftest
~~~~~~~~~~~~~~

Shared fixtures. The live transport and the rekap backend are replaced by
in-memory fakes, so the suite runs without network access.
"""
from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterator, Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

# ── Environment, before any live_rekap import ─────────────────────────
os.environ.setdefault("ENVIRONMENT", "test")

from live_rekap.core.errors import ConnectFailed  # noqa: E402
from live_rekap.schemas.live_events import LiveEvent, RoomMetadata  # noqa: E402
from live_rekap.services.broadcast_hub import BroadcastHub, BroadcastSubscription  # noqa: E402

ROOM_CREATE_TIME: int = 1_700_000_000


def make_metadata(**overrides: Any) -> RoomMetadata:
    fields: dict[str, Any] = {
        "create_time": ROOM_CREATE_TIME,
        "user_count": 321,
        "like_count": 4000,
        "hls_info": {"hls_pull_url": "https://pull.example/live.m3u8"},
    }
    fields.update(overrides)
    return RoomMetadata(**fields)


class FakeSubscription:
    """In-memory ``LiveSubscription``: tests push events with ``push()``."""

    def __init__(self, room_id: str) -> None:
        self.room_id = room_id
        self.fetch_room_info = AsyncMock(return_value=make_metadata())
        self.close_calls = 0
        self._queue: asyncio.Queue[LiveEvent | None] = asyncio.Queue()

    def push(self, event: LiveEvent) -> None:
        self._queue.put_nowait(event)

    async def events(self) -> AsyncIterator[LiveEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event

    async def close(self) -> None:
        self.close_calls += 1
        self._queue.put_nowait(None)


class FakeConnector:
    """In-memory ``LiveConnector``.

    Attributes:
        subscriptions: last subscription opened per handle.
        refused: handles whose connect fails.
        gate: when set, ``subscribe`` waits on it before connecting.
    """

    def __init__(self) -> None:
        self.subscriptions: dict[str, FakeSubscription] = {}
        self.refused: set[str] = set()
        self.gate: asyncio.Event | None = None
        self.calls: list[str] = []

    async def subscribe(self, handle: str) -> FakeSubscription:
        self.calls.append(handle)
        if self.gate is not None:
            await self.gate.wait()
        if handle in self.refused:
            raise ConnectFailed(f"Connection to @{handle} failed: user offline")
        subscription = FakeSubscription(room_id=f"room-{handle}")
        self.subscriptions[handle] = subscription
        return subscription


def drain(subscription: BroadcastSubscription) -> list[dict[str, Any]]:
    """Everything currently buffered for a broadcast subscriber."""
    messages = []
    while subscription.pending():
        message = subscription.get_nowait()
        if message is not None:
            messages.append(message)
    return messages


async def settle(delay: float = 0.01) -> None:
    """Let background tasks run."""
    await asyncio.sleep(delay)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


# ── Fixtures ──────────────────────────────────────────────────────────

@pytest.fixture()
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture()
def hub() -> BroadcastHub:
    return BroadcastHub(queue_size=64)


@pytest.fixture()
def listener(hub: BroadcastHub) -> BroadcastSubscription:
    """A subscriber that sees every broadcast."""
    return hub.subscribe()


@pytest.fixture()
def persistence() -> MagicMock:
    mock = MagicMock()
    mock.save = AsyncMock(return_value=True)
    return mock


@pytest.fixture()
def resolver() -> MagicMock:
    """Resolver mapping every session id ``X`` to handle ``user-X``."""
    mock = MagicMock()
    mock.resolve = AsyncMock(side_effect=lambda session_id: f"user-{session_id}")
    mock.invalidate = MagicMock()
    return mock
