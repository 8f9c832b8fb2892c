"""
tests.test_live_handler
~~~~~~~~~~~~~~~~~~~~~~~

LiveSessionHandler: connect, event callbacks, periodic tasks, teardown.
"""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import ROOM_CREATE_TIME, FakeConnector, drain, make_metadata, settle, wait_until

from live_rekap.core.errors import ConnectFailed
from live_rekap.schemas.live_events import (
    FollowEvent,
    GiftEvent,
    LikeEvent,
    LiveEventKind,
    MemberEvent,
    RoomUserEvent,
    ShareEvent,
    TransportErrorEvent,
)
from live_rekap.schemas.session import SessionSnapshot
from live_rekap.services.broadcast_hub import BroadcastHub
from live_rekap.services.live_handler import HandlerStatus, LiveSessionHandler

# Long enough that no tick fires unless a test asks for it
IDLE: float = 60.0
FAST: float = 0.01


def make_handler(
    connector: FakeConnector,
    hub: BroadcastHub,
    persistence: MagicMock,
    *,
    session_id: str = "A",
    handle: str = "alice",
    room_info_interval: float = IDLE,
    data_update_interval: float = IDLE,
) -> LiveSessionHandler:
    return LiveSessionHandler(
        session_id,
        handle,
        connector,
        hub,
        persistence,
        room_info_interval=room_info_interval,
        data_update_interval=data_update_interval,
        teardown_timeout=1.0,
        clock=lambda: ROOM_CREATE_TIME + 90.0,
    )


def events_named(messages: list[dict], name: str) -> list[dict]:
    return [m["data"] for m in messages if m["event"] == name]


# ── Connect ───────────────────────────────────────────────────────────

class TestConnect:

    @pytest.mark.asyncio
    async def test_connect_activates_and_announces(self, connector, hub, listener, persistence) -> None:
        handler = make_handler(connector, hub, persistence)
        assert handler.status is HandlerStatus.CONNECTING

        room_id = await handler.connect()

        assert room_id == "room-alice"
        assert handler.status is HandlerStatus.ACTIVE
        assert handler.state.room_info["roomId"] == "room-alice"
        assert drain(listener) == [
            {"event": "roomConnected", "data": {"roomId": "room-alice", "sessionId": "A"}},
        ]
        await handler.end()

    @pytest.mark.asyncio
    async def test_connect_failure_is_terminal(self, connector, hub, listener, persistence) -> None:
        connector.refused.add("alice")
        handler = make_handler(connector, hub, persistence)

        with pytest.raises(ConnectFailed):
            await handler.connect()

        assert handler.status is HandlerStatus.FAILED
        assert drain(listener) == []

    @pytest.mark.asyncio
    async def test_unexpected_connect_error_becomes_connect_failed(self, hub, persistence) -> None:
        connector = MagicMock()
        connector.subscribe = AsyncMock(side_effect=OSError("network unreachable"))
        handler = make_handler(connector, hub, persistence)

        with pytest.raises(ConnectFailed, match="network unreachable"):
            await handler.connect()
        assert handler.status is HandlerStatus.FAILED

    @pytest.mark.asyncio
    async def test_end_while_connecting_closes_subscription(self, connector, hub, listener, persistence) -> None:
        connector.gate = asyncio.Event()
        handler = make_handler(connector, hub, persistence)
        connecting = asyncio.create_task(handler.connect())
        await settle()

        await handler.end()
        connector.gate.set()

        with pytest.raises(ConnectFailed):
            await connecting
        assert connector.subscriptions["alice"].close_calls == 1
        assert drain(listener) == []

    @pytest.mark.asyncio
    async def test_background_steps_without_subscription_are_noops(self, connector, hub, listener, persistence) -> None:
        handler = make_handler(connector, hub, persistence)

        await handler._consume_events()
        await handler._refresh_room_info()

        assert handler.status is HandlerStatus.CONNECTING
        assert handler.state.room_info == {}
        assert drain(listener) == []


# ── Event callbacks ───────────────────────────────────────────────────

class TestEvents:

    @pytest.mark.asyncio
    async def test_dispatch_covers_every_kind(self, connector, hub, persistence) -> None:
        handler = make_handler(connector, hub, persistence)
        assert set(handler._dispatch) == set(LiveEventKind)

    @pytest.mark.asyncio
    async def test_events_from_stream_update_state(self, connector, hub, listener, persistence) -> None:
        handler = make_handler(connector, hub, persistence)
        await handler.connect()
        drain(listener)
        subscription = connector.subscriptions["alice"]

        subscription.push(MemberEvent(members=[{"user": "u1"}]))
        subscription.push(GiftEvent(gifts=[{"gift": "rose"}]))
        subscription.push(RoomUserEvent(top_viewers={"7": {"nickname": "top"}}, data={"total": 5}))
        subscription.push(LikeEvent(like_count=15, data={"count": 15}))
        subscription.push(FollowEvent())
        subscription.push(ShareEvent())
        await wait_until(lambda: handler.state.share_count == 1)

        state = handler.state
        assert state.members == [{"user": "u1"}]
        assert state.gifts == [{"gift": "rose"}]
        assert state.users == {"7": {"nickname": "top"}}
        assert state.room_info["totalLikeCount"] == 15
        assert state.follow_count == 1

        messages = drain(listener)
        assert [m["event"] for m in messages] == [
            "memberUpdate", "giftUpdate", "userUpdate", "likeUpdate", "followUpdate", "shareUpdate",
        ]
        assert all(m["data"]["sessionId"] == "A" for m in messages)
        assert events_named(messages, "memberUpdate")[0]["data"] == [{"user": "u1"}]
        assert events_named(messages, "userUpdate")[0]["data"] == {"total": 5}
        assert events_named(messages, "likeUpdate")[0]["data"] == {"count": 15}
        await handler.end()

    @pytest.mark.asyncio
    async def test_members_and_gifts_are_replaced(self, connector, hub, persistence) -> None:
        handler = make_handler(connector, hub, persistence)
        await handler.connect()

        await handler.handle_event(MemberEvent(members=[{"user": "u1"}]))
        await handler.handle_event(MemberEvent(members=[{"user": "u2"}]))
        await handler.handle_event(GiftEvent(gifts=[{"gift": "rose"}]))
        await handler.handle_event(GiftEvent(gifts=[{"gift": "lion"}]))

        assert handler.state.members == [{"user": "u2"}]
        assert handler.state.gifts == [{"gift": "lion"}]
        await handler.end()

    @pytest.mark.asyncio
    async def test_follow_and_share_counts_are_broadcast(self, connector, hub, listener, persistence) -> None:
        handler = make_handler(connector, hub, persistence)
        await handler.connect()
        drain(listener)

        await handler.handle_event(FollowEvent())
        await handler.handle_event(FollowEvent())
        await handler.handle_event(ShareEvent())

        messages = drain(listener)
        assert events_named(messages, "followUpdate") == [
            {"count": 1, "sessionId": "A"},
            {"count": 2, "sessionId": "A"},
        ]
        assert events_named(messages, "shareUpdate") == [{"count": 1, "sessionId": "A"}]
        await handler.end()

    @pytest.mark.asyncio
    async def test_likes_accumulate(self, connector, hub, persistence) -> None:
        handler = make_handler(connector, hub, persistence)
        await handler.connect()

        await handler.handle_event(LikeEvent(like_count=3))
        await handler.handle_event(LikeEvent(like_count=4))

        assert handler.state.room_info["totalLikeCount"] == 7
        await handler.end()

    @pytest.mark.asyncio
    async def test_transport_error_is_broadcast_not_fatal(self, connector, hub, listener, persistence) -> None:
        handler = make_handler(connector, hub, persistence)
        await handler.connect()
        drain(listener)

        await handler.handle_event(TransportErrorEvent(message="Connection error occurred"))
        await handler.handle_event(FollowEvent())

        assert handler.status is HandlerStatus.ACTIVE
        messages = drain(listener)
        assert messages[0] == {
            "event": "error",
            "data": {"message": "Connection error occurred", "sessionId": "A"},
        }
        assert handler.state.follow_count == 1
        await handler.end()

    @pytest.mark.asyncio
    async def test_broken_stream_reports_error_and_stays_active(self, hub, listener, persistence) -> None:
        class BrokenSubscription:
            room_id = "room-broken"
            fetch_room_info = AsyncMock(return_value=make_metadata())
            close = AsyncMock()

            async def events(self):
                raise RuntimeError("socket reset")
                yield  # pragma: no cover

        connector = MagicMock()
        connector.subscribe = AsyncMock(return_value=BrokenSubscription())
        handler = make_handler(connector, hub, persistence)
        await handler.connect()
        drain(listener)

        await wait_until(lambda: listener.pending() > 0)

        assert handler.status is HandlerStatus.ACTIVE
        errors = events_named(drain(listener), "error")
        assert "socket reset" in errors[0]["message"]
        await handler.end()

    @pytest.mark.asyncio
    async def test_stream_ending_while_active_is_reported(self, connector, hub, listener, persistence) -> None:
        handler = make_handler(connector, hub, persistence)
        await handler.connect()
        drain(listener)

        await connector.subscriptions["alice"].close()
        await wait_until(lambda: listener.pending() > 0)

        assert handler.status is HandlerStatus.ACTIVE
        errors = events_named(drain(listener), "error")
        assert errors[0]["message"] == "Live event stream ended"
        await handler.end()

    @pytest.mark.asyncio
    async def test_sessions_are_isolated(self, connector, hub, listener, persistence) -> None:
        handler_a = make_handler(connector, hub, persistence, session_id="A", handle="alice")
        handler_b = make_handler(connector, hub, persistence, session_id="B", handle="bob")
        await handler_a.connect()
        await handler_b.connect()
        drain(listener)

        connector.subscriptions["alice"].push(FollowEvent())
        connector.subscriptions["alice"].push(LikeEvent(like_count=10))
        await wait_until(lambda: "totalLikeCount" in handler_a.state.room_info)

        assert handler_a.state.follow_count == 1
        assert handler_b.state.follow_count == 0
        assert "totalLikeCount" not in handler_b.state.room_info
        assert handler_a.state is not handler_b.state
        assert {m["data"]["sessionId"] for m in drain(listener)} == {"A"}
        await handler_a.end()
        await handler_b.end()


# ── Periodic tasks ────────────────────────────────────────────────────

class TestPeriodicTasks:

    @pytest.mark.asyncio
    async def test_room_info_refresh(self, connector, hub, listener, persistence) -> None:
        handler = make_handler(connector, hub, persistence, room_info_interval=FAST)
        await handler.connect()
        subscription = connector.subscriptions["alice"]

        await wait_until(lambda: subscription.fetch_room_info.await_count >= 1)
        await settle()

        updates = events_named(drain(listener), "roomInfoUpdate")
        assert updates[0] == {
            "roomInfo": {
                "roomId": "room-alice",
                "streamDuration": 90,
                "viewerCount": 321,
                "totalLikeCount": 4000,
            },
            "sessionId": "A",
        }
        assert handler.state.hls_info == {"hls_pull_url": "https://pull.example/live.m3u8"}
        await handler.end()

    @pytest.mark.asyncio
    async def test_refresh_failures_do_not_stop_ticks(self, connector, hub, listener, persistence) -> None:
        """After N failing ticks, tick N+1 still runs and succeeds."""
        handler = make_handler(connector, hub, persistence, room_info_interval=FAST)
        await handler.connect()
        subscription = connector.subscriptions["alice"]
        failures = 3
        subscription.fetch_room_info.side_effect = (
            [RuntimeError("upstream 503")] * failures + [make_metadata()] * 100
        )

        await wait_until(lambda: subscription.fetch_room_info.await_count > failures)
        await settle()

        messages = drain(listener)
        errors = events_named(messages, "error")
        assert len(errors) >= failures
        assert "Error updating room info" in errors[0]["message"]
        assert events_named(messages, "roomInfoUpdate")
        assert handler.status is HandlerStatus.ACTIVE
        await handler.end()

    @pytest.mark.asyncio
    async def test_snapshot_is_persisted(self, connector, hub, persistence) -> None:
        handler = make_handler(connector, hub, persistence, data_update_interval=FAST)
        await handler.connect()
        await handler.handle_event(FollowEvent())

        await wait_until(lambda: persistence.save.await_count >= 1)

        session_id, snapshot = persistence.save.await_args.args
        assert session_id == "A"
        assert isinstance(snapshot, SessionSnapshot)
        assert snapshot.follow_count == 1
        assert snapshot.room_info["roomId"] == "room-alice"
        await handler.end()

    @pytest.mark.asyncio
    async def test_persist_failure_keeps_ticking(self, connector, hub, persistence) -> None:
        persistence.save = AsyncMock(return_value=False)
        handler = make_handler(connector, hub, persistence, data_update_interval=FAST)
        await handler.connect()

        await wait_until(lambda: persistence.save.await_count >= 3)

        assert handler.status is HandlerStatus.ACTIVE
        await handler.end()


# ── Teardown ──────────────────────────────────────────────────────────

class TestEnd:

    @pytest.mark.asyncio
    async def test_end_stops_everything(self, connector, hub, persistence) -> None:
        handler = make_handler(
            connector, hub, persistence, room_info_interval=FAST, data_update_interval=FAST,
        )
        await handler.connect()
        tasks = list(handler._tasks)

        await handler.end()

        assert handler.status is HandlerStatus.ENDED
        assert all(task.done() for task in tasks)
        assert connector.subscriptions["alice"].close_calls == 1

    @pytest.mark.asyncio
    async def test_end_is_idempotent(self, connector, hub, persistence) -> None:
        handler = make_handler(connector, hub, persistence)
        await handler.connect()

        await handler.end()
        await handler.end()

        assert connector.subscriptions["alice"].close_calls == 1

    @pytest.mark.asyncio
    async def test_no_broadcast_after_end(self, connector, hub, listener, persistence) -> None:
        handler = make_handler(connector, hub, persistence)
        await handler.connect()
        await handler.end()
        drain(listener)

        await handler.handle_event(FollowEvent())
        await handler.handle_event(TransportErrorEvent())

        assert drain(listener) == []

    @pytest.mark.asyncio
    async def test_in_flight_tick_is_silenced_by_end(self, connector, hub, listener, persistence) -> None:
        """A refresh that is waiting on the network when end() runs emits nothing."""
        handler = make_handler(connector, hub, persistence, room_info_interval=FAST)
        await handler.connect()
        subscription = connector.subscriptions["alice"]
        release = asyncio.Event()
        started = asyncio.Event()

        async def slow_fetch():
            started.set()
            await release.wait()
            return make_metadata()

        subscription.fetch_room_info.side_effect = slow_fetch
        await asyncio.wait_for(started.wait(), timeout=2.0)
        drain(listener)

        await handler.end()
        release.set()
        await settle(0.05)

        assert drain(listener) == []

    @pytest.mark.asyncio
    async def test_end_after_tasks_finished(self, connector, hub, persistence) -> None:
        """Tasks that already completed on their own are tolerated."""
        handler = make_handler(connector, hub, persistence)
        await handler.connect()
        await connector.subscriptions["alice"].close()  # stream ends, consumer task finishes
        await settle()

        await handler.end()

        assert handler.status is HandlerStatus.ENDED
