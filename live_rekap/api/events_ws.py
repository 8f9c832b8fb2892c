"""
live_rekap.api.events_ws
~~~~~~~~~~~~~~~~~~~~~~~~

WebSocket broadcast channel.

``/ws/events`` streams every broadcast as ``{"event": name, "data": {...}}``
JSON frames; ``?session_id=`` narrows it to one session. Events:
roomConnected, memberUpdate, giftUpdate, userUpdate, likeUpdate,
followUpdate, shareUpdate, roomInfoUpdate, error.
"""
from __future__ import annotations

import asyncio
import uuid

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState

from live_rekap.api.deps import get_hub
from live_rekap.core.logging import get_logger
from live_rekap.services.broadcast_hub import BroadcastHub

logger = get_logger(__name__)

router: APIRouter = APIRouter()


@router.websocket("/ws/events")
async def websocket_events_endpoint(
    websocket: WebSocket,
    session_id: str | None = None,
    hub: BroadcastHub = Depends(get_hub),
) -> None:
    """Subscribe a client to the broadcast stream.

    The client never needs to send anything; incoming frames are read only
    to notice disconnects.

    Args:
        websocket: FastAPI WebSocket connection.
        session_id: optional filter, only this session's events are sent.
    """
    client_id = f"ws-{uuid.uuid4().hex[:8]}"
    # Subscribe before accepting so nothing published after the handshake is missed
    subscription = hub.subscribe(session_id)
    try:
        await websocket.accept()
        logger.info(
            "Subscriber connected | client=%s | filter=%s | subscribers=%d",
            client_id, session_id or "*", hub.subscriber_count,
        )

        async def receive_loop() -> None:
            try:
                while True:
                    await websocket.receive_text()
            except WebSocketDisconnect:
                pass
            except Exception as e:
                logger.error("Subscriber %s receive error: %s", client_id, e, exc_info=True)
            finally:
                # Ends send_loop
                subscription.close()

        async def send_loop() -> None:
            try:
                async for message in subscription:
                    await websocket.send_json(message)
                if websocket.client_state == WebSocketState.CONNECTED:
                    # Hub closed (shutdown)
                    await websocket.close()
            except Exception as e:
                logger.error("Subscriber %s send error: %s", client_id, e, exc_info=True)

        await asyncio.gather(receive_loop(), send_loop())
    finally:
        hub.unsubscribe(subscription)
        logger.info("Subscriber disconnected | client=%s | subscribers=%d", client_id, hub.subscriber_count)
