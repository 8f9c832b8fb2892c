from fastapi import Request, WebSocket

from live_rekap.services.broadcast_hub import BroadcastHub
from live_rekap.services.session_registry import SessionRegistry

def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry

def get_hub(websocket: WebSocket) -> BroadcastHub:
    return websocket.app.state.hub
