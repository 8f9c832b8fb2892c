"""
live_rekap.schemas
~~~~~~~~~~~~~~~~~~
Pydantic schemas and models for the API, the live transport and the rekap backend.
"""
from live_rekap.schemas.api_response import ApiResponse
from live_rekap.schemas.live_events import (
    FollowEvent,
    GiftEvent,
    LikeEvent,
    LiveEvent,
    LiveEventKind,
    MemberEvent,
    RoomMetadata,
    RoomUserEvent,
    ShareEvent,
    TransportErrorEvent,
)
from live_rekap.schemas.session import SessionInfoData, SessionSnapshot, SessionStartData

# Resolve forward references in the generic envelope
ApiResponse.model_rebuild()
