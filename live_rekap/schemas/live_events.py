"""
live_rekap.schemas.live_events
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Typed events coming out of a live subscription.

The set is closed: ``LiveEvent`` is a discriminated union on ``kind`` and
``LiveEventKind`` lists every member, so a consumer's dispatch table can be
checked for completeness.
"""
from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field


class LiveEventKind(str, Enum):
    MEMBER = "member"
    GIFT = "gift"
    ROOM_USER = "roomUser"
    LIKE = "like"
    FOLLOW = "follow"
    SHARE = "share"
    ERROR = "error"


class MemberEvent(BaseModel):
    """Viewers who joined since the previous member event."""

    kind: Literal[LiveEventKind.MEMBER] = LiveEventKind.MEMBER
    members: list[dict[str, Any]] = Field(default_factory=list)


class GiftEvent(BaseModel):
    """Gifts sent since the previous gift event."""

    kind: Literal[LiveEventKind.GIFT] = LiveEventKind.GIFT
    gifts: list[dict[str, Any]] = Field(default_factory=list)


class RoomUserEvent(BaseModel):
    """Viewer ranking update."""

    kind: Literal[LiveEventKind.ROOM_USER] = LiveEventKind.ROOM_USER
    top_viewers: dict[str, dict[str, Any]] = Field(
        default_factory=dict, description="Viewer id → viewer metadata",
    )
    data: dict[str, Any] = Field(default_factory=dict, description="Raw event payload")


class LikeEvent(BaseModel):
    kind: Literal[LiveEventKind.LIKE] = LiveEventKind.LIKE
    like_count: int = Field(default=0, ge=0, description="Likes added by this event")
    data: dict[str, Any] = Field(default_factory=dict, description="Raw event payload")


class FollowEvent(BaseModel):
    kind: Literal[LiveEventKind.FOLLOW] = LiveEventKind.FOLLOW
    data: dict[str, Any] = Field(default_factory=dict)


class ShareEvent(BaseModel):
    kind: Literal[LiveEventKind.SHARE] = LiveEventKind.SHARE
    data: dict[str, Any] = Field(default_factory=dict)


class TransportErrorEvent(BaseModel):
    """The live connection reported a failure; the session is not ended."""

    kind: Literal[LiveEventKind.ERROR] = LiveEventKind.ERROR
    message: str = Field(default="Connection error occurred")


LiveEvent = Annotated[
    Union[
        MemberEvent,
        GiftEvent,
        RoomUserEvent,
        LikeEvent,
        FollowEvent,
        ShareEvent,
        TransportErrorEvent,
    ],
    Field(discriminator="kind"),
]


class RoomMetadata(BaseModel):
    """One room metadata fetch."""

    create_time: int = Field(..., description="Room creation time (unix seconds)")
    user_count: int = Field(default=0, description="Current viewer count")
    like_count: int = Field(default=0, description="Total like count")
    hls_info: dict[str, Any] = Field(default_factory=dict, description="Playback endpoints")
