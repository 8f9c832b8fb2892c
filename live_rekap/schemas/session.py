"""
live_rekap.schemas.session
~~~~~~~~~~~~~~~~~~~~~~~~~~

Session payloads: the recap snapshot sent to the backend and the
control-surface response data.
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SessionSnapshot(BaseModel):
    """Full SessionState at one point in time, in the backend's snake_case shape."""

    room_info: dict[str, Any] = Field(default_factory=dict)
    hls_info: dict[str, Any] = Field(default_factory=dict)
    members: list[dict[str, Any]] = Field(default_factory=list)
    users: dict[str, Any] = Field(default_factory=dict)
    gifts: list[dict[str, Any]] = Field(default_factory=list)
    follow_count: int = 0
    share_count: int = 0


class SessionStartData(BaseModel):
    """Returned by a successful start."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId", description="Schedule id")
    room_id: str = Field(..., alias="roomId", description="Live room id")


class SessionInfoData(BaseModel):
    """Summary of one active session."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId")
    handle: str = Field(..., description="Room handle the session is bound to")
    room_id: str | None = Field(default=None, alias="roomId")
    status: str = Field(..., description="connecting / active / ended")
