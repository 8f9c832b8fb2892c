"""
live_rekap.core.errors
~~~~~~~~~~~~~~~~~~~~~~

Error taxonomy. Control-surface errors carry the HTTP status the API
layer answers with; background errors (ticks, transport) never reach a
control caller and only get logged and broadcast.
"""
from __future__ import annotations


class LiveRekapError(Exception):
    """Base class for all service errors."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# ── Control surface ───────────────────────────────────────────────────

class AlreadyActive(LiveRekapError):
    status_code = 409

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Connection already exists for session {session_id}")
        self.session_id = session_id


class NotActive(LiveRekapError):
    status_code = 404

    def __init__(self, session_id: str) -> None:
        super().__init__(f"No active connection found for session {session_id}")
        self.session_id = session_id


# ── Session id → room handle ──────────────────────────────────────────

class ResolutionFailed(LiveRekapError):
    """The room handle for a session could not be resolved."""

    status_code = 502


class NotFound(ResolutionFailed):
    """The backend has no room handle for this session."""

    status_code = 404


class LookupFailed(ResolutionFailed):
    """Transport or parse error while asking the backend."""


# ── Live transport ────────────────────────────────────────────────────

class ConnectFailed(LiveRekapError):
    """The live connection was refused or timed out."""

    status_code = 502


class TickFailure(LiveRekapError):
    """One execution of a periodic task failed; the task keeps running."""
