"""
live_rekap.api.sessions
~~~~~~~~~~~~~~~~~~~~~~~

Session control routes, mounted under ``/api``.

Endpoints:
  - ``GET|POST /start/{session_id}``   → start monitoring a session
  - ``GET|POST /end/{session_id}``     → stop monitoring a session
  - ``GET      /sessions``             → active sessions
  - ``GET      /sessions/{session_id}``→ current snapshot of one session

Failures raise ``LiveRekapError`` subclasses; the handlers in
``live_rekap.api.errors`` turn them into ``ApiResponse.fail`` bodies.
"""
from fastapi import APIRouter, Depends, Request

from live_rekap.api.deps import get_registry
from live_rekap.core.rate_limit import limiter
from live_rekap.schemas.api_response import ApiResponse
from live_rekap.schemas.session import SessionInfoData, SessionSnapshot, SessionStartData
from live_rekap.services.session_registry import SessionRegistry

router: APIRouter = APIRouter()


# ── Control ───────────────────────────────────────────────────────────

@router.api_route(
    "/start/{session_id}",
    methods=["GET", "POST"],
    summary="Start a live session",
    response_model=ApiResponse[SessionStartData],
)
@limiter.limit("10/second")
async def start_session(
    request: Request,
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    """Resolve the session's room handle, connect, and start tracking it.

    Args:
        request: FastAPI Request (used by the rate limiter).
        session_id: schedule id of the session.
    """
    handler = await registry.start(session_id)
    return ApiResponse.ok(
        data=SessionStartData(session_id=session_id, room_id=handler.room_id),
        message=f"Started live connection for session {session_id}",
    )


@router.api_route(
    "/end/{session_id}",
    methods=["GET", "POST"],
    summary="End a live session",
    response_model=ApiResponse[None],
)
@limiter.limit("10/second")
async def end_session(
    request: Request,
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    """Stop the subscription and periodic tasks and forget the session."""
    await registry.end(session_id)
    return ApiResponse.ok(
        data=None,
        message=f"Ended live connection for session {session_id}",
    )


# ── Inspection ────────────────────────────────────────────────────────

@router.get("/sessions", summary="List active sessions", response_model=ApiResponse[list[SessionInfoData]])
@limiter.limit("10/second")
async def list_sessions(request: Request, registry: SessionRegistry = Depends(get_registry)):
    return ApiResponse.ok(data=registry.list_sessions())


@router.get(
    "/sessions/{session_id}",
    summary="Current state of a session",
    response_model=ApiResponse[SessionSnapshot],
)
@limiter.limit("10/second")
async def session_state(
    request: Request,
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    handler = registry.get(session_id)
    async with handler.state.lock:
        snapshot = handler.state.snapshot()
    return ApiResponse.ok(data=snapshot)
