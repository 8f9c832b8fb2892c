"""
live_rekap.main
~~~~~~~~~~~~~~~

FastAPI entry point: routes, middleware, exception handlers and lifespan.
"""
from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from live_rekap.api import events_ws, sessions
from live_rekap.api.errors import register_exception_handlers
from live_rekap.clients.rekap_api import RekapApiClient, create_http_client
from live_rekap.core.config import settings
from live_rekap.core.logging import get_logger, setup_logging
from live_rekap.core.rate_limit import limiter
from live_rekap.live.tiktok import TikTokConnector
from live_rekap.services.broadcast_hub import BroadcastHub
from live_rekap.services.persistence import PersistenceClient
from live_rekap.services.session_registry import SessionRegistry
from live_rekap.services.username_resolver import UsernameResolver

# Logging first, before anything else logs
setup_logging()
logger = get_logger(__name__)


# ── Lifespan ──────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the session registry and its collaborators for this worker."""
    # ── startup ──
    http = create_http_client(settings.API_BASE_URL, settings.HTTP_TIMEOUT_SECONDS)
    api = RekapApiClient(http)
    hub = BroadcastHub(queue_size=settings.BROADCAST_QUEUE_SIZE)
    registry = SessionRegistry(
        resolver=UsernameResolver(api),
        connector=TikTokConnector(connect_timeout=settings.CONNECT_TIMEOUT_SECONDS),
        hub=hub,
        persistence=PersistenceClient(api),
        room_info_interval=settings.room_info_interval,
        data_update_interval=settings.data_update_interval,
        teardown_timeout=settings.TEARDOWN_TIMEOUT_SECONDS,
    )
    app.state.hub = hub
    app.state.registry = registry
    logger.info(
        "🚀 Service started | env=%s | backend=%s | room_info=%dms | data=%dms",
        settings.ENVIRONMENT,
        settings.API_BASE_URL,
        settings.ROOM_INFO_UPDATE_INTERVAL_MS,
        settings.DATA_UPDATE_INTERVAL_MS,
    )
    yield
    # ── shutdown ──
    await registry.disconnect_all()
    hub.close()
    await http.aclose()
    logger.info("👋 Service stopped")


# ── FastAPI app ───────────────────────────────────────────────────────

app: FastAPI = FastAPI(
    title=settings.PROJECT_NAME,
    description="Live session recap backend",
    version=settings.VERSION,
    debug=settings.debug,
    lifespan=lifespan,
)
app.state.limiter = limiter

# ── CORS ──────────────────────────────────────────────────────────────
if settings.allow_cors_all_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

# ── Routes ────────────────────────────────────────────────────────────
app.include_router(sessions.router, prefix="/api", tags=["Sessions"])
app.include_router(events_ws.router, tags=["Broadcast"])


# ── Exception handlers ────────────────────────────────────────────────
register_exception_handlers(app)


@app.get("/health", tags=["System"])
async def health_check(request: Request) -> JSONResponse:
    """Service status."""
    registry: SessionRegistry | None = getattr(request.app.state, "registry", None)
    return JSONResponse(
        content={
            "status": "ok",
            "environment": settings.ENVIRONMENT,
            "debug": settings.debug,
            "log_level": settings.effective_log_level,
            "active_sessions": len(registry) if registry is not None else 0,
        },
    )


def run() -> None:
    import uvicorn

    uvicorn.run(
        "live_rekap.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.reload,
        log_level=settings.effective_log_level.lower(),
    )


if __name__ == "__main__":
    run()
