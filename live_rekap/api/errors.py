"""
live_rekap.api.errors
~~~~~~~~~~~~~~~~~~~~~

Exception handlers: every failure answers with the ``ApiResponse`` envelope
instead of FastAPI's default error bodies.
"""
from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from live_rekap.core.config import settings
from live_rekap.core.errors import LiveRekapError
from live_rekap.core.logging import get_logger
from live_rekap.schemas.api_response import ApiResponse

logger = get_logger(__name__)


async def service_error_handler(request: Request, exc: LiveRekapError) -> JSONResponse:
    """Expected control failures: already active, not active, lookup, connect."""
    logger.warning("%s %s -> %s", request.method, request.url.path, exc.message)
    response = ApiResponse.fail(message=exc.message)
    return JSONResponse(status_code=exc.status_code, content=response.model_dump())


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for anything unhandled.

    Keeps the JSON envelope consistent; internals are hidden in prod.
    """
    logger.error("Unhandled exception: %s %s -> %s", request.method, request.url, exc, exc_info=True)
    detail = str(exc) if not settings.is_prod else "Internal server error"
    response = ApiResponse.fail(message=detail)
    return JSONResponse(status_code=500, content=response.model_dump())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LiveRekapError, service_error_handler)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, global_exception_handler)
