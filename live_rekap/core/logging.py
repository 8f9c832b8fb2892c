"""
live_rekap.core.logging
~~~~~~~~~~~~~~~~~~~~~~~

Unified logging setup; level and format follow the environment.

Every module gets its logger through ``get_logger(__name__)``. Log lines
emitted from inside a session's background tasks carry that session's id
via ``session_id_ctx_var``.
"""
from __future__ import annotations

import logging
import sys
from contextvars import ContextVar

from live_rekap.core.config import settings

# time | level | logger | [session] message
_LOG_FORMAT: str = "%(asctime)s | %(levelname)-7s | %(name)s | [%(session_id)s] %(message)s"
_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

session_id_ctx_var: ContextVar[str] = ContextVar("session_id", default="-")


class SessionIdFilter(logging.Filter):
    """Stamps the current session id on every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = session_id_ctx_var.get()
        return True


def setup_logging() -> None:
    """Configure global logging for the current environment. Call once at startup."""
    level = getattr(logging, settings.effective_log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(SessionIdFilter())
    logging.basicConfig(
        level=level,
        format=_LOG_FORMAT,
        datefmt=_DATE_FORMAT,
        handlers=[handler],
        force=True,
    )

    # Third-party noise
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("TikTokLive").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module.

    Args:
        name: module name, usually ``__name__``.

    Returns:
        A ``logging.Logger`` instance.
    """
    return logging.getLogger(name)
