"""
live_rekap.clients.rekap_api
~~~~~~~~~~~~~~~~~~~~~~~~~~~~

HTTP client for the rekap backend.

Endpoints:
  - ``GET  /rekap/{session_id}/jadwal`` → schedule, room handle at ``data.program.room_tiktok``
  - ``POST /rekap/{session_id}``        → recap snapshot upload
"""
from __future__ import annotations

from typing import Any

import httpx

from live_rekap.core.logging import get_logger

logger = get_logger(__name__)


class RekapApiClient:
    """Thin wrapper over a shared ``httpx.AsyncClient``.

    Both calls raise ``httpx.HTTPError`` on transport failures and non-2xx
    responses; mapping those onto domain errors is the caller's job.
    """

    def __init__(self, http: httpx.AsyncClient) -> None:
        self.http = http

    async def fetch_schedule(self, session_id: str) -> dict[str, Any]:
        response = await self.http.get(f"/rekap/{session_id}/jadwal")
        response.raise_for_status()
        data = response.json()
        logger.debug("fetch_schedule response: %s", data)
        return data

    async def save_recap(self, session_id: str, payload: dict[str, Any]) -> None:
        response = await self.http.post(f"/rekap/{session_id}", json=payload)
        response.raise_for_status()


def create_http_client(base_url: str, timeout: float) -> httpx.AsyncClient:
    """Shared client for the rekap backend; close it on shutdown."""
    return httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout)
