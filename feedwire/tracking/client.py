"""HTTP client for the pixel event ingestion endpoint."""

from __future__ import annotations

import logging
import os
from typing import Any, Sequence

import httpx

from feedwire.tracking.events import TrackedEvent
from feedwire.utils.retry import retry_async

logger = logging.getLogger(__name__)

PIXEL_ENDPOINT = os.environ.get("PIXEL_ENDPOINT", "http://localhost:8000/pixel-events")


class PixelEventClient:
    def __init__(self, endpoint: str = PIXEL_ENDPOINT, *, session: httpx.AsyncClient | None = None) -> None:
        self.endpoint = endpoint
        self.session = session or httpx.AsyncClient(timeout=10.0, headers={"User-Agent": "FeedwirePixel/1.0"})

    async def close(self) -> None:
        await self.session.aclose()

    async def log_events(self, events: Sequence[TrackedEvent]) -> dict[str, Any]:
        """Queue writer: posts one batch; raises so the queue can re-queue it."""
        payload = [event.wire_payload() for event in events]
        response = await retry_async(self.session.post)(self.endpoint, json=payload)
        response.raise_for_status()
        data = response.json()
        logger.debug("Posted %s pixel events, server queue size %s", len(payload), data.get("queue_size"))
        return data

    async def fetch_events(self, **filters: Any) -> list[dict[str, Any]]:
        params = {key: value for key, value in filters.items() if value is not None}
        response = await retry_async(self.session.get)(self.endpoint, params=params)
        response.raise_for_status()
        return response.json()
