"""Durable storage for pixel events."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import text

from feedwire.db.session import dump_json, json_param, load_json
from feedwire.errors import TransientIOError
from feedwire.tracking.events import TrackedEvent

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100
MAX_LIMIT = 1000


class PixelEventStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    async def write(self, events: Sequence[TrackedEvent]) -> None:
        """Queue writer: inserts off the event loop."""
        await asyncio.get_running_loop().run_in_executor(None, self.insert_events, list(events))

    def insert_events(self, events: Sequence[TrackedEvent]) -> int:
        if not events:
            return 0
        rows = [self._row(event) for event in events]
        try:
            with self.engine.begin() as conn:
                statement = text(
                    f"""
                    INSERT INTO pixel_events (
                        pixel_id, event_type, event_value, currency, product_id,
                        order_id, user_id, session_id, metadata, created_at
                    )
                    VALUES (
                        :pixel_id, :event_type, :event_value, :currency, :product_id,
                        :order_id, :user_id, :session_id, {json_param(conn, "metadata")}, :created_at
                    )
                    """
                )
                if len(rows) == 1:
                    conn.execute(statement, rows[0])
                else:
                    conn.execute(statement, rows)
        except SQLAlchemyError as exc:
            raise TransientIOError("Pixel event insert failed", count=len(rows)) from exc
        logger.debug("Inserted %s pixel events", len(rows))
        return len(rows)

    def list_events(
        self,
        *,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
        pixel_id: str | None = None,
        event_type: str | None = None,
    ) -> list[dict[str, Any]]:
        limit = max(1, min(int(limit or DEFAULT_LIMIT), MAX_LIMIT))
        offset = max(int(offset or 0), 0)
        query = """
            SELECT id, pixel_id, event_type, event_value, currency, product_id,
                   order_id, user_id, session_id, metadata, created_at
            FROM pixel_events
            WHERE 1=1
        """
        params: dict[str, Any] = {"limit": limit, "offset": offset}
        if pixel_id:
            query += " AND pixel_id = :pixel_id"
            params["pixel_id"] = pixel_id
        if event_type:
            query += " AND event_type = :event_type"
            params["event_type"] = event_type
        query += " ORDER BY created_at DESC, id DESC LIMIT :limit OFFSET :offset"
        with self.engine.connect() as conn:
            rows = conn.execute(text(query), params).mappings().all()
        events = []
        for row in rows:
            item = dict(row)
            item["metadata"] = load_json(item["metadata"], default={})
            events.append(item)
        return events

    @staticmethod
    def _row(event: TrackedEvent) -> dict[str, Any]:
        row = event.to_row()
        row["metadata"] = dump_json(row["metadata"])
        return row
