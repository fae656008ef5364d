"""FastAPI application serving catalog feeds and ingesting pixel events."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, AsyncIterator

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.engine import Engine

from feedwire.catalog.feeds import HISTORY_LIMIT, FeedGenerationService
from feedwire.db.session import create_engine_from_env
from feedwire.errors import FeedwireError, FeedGenerationError, FeedNotFound
from feedwire.tracking.dedup import EventDeduplicationGuard
from feedwire.tracking.events import EventType, TrackedEvent
from feedwire.tracking.queue import EventIngestionQueue
from feedwire.tracking.store import DEFAULT_LIMIT, PixelEventStore

logger = logging.getLogger(__name__)

PURCHASE_GUARD_SIZE = int(os.environ.get("PURCHASE_GUARD_SIZE", 100_000))

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type, if-none-match",
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    load_dotenv()
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    yield
    queue = getattr(app.state, "event_queue", None)
    if queue is not None:
        flushed = await queue.close()
        logger.info("Shutdown flush wrote %s pixel events, %s left buffered", flushed, queue.size)


app = FastAPI(title="Feedwire", lifespan=lifespan)


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_engine_from_env()


def get_feed_service(engine: Engine = Depends(get_engine)) -> FeedGenerationService:
    return FeedGenerationService(engine)


def get_event_store(engine: Engine = Depends(get_engine)) -> PixelEventStore:
    return PixelEventStore(engine)


def get_event_queue(request: Request, store: PixelEventStore = Depends(get_event_store)) -> EventIngestionQueue:
    queue = getattr(request.app.state, "event_queue", None)
    if queue is None:
        queue = EventIngestionQueue(store.write, name="pixel")
        request.app.state.event_queue = queue
    return queue


def get_purchase_guard(request: Request) -> EventDeduplicationGuard:
    guard = getattr(request.app.state, "purchase_guard", None)
    if guard is None:
        guard = EventDeduplicationGuard(max_transactions=PURCHASE_GUARD_SIZE)
        request.app.state.purchase_guard = guard
    return guard


def error_response(status_code: int, exc: FeedwireError) -> JSONResponse:
    body = {"error": exc.message, "type": type(exc).__name__}
    body.update({key: value for key, value in exc.context.items() if value is not None})
    return JSONResponse(body, status_code=status_code, headers={"Access-Control-Allow-Origin": "*"})


@app.exception_handler(FeedNotFound)
async def feed_not_found_handler(request: Request, exc: FeedNotFound) -> JSONResponse:
    return error_response(404, exc)


@app.exception_handler(FeedGenerationError)
async def feed_generation_handler(request: Request, exc: FeedGenerationError) -> JSONResponse:
    return error_response(500, exc)


def _validation_details(exc: PydanticValidationError, index: int | None) -> list[dict[str, Any]]:
    details = []
    for error in exc.errors(include_url=False, include_context=False, include_input=False):
        loc = list(error["loc"])
        if index is not None:
            loc.insert(0, index)
        details.append({"loc": loc, "msg": error["msg"], "type": error["type"]})
    return details


def _invalid(details: list[dict[str, Any]]) -> JSONResponse:
    return JSONResponse({"error": "Invalid request data", "details": details}, status_code=400)


@app.post("/pixel-events", status_code=202)
async def ingest_pixel_events(
    request: Request,
    queue: EventIngestionQueue = Depends(get_event_queue),
    guard: EventDeduplicationGuard = Depends(get_purchase_guard),
) -> JSONResponse:
    try:
        payload = await request.json()
    except ValueError:
        return _invalid([{"loc": ["body"], "msg": "Body must be valid JSON", "type": "json_invalid"}])

    batch = isinstance(payload, list)
    items = payload if batch else [payload]
    if not items:
        return _invalid([{"loc": ["body"], "msg": "At least one event is required", "type": "too_short"}])

    events: list[TrackedEvent] = []
    details: list[dict[str, Any]] = []
    for index, item in enumerate(items):
        try:
            events.append(TrackedEvent.model_validate(item))
        except PydanticValidationError as exc:
            details.extend(_validation_details(exc, index if batch else None))
    if details:
        logger.info("Rejected pixel event batch of %s: %s errors", len(items), len(details))
        return _invalid(details)

    accepted = []
    duplicates = 0
    for event in events:
        if event.event_type is EventType.PURCHASE and not guard.track_purchase(event.order_id, platform=event.pixel_id):
            duplicates += 1
            continue
        accepted.append(event)
    if accepted:
        await queue.enqueue_many(accepted)

    return JSONResponse(
        {
            "message": "Events queued for processing",
            "queued": len(accepted),
            "duplicates": duplicates,
            "queue_size": queue.size,
        },
        status_code=202,
    )


@app.get("/pixel-events")
async def list_pixel_events(
    limit: int = Query(DEFAULT_LIMIT, ge=1),
    offset: int = Query(0, ge=0),
    pixel_id: str | None = None,
    event_type: str | None = None,
    store: PixelEventStore = Depends(get_event_store),
) -> list[dict[str, Any]]:
    return store.list_events(limit=limit, offset=offset, pixel_id=pixel_id, event_type=event_type)


@app.get("/feeds/{slug}/history")
async def feed_history(
    slug: str,
    limit: int = Query(HISTORY_LIMIT, ge=1, le=HISTORY_LIMIT),
    service: FeedGenerationService = Depends(get_feed_service),
) -> list[dict[str, Any]]:
    return service.history(slug, limit=limit)


@app.options("/{slug}")
async def feed_preflight(slug: str) -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)


@app.get("/{slug}")
async def serve_feed(
    slug: str,
    request: Request,
    service: FeedGenerationService = Depends(get_feed_service),
) -> Response:
    loop = asyncio.get_running_loop()
    document = await loop.run_in_executor(None, service.generate, slug)
    headers = {
        "Cache-Control": document.cache_control,
        "ETag": document.etag,
        "X-Product-Count": str(document.product_count),
        "X-Generation-Time-Ms": str(document.generation_time_ms),
        "X-Feed-Status": document.status,
        **CORS_HEADERS,
    }
    if request.headers.get("if-none-match") == document.etag:
        return Response(status_code=304, headers=headers)
    return Response(content=document.body, media_type=document.content_type, headers=headers)
