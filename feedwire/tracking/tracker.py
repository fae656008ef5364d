"""Tracking call site.

``PixelTracker`` is what storefront code calls when a shopper does
something worth reporting. It filters duplicates, fans the event out to
every configured pixel through the ingestion queue and hands it to the
injected advertising SDK dispatchers. None of its public coroutines raise:
a broken pixel must not break checkout.
"""

from __future__ import annotations

import logging
import time
import uuid
from decimal import Decimal
from typing import Any, Iterable, Mapping, Protocol

from feedwire.tracking.dedup import ADD_TO_CART_TTL_MS, EventDeduplicationGuard
from feedwire.tracking.events import EventType, TrackedEvent
from feedwire.tracking.queue import EventIngestionQueue

logger = logging.getLogger(__name__)


class PixelDispatcher(Protocol):
    platform: str

    async def send(self, event_type: str, payload: Mapping[str, Any]) -> None:
        ...


def new_session_id() -> str:
    return f"session_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class PixelTracker:
    def __init__(
        self,
        queue: EventIngestionQueue[TrackedEvent],
        pixels: Mapping[str, str],
        *,
        dispatchers: Iterable[PixelDispatcher] = (),
        guard: EventDeduplicationGuard | None = None,
        session_id: str | None = None,
        user_id: str | None = None,
    ) -> None:
        self.queue = queue
        self.pixels = dict(pixels)
        self.dispatchers = list(dispatchers)
        self.guard = guard or EventDeduplicationGuard()
        self.session_id = session_id or new_session_id()
        self.user_id = user_id

    async def track(
        self,
        event_type: EventType | str,
        payload: Mapping[str, Any] | None = None,
        *,
        product_id: str | None = None,
        value: Decimal | float | None = None,
        currency: str = "USD",
        metadata: Mapping[str, Any] | None = None,
        ttl_ms: int | None = None,
    ) -> bool:
        try:
            event_type = EventType(event_type)
            key_fields = {"product_id": product_id, "value": value, **(payload or {})}
            if not self.guard.should_track(event_type.value, key_fields, ttl_ms=ttl_ms):
                logger.debug("Duplicate %s suppressed", event_type.value)
                return False
            await self._emit(event_type, payload, product_id=product_id, value=value, currency=currency, metadata=metadata)
            return True
        except Exception as exc:
            logger.warning("Tracking %s failed: %s", event_type, exc)
            return False

    async def track_add_to_cart(
        self,
        product_id: str,
        value: Decimal | float,
        currency: str = "USD",
        *,
        quantity: int = 1,
    ) -> bool:
        return await self.track(
            EventType.ADD_TO_CART,
            {"quantity": quantity},
            product_id=product_id,
            value=value,
            currency=currency,
            ttl_ms=ADD_TO_CART_TTL_MS,
        )

    async def track_purchase(
        self,
        order_id: str,
        value: Decimal | float,
        currency: str = "USD",
        *,
        product_ids: Iterable[str] = (),
    ) -> bool:
        try:
            items = list(product_ids)
            if not self.guard.track_purchase(order_id, {"value": value, "currency": currency}):
                return False
            await self._emit(
                EventType.PURCHASE,
                {"order_id": order_id, "content_ids": items},
                value=value,
                currency=currency,
                order_id=order_id,
                metadata={"content_ids": items},
            )
            return True
        except Exception as exc:
            logger.warning("Tracking purchase %s failed: %s", order_id, exc)
            return False

    async def close(self) -> None:
        try:
            await self.queue.close()
        except Exception as exc:
            logger.warning("Final pixel flush failed: %s", exc)

    async def _emit(
        self,
        event_type: EventType,
        payload: Mapping[str, Any] | None,
        *,
        product_id: str | None = None,
        value: Decimal | float | None = None,
        currency: str = "USD",
        order_id: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        events = [
            TrackedEvent(
                pixel_id=pixel_id,
                event_type=event_type,
                event_value=value,
                currency=currency,
                product_id=product_id,
                order_id=order_id,
                user_id=self.user_id,
                session_id=self.session_id,
                metadata={**(metadata or {}), "platform": platform},
            )
            for platform, pixel_id in self.pixels.items()
        ]
        if events:
            await self.queue.enqueue_many(events)
        sdk_payload = {**(payload or {}), "value": value, "currency": currency, "product_id": product_id}
        for dispatcher in self.dispatchers:
            try:
                await dispatcher.send(event_type.value, sdk_payload)
            except Exception as exc:
                logger.warning("%s dispatcher failed for %s: %s", dispatcher.platform, event_type.value, exc)
