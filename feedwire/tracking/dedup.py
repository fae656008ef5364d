"""Suppression of duplicate behavioral events.

Two guards live here. The sliding window drops an event whose type and
identifying payload were already seen within ``ttl_ms``. The purchase guard
remembers order ids so a purchase is never reported twice, however late
the repeat arrives. With ``max_transactions`` set, only the most recent
order ids are kept and the oldest are forgotten first.

State is local to one instance and one thread of control.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from collections import OrderedDict
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Mapping

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 5000
ADD_TO_CART_TTL_MS = 3000


def event_key(event_type: str, payload: Mapping[str, Any] | None) -> str:
    body = json.dumps(dict(payload or {}), sort_keys=True, default=str, separators=(",", ":"))
    digest = hashlib.sha256(body.encode("utf-8")).hexdigest()[:32]
    return f"{event_type}:{digest}"


class EventDeduplicationGuard:
    def __init__(
        self,
        ttl_ms: int = DEFAULT_TTL_MS,
        *,
        clock: Callable[[], float] = time.monotonic,
        max_transactions: int | None = None,
    ) -> None:
        self.default_ttl_ms = ttl_ms
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._seen: dict[str, float] = {}
        self.max_transactions = max_transactions
        self._transactions: OrderedDict[str, None] = OrderedDict()

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def should_track(
        self,
        event_type: str,
        payload: Mapping[str, Any] | None = None,
        *,
        ttl_ms: int | None = None,
    ) -> bool:
        """``ttl_ms`` overrides the window for this call only."""
        window = self.ttl_ms if ttl_ms is None else ttl_ms
        key = event_key(event_type, payload)
        now = self._now_ms()
        self._prune(now, window)
        last_seen = self._seen.get(key)
        if last_seen is not None and now - last_seen <= window:
            return False
        self._seen[key] = now
        return True

    def track_purchase(
        self,
        order_id: str,
        payload: Mapping[str, Any] | None = None,
        *,
        platform: str | None = None,
    ) -> bool:
        key = self._transaction_key(order_id, platform)
        if key in self._transactions:
            logger.warning("Purchase event for order %s already tracked", order_id)
            return False
        if not self.should_track("purchase", {**(payload or {}), "order_id": order_id, "platform": platform}):
            return False
        self._transactions[key] = None
        if self.max_transactions is not None:
            while len(self._transactions) > self.max_transactions:
                self._transactions.popitem(last=False)
        return True

    def is_transaction_tracked(self, order_id: str, *, platform: str | None = None) -> bool:
        return self._transaction_key(order_id, platform) in self._transactions

    def set_ttl(self, ttl_ms: int) -> None:
        self.ttl_ms = ttl_ms

    def reset_ttl(self) -> None:
        self.ttl_ms = self.default_ttl_ms

    @contextmanager
    def ttl_override(self, ttl_ms: int) -> Iterator["EventDeduplicationGuard"]:
        previous = self.ttl_ms
        self.ttl_ms = ttl_ms
        try:
            yield self
        finally:
            self.ttl_ms = previous

    def clear(self) -> None:
        self._seen.clear()
        self._transactions.clear()

    def __len__(self) -> int:
        return len(self._seen)

    @staticmethod
    def _transaction_key(order_id: str, platform: str | None) -> str:
        return f"{platform}:{order_id}" if platform else str(order_id)

    def _prune(self, now: float, window: float) -> None:
        # drop entries outside the widest active window
        horizon = max(self.ttl_ms, self.default_ttl_ms, window)
        expired = [key for key, seen in self._seen.items() if now - seen > horizon]
        for key in expired:
            del self._seen[key]
