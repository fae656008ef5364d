"""Buffered event ingestion.

Events accumulate in an in-memory buffer and are handed to a writer in
batches, either when ``batch_size`` is reached or when the flush timer
fires. Only one write runs at a time. The buffer is swapped out before the
writer is awaited, so events enqueued during a write land in a fresh
buffer. A failed write puts its batch back at the front of the buffer and
leaves the retry to the timer; delivery is at-least-once.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable, Iterable, Sequence
from enum import Enum
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

BATCH_SIZE = int(os.environ.get("PIXEL_BATCH_SIZE", 50))
FLUSH_INTERVAL = float(os.environ.get("PIXEL_FLUSH_INTERVAL", 5.0))

T = TypeVar("T")


class QueueState(str, Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    FLUSHING = "flushing"


class EventIngestionQueue(Generic[T]):
    def __init__(
        self,
        writer: Callable[[Sequence[T]], Awaitable[Any]],
        *,
        batch_size: int = BATCH_SIZE,
        flush_interval: float = FLUSH_INTERVAL,
        name: str = "pixel",
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self._writer = writer
        self.batch_size = batch_size
        self.flush_interval = flush_interval
        self.name = name
        self._buffer: list[T] = []
        self._lock = asyncio.Lock()
        self._timer: asyncio.Task | None = None
        self._inflight = 0
        self._retry_pending = False
        self._closed = False

    @property
    def size(self) -> int:
        return len(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)

    @property
    def state(self) -> QueueState:
        if self._inflight:
            return QueueState.FLUSHING
        if self._buffer:
            return QueueState.ACCUMULATING
        return QueueState.IDLE

    @property
    def retry_pending(self) -> bool:
        return self._retry_pending

    def snapshot(self) -> list[T]:
        return list(self._buffer)

    async def enqueue(self, event: T) -> int:
        return await self.enqueue_many([event])

    async def enqueue_many(self, events: Iterable[T]) -> int:
        self._buffer.extend(events)
        if self._retry_pending:
            # after a failed write only the timer retries
            if self._timer is None:
                self._schedule_flush()
        elif len(self._buffer) >= self.batch_size:
            await self.flush()
        elif self._buffer:
            self._schedule_flush()
        return len(self._buffer)

    async def flush(self) -> int:
        async with self._lock:
            self._cancel_timer()
            if not self._buffer:
                return 0
            batch, self._buffer = self._buffer, []
            self._inflight += 1
            try:
                await self._writer(batch)
            except asyncio.CancelledError:
                self._buffer[:0] = batch
                raise
            except Exception as exc:
                self._buffer[:0] = batch
                self._retry_pending = True
                logger.error(
                    "Failed to flush %s %s events, re-queued (%s buffered): %s",
                    len(batch),
                    self.name,
                    len(self._buffer),
                    exc,
                )
                if not self._closed:
                    self._schedule_flush()
                return 0
            finally:
                self._inflight -= 1
            self._retry_pending = False
        logger.info("Flushed %s %s events", len(batch), self.name)
        return len(batch)

    async def close(self) -> int:
        """Cancel the timer and make one last flush attempt."""
        self._closed = True
        return await self.flush()

    def _schedule_flush(self) -> None:
        self._cancel_timer()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; %s flush timer not scheduled", self.name)
            return
        self._timer = loop.create_task(self._flush_later(), name=f"{self.name}-flush-timer")

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None and timer is not asyncio.current_task() and not timer.done():
            timer.cancel()

    async def _flush_later(self) -> None:
        await asyncio.sleep(self.flush_interval)
        # a running timer flush is no longer cancellable by reschedules
        if self._timer is asyncio.current_task():
            self._timer = None
        await self.flush()
