import asyncio

import pytest

from feedwire.tracking.dedup import EventDeduplicationGuard
from feedwire.tracking.events import EventType
from feedwire.tracking.queue import EventIngestionQueue
from feedwire.tracking.tracker import PixelTracker

PIXELS = {"meta": "px-meta", "tiktok": "px-tiktok"}


class Clock:
    now = 0.0

    def __call__(self):
        return self.now


class RecordingDispatcher:
    def __init__(self, platform, fail=False):
        self.platform = platform
        self.fail = fail
        self.sent = []

    async def send(self, event_type, payload):
        if self.fail:
            raise RuntimeError("sdk not loaded")
        self.sent.append((event_type, dict(payload)))


@pytest.fixture()
def written():
    return []


@pytest.fixture()
def queue(written):
    async def writer(batch):
        written.extend(batch)

    return EventIngestionQueue(writer, batch_size=100, flush_interval=60, name="test")


@pytest.fixture()
def clock():
    return Clock()


@pytest.mark.asyncio
async def test_track_fans_out_to_every_pixel(queue, written, clock):
    dispatcher = RecordingDispatcher("meta")
    tracker = PixelTracker(
        queue, PIXELS, dispatchers=[dispatcher], guard=EventDeduplicationGuard(clock=clock), session_id="session-1"
    )

    assert await tracker.track("view_content", product_id="ASH-100", value=1200, currency="PKR")
    assert not await tracker.track("view_content", product_id="ASH-100", value=1200, currency="PKR")
    await tracker.close()

    assert [(e.pixel_id, e.metadata["platform"]) for e in written] == [("px-meta", "meta"), ("px-tiktok", "tiktok")]
    assert all(e.session_id == "session-1" and e.currency == "PKR" for e in written)
    assert dispatcher.sent == [("view_content", {"value": 1200, "currency": "PKR", "product_id": "ASH-100"})]


@pytest.mark.asyncio
async def test_add_to_cart_uses_short_window(queue, written, clock):
    guard = EventDeduplicationGuard(clock=clock)
    tracker = PixelTracker(queue, {"meta": "px-meta"}, guard=guard)

    assert await tracker.track_add_to_cart("ASH-100", 1200, "PKR")
    clock.now += 3.5
    assert await tracker.track_add_to_cart("ASH-100", 1200, "PKR")
    assert guard.ttl_ms == 5000
    await tracker.close()
    assert [e.event_type for e in written] == [EventType.ADD_TO_CART, EventType.ADD_TO_CART]


@pytest.mark.asyncio
async def test_purchase_reported_once(queue, written, clock):
    tracker = PixelTracker(queue, PIXELS, guard=EventDeduplicationGuard(clock=clock))

    assert await tracker.track_purchase("order-1", 2400, "PKR", product_ids=["ASH-100"])
    clock.now += 3600
    assert not await tracker.track_purchase("order-1", 2400, "PKR")
    await tracker.close()

    assert len(written) == 2
    assert {e.order_id for e in written} == {"order-1"}
    assert written[0].metadata["content_ids"] == ["ASH-100"]


@pytest.mark.asyncio
async def test_tracker_never_raises(queue, written):
    tracker = PixelTracker(queue, PIXELS, dispatchers=[RecordingDispatcher("meta", fail=True)])

    assert not await tracker.track("not-an-event")
    assert not await tracker.track("view_content", value=-5)
    assert await tracker.track("search", {"query": "tulsi"})
    await tracker.close()
    assert [e.event_type for e in written] == [EventType.SEARCH, EventType.SEARCH]


@pytest.mark.asyncio
async def test_close_survives_writer_failure():
    async def failing_writer(batch):
        raise ConnectionError("offline")

    queue = EventIngestionQueue(failing_writer, batch_size=100, flush_interval=60)
    tracker = PixelTracker(queue, PIXELS)
    assert await tracker.track("page_view", {"path": "/"})
    await tracker.close()
    assert queue.size == 2


@pytest.mark.asyncio
async def test_add_to_cart_window_does_not_leak_into_concurrent_tracks(clock):
    entered = asyncio.Event()
    release = asyncio.Event()

    async def slow_writer(batch):
        entered.set()
        await release.wait()

    queue = EventIngestionQueue(slow_writer, batch_size=1, flush_interval=60)
    guard = EventDeduplicationGuard(clock=clock)
    tracker = PixelTracker(queue, {"meta": "px-meta"}, guard=guard)

    adding = asyncio.create_task(tracker.track_add_to_cart("ASH-100", 1200, "PKR"))
    await asyncio.wait_for(entered.wait(), timeout=1)

    assert guard.ttl_ms == 5000
    assert guard.should_track("view_content", {"product_id": "TEA-7"})
    clock.now += 4
    assert not guard.should_track("view_content", {"product_id": "TEA-7"})

    release.set()
    assert await adding
    await tracker.close()
