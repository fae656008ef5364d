import asyncio

import pytest

from feedwire.tracking.queue import EventIngestionQueue, QueueState


class RecordingWriter:
    def __init__(self, failures=0):
        self.batches = []
        self.failures = failures

    async def __call__(self, batch):
        if self.failures:
            self.failures -= 1
            raise ConnectionError("database unavailable")
        self.batches.append(list(batch))


@pytest.mark.asyncio
async def test_full_batch_flushes_immediately():
    writer = RecordingWriter()
    queue = EventIngestionQueue(writer, batch_size=50, flush_interval=60)

    size = await queue.enqueue_many(range(50))

    assert size == 0
    assert writer.batches == [list(range(50))]
    assert queue.state is QueueState.IDLE


@pytest.mark.asyncio
async def test_partial_batch_waits_for_timer():
    writer = RecordingWriter()
    queue = EventIngestionQueue(writer, batch_size=50, flush_interval=0.05)

    await queue.enqueue("a")
    await queue.enqueue("b")
    assert queue.size == 2
    assert queue.state is QueueState.ACCUMULATING
    assert writer.batches == []

    await asyncio.sleep(0.2)
    assert writer.batches == [["a", "b"]]
    assert queue.size == 0


@pytest.mark.asyncio
async def test_failed_flush_requeues_in_order():
    writer = RecordingWriter(failures=1)
    queue = EventIngestionQueue(writer, batch_size=3, flush_interval=60)

    await queue.enqueue_many(["e1", "e2", "e3"])
    assert queue.snapshot() == ["e1", "e2", "e3"]

    await queue.enqueue("e4")
    assert writer.batches == []
    assert queue.snapshot() == ["e1", "e2", "e3", "e4"]

    assert await queue.close() == 4
    assert writer.batches == [["e1", "e2", "e3", "e4"]]


@pytest.mark.asyncio
async def test_events_arriving_during_write_are_kept():
    release = asyncio.Event()
    written = []

    async def slow_writer(batch):
        await release.wait()
        written.append(list(batch))

    queue = EventIngestionQueue(slow_writer, batch_size=2, flush_interval=60)
    flushing = asyncio.create_task(queue.enqueue_many(["e1", "e2"]))
    await asyncio.sleep(0)
    assert queue.state is QueueState.FLUSHING

    await queue.enqueue("e3")
    assert queue.snapshot() == ["e3"]
    release.set()
    await flushing
    assert written == [["e1", "e2"]]
    assert await queue.close() == 1
    assert written[-1] == ["e3"]


@pytest.mark.asyncio
async def test_flush_empty_queue():
    writer = RecordingWriter()
    queue = EventIngestionQueue(writer, batch_size=5, flush_interval=60)
    assert await queue.flush() == 0
    assert writer.batches == []


@pytest.mark.asyncio
async def test_close_flushes_remaining_events():
    writer = RecordingWriter()
    queue = EventIngestionQueue(writer, batch_size=10, flush_interval=60)
    await queue.enqueue_many(["a", "b", "c"])
    assert await queue.close() == 3
    assert writer.batches == [["a", "b", "c"]]


def test_batch_size_must_be_positive():
    with pytest.raises(ValueError):
        EventIngestionQueue(RecordingWriter(), batch_size=0)


@pytest.mark.asyncio
async def test_failed_timer_write_keeps_order_with_concurrent_batch():
    started = asyncio.Event()
    release = asyncio.Event()
    written = []
    calls = []

    async def writer(batch):
        calls.append(list(batch))
        if len(calls) == 1:
            started.set()
            await release.wait()
            raise ConnectionError("database unavailable")
        written.extend(batch)

    queue = EventIngestionQueue(writer, batch_size=2, flush_interval=0.01)
    await queue.enqueue("e1")
    await asyncio.wait_for(started.wait(), timeout=1)

    full_batch = asyncio.create_task(queue.enqueue_many(["e2", "e3"]))
    await asyncio.sleep(0.02)
    assert calls == [["e1"]]

    release.set()
    await full_batch
    await queue.close()
    assert written == ["e1", "e2", "e3"]
    assert queue.size == 0


@pytest.mark.asyncio
async def test_retry_after_failure_waits_for_timer():
    writer = RecordingWriter(failures=1)
    queue = EventIngestionQueue(writer, batch_size=2, flush_interval=0.05)

    await queue.enqueue_many(["a", "b"])
    assert queue.retry_pending
    await queue.enqueue("c")
    await queue.enqueue("d")
    assert writer.batches == []
    assert writer.failures == 0

    await asyncio.sleep(0.2)
    assert writer.batches == [["a", "b", "c", "d"]]
    assert not queue.retry_pending


@pytest.mark.asyncio
async def test_failure_log_names_the_queue(caplog):
    queue = EventIngestionQueue(RecordingWriter(failures=1), batch_size=1, flush_interval=60)
    with caplog.at_level("ERROR", logger="feedwire.tracking.queue"):
        await queue.enqueue("a")
    await queue.close()
    assert "Failed to flush 1 pixel events" in caplog.text
