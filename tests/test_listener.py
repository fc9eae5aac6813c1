"""
Tests for the completion listener: filtering, dispatch, failure isolation
and shutdown.
"""

import asyncio
import logging

import pytest

from conftest import QUICK_RETRY, RecordingEngine
from pyresume.errors import FieldPathError
from pyresume.events.listener import CompletionListener, ListenerError
from pyresume.events.models import CompletionEvent
from pyresume.events.pattern import EventPattern
from pyresume.events.source import QueueEventSource
from pyresume.executor.orchestrator import ResumeOrchestrator


def make_listener(store, engine, pattern, source=None, id_path="$.detail.id"):
    orchestrator = ResumeOrchestrator(
        store, engine, signal_retry=QUICK_RETRY, store_retry=QUICK_RETRY
    )
    return CompletionListener(
        source if source is not None else QueueEventSource(),
        EventPattern.from_dict(pattern),
        id_path,
        orchestrator,
        name="test",
    )


async def wait_for_stat(listener, field, value, timeout=1.0):
    """Poll until a listener counter reaches value."""
    async def poll():
        while getattr(listener.stats, field) < value:
            await asyncio.sleep(0.005)

    await asyncio.wait_for(poll(), timeout=timeout)


# ==============================================================================
# handle()
# ==============================================================================


@pytest.mark.asyncio
async def test_handle_matching_event_resumes(in_memory_store, recording_engine, completion_pattern, make_event):
    await in_memory_store.insert("job-42", "handle-A")
    listener = make_listener(in_memory_store, recording_engine, completion_pattern)

    outcome = await listener.handle(CompletionEvent.from_dict(make_event("job-42")))

    assert outcome.is_resumed()
    assert recording_engine.handles == ["handle-A"]
    assert listener.stats.resumed == 1


@pytest.mark.asyncio
async def test_handle_non_matching_event_ignored(in_memory_store, recording_engine, completion_pattern, make_event):
    await in_memory_store.insert("job-42", "handle-A")
    listener = make_listener(in_memory_store, recording_engine, completion_pattern)

    outcome = await listener.handle(CompletionEvent.from_dict(make_event("job-42", status="FAILED")))

    assert outcome is None
    assert recording_engine.calls == []
    assert listener.stats.ignored == 1
    assert await in_memory_store.get("job-42") is not None


@pytest.mark.asyncio
async def test_handle_unknown_job_skipped(in_memory_store, recording_engine, completion_pattern, make_event):
    listener = make_listener(in_memory_store, recording_engine, completion_pattern)

    outcome = await listener.handle(CompletionEvent.from_dict(make_event("job-99")))

    assert outcome.is_skipped()
    assert listener.stats.skipped == 1
    assert listener.stats.failed == 0


@pytest.mark.asyncio
async def test_handle_missing_job_id_raises(in_memory_store, recording_engine, completion_pattern):
    listener = make_listener(in_memory_store, recording_engine, completion_pattern)
    event = CompletionEvent(
        source="acme.transcoder", detail_type="Job Completed", detail={"status": "SUCCEEDED"}
    )

    with pytest.raises(FieldPathError):
        await listener.handle(event)


@pytest.mark.asyncio
async def test_custom_id_path(in_memory_store, recording_engine):
    await in_memory_store.insert("run-7", "handle-A")
    listener = make_listener(
        in_memory_store,
        recording_engine,
        {"source": ["acme.ci"]},
        id_path="$.detail.runs[0].runId",
    )
    event = CompletionEvent(source="acme.ci", detail_type="Build", detail={"runs": [{"runId": "run-7"}]})

    outcome = await listener.handle(event)

    assert outcome.is_resumed()


@pytest.mark.asyncio
async def test_outcome_callback_receives_outcomes(in_memory_store, recording_engine, completion_pattern, make_event):
    await in_memory_store.insert("job-1", "h")
    seen = []

    async def on_outcome(event, outcome):
        seen.append((event.detail["id"], outcome.state))

    listener = make_listener(in_memory_store, recording_engine, completion_pattern)
    listener.with_outcome_callback(on_outcome)

    await listener.handle(CompletionEvent.from_dict(make_event("job-1")))

    assert len(seen) == 1
    assert seen[0][0] == "job-1"


@pytest.mark.asyncio
async def test_outcome_callback_failure_does_not_propagate(in_memory_store, recording_engine, completion_pattern, make_event):
    await in_memory_store.insert("job-1", "h")

    async def broken(event, outcome):
        raise RuntimeError("metrics down")

    listener = make_listener(in_memory_store, recording_engine, completion_pattern)
    listener.with_outcome_callback(broken)

    outcome = await listener.handle(CompletionEvent.from_dict(make_event("job-1")))

    assert outcome.is_resumed()


# ==============================================================================
# Builder
# ==============================================================================


def test_builder_validation(in_memory_store, recording_engine, completion_pattern):
    listener = make_listener(in_memory_store, recording_engine, completion_pattern)

    assert listener.with_poll_interval(0.5) is listener
    assert listener.with_max_concurrent(4) is listener

    with pytest.raises(ValueError):
        listener.with_poll_interval(0)
    with pytest.raises(ValueError):
        listener.with_max_concurrent(0)


# ==============================================================================
# Running loop
# ==============================================================================


@pytest.mark.asyncio
async def test_listener_loop_resumes_published_events(in_memory_store, engine, completion_pattern, make_event):
    source = QueueEventSource()
    listener = make_listener(in_memory_store, engine, completion_pattern, source).with_poll_interval(0.01)

    handles = {}
    for job_id in ("job-1", "job-2", "job-3"):
        handles[job_id] = engine.park(job_id)
        await in_memory_store.insert(job_id, handles[job_id])

    handle = await listener.start()
    assert handle.is_running()

    for job_id in handles:
        await source.publish(make_event(job_id))
    await source.publish(make_event("job-1", status="FAILED"))  # filtered out

    await wait_for_stat(listener, "resumed", 3)
    await wait_for_stat(listener, "ignored", 1)
    await handle.shutdown()

    assert not handle.is_running()
    for h in handles.values():
        assert await engine.wait(h, timeout=0.1) == {"status": "resume"}
    assert listener.stats.received == 4
    assert listener.stats.ignored == 1
    assert await in_memory_store.list_records() == []


@pytest.mark.asyncio
async def test_listener_isolates_failing_event(in_memory_store, recording_engine, completion_pattern, make_event, caplog):
    """A malformed event is logged and counted; later events still process."""
    source = QueueEventSource()
    listener = make_listener(in_memory_store, recording_engine, completion_pattern, source)
    listener.with_poll_interval(0.01)
    await in_memory_store.insert("job-2", "handle-B")

    handle = await listener.start()
    with caplog.at_level(logging.ERROR, logger="pyresume.events.listener"):
        # Matches the pattern but carries no job id
        await source.publish(
            {"source": "acme.transcoder", "detail-type": "Job Completed", "detail": {"status": "SUCCEEDED"}}
        )
        await source.publish(make_event("job-2"))

        await wait_for_stat(listener, "resumed", 1)
        await handle.shutdown()

    assert listener.stats.failed == 1
    assert recording_engine.handles == ["handle-B"]
    assert "Failed to process event" in caplog.text


@pytest.mark.asyncio
async def test_listener_redelivery_signals_once(in_memory_store, recording_engine, completion_pattern, make_event):
    source = QueueEventSource()
    listener = make_listener(in_memory_store, recording_engine, completion_pattern, source)
    listener.with_poll_interval(0.01)
    await in_memory_store.insert("job-42", "handle-A")

    event = CompletionEvent.from_dict(make_event("job-42"))
    handle = await listener.start()
    await source.publish(event)
    await source.publish(event)

    await wait_for_stat(listener, "skipped", 1)
    await handle.shutdown()

    assert recording_engine.handles == ["handle-A"]
    assert listener.stats.resumed == 1


@pytest.mark.asyncio
async def test_shutdown_waits_for_in_flight(in_memory_store, completion_pattern, make_event):
    engine = RecordingEngine(delay=0.05)
    source = QueueEventSource()
    listener = make_listener(in_memory_store, engine, completion_pattern, source)
    listener.with_poll_interval(0.01)
    await in_memory_store.insert("job-1", "h")

    handle = await listener.start()
    await source.publish(make_event("job-1"))
    await wait_for_stat(listener, "received", 1)

    await handle.shutdown()

    assert listener.stats.resumed == 1
    assert await in_memory_store.get("job-1") is None


@pytest.mark.concurrency
@pytest.mark.asyncio
async def test_max_concurrent_bounds_in_flight(in_memory_store, completion_pattern, make_event):
    class GaugeEngine:
        def __init__(self):
            self.active = 0
            self.peak = 0

        async def send_resume(self, handle, output):
            self.active += 1
            self.peak = max(self.peak, self.active)
            await asyncio.sleep(0.01)
            self.active -= 1

    engine = GaugeEngine()
    source = QueueEventSource()
    listener = make_listener(in_memory_store, engine, completion_pattern, source)
    listener.with_poll_interval(0.01).with_max_concurrent(2)

    for i in range(8):
        await in_memory_store.insert(f"job-{i}", f"h-{i}")
        await source.publish(make_event(f"job-{i}"))

    handle = await listener.start()
    await wait_for_stat(listener, "resumed", 8, timeout=2.0)
    await handle.shutdown()

    assert engine.peak <= 2


@pytest.mark.asyncio
async def test_start_twice_rejected(in_memory_store, recording_engine, completion_pattern):
    listener = make_listener(in_memory_store, recording_engine, completion_pattern)
    listener.with_poll_interval(0.01)

    handle = await listener.start()
    try:
        with pytest.raises(ListenerError, match="already running"):
            await listener.start()
    finally:
        await handle.shutdown()


@pytest.mark.asyncio
async def test_abort_cancels_loop(in_memory_store, recording_engine, completion_pattern):
    listener = make_listener(in_memory_store, recording_engine, completion_pattern)
    listener.with_poll_interval(0.01)

    handle = await listener.start()
    handle.abort()

    with pytest.raises(asyncio.CancelledError):
        await handle._task
    assert not handle.is_running()


@pytest.mark.asyncio
async def test_broken_source_does_not_stop_loop(in_memory_store, recording_engine, completion_pattern, make_event):
    class FlakySource(QueueEventSource):
        def __init__(self):
            super().__init__()
            self.errors = 2

        async def receive(self, timeout):
            if self.errors:
                self.errors -= 1
                raise ConnectionError("bus unavailable")
            return await super().receive(timeout)

    source = FlakySource()
    listener = make_listener(in_memory_store, recording_engine, completion_pattern, source)
    listener.with_poll_interval(0.01)
    await in_memory_store.insert("job-1", "h")
    await source.publish(make_event("job-1"))

    handle = await listener.start()
    await wait_for_stat(listener, "resumed", 1)
    await handle.shutdown()

    assert source.errors == 0


@pytest.mark.asyncio
async def test_shutdown_drains_event_received_while_stopping(in_memory_store, recording_engine, completion_pattern, make_event):
    """An event handed off by the loop during shutdown is finished before shutdown returns."""
    class GatedSource(QueueEventSource):
        def __init__(self):
            super().__init__()
            self.waiting = asyncio.Event()
            self.gate = asyncio.Event()

        async def receive(self, timeout):
            self.waiting.set()
            await self.gate.wait()
            return await super().receive(timeout)

    source = GatedSource()
    listener = make_listener(in_memory_store, recording_engine, completion_pattern, source)
    listener.with_poll_interval(0.01)
    await in_memory_store.insert("job-1", "h")
    await source.publish(make_event("job-1"))

    handle = await listener.start()
    await source.waiting.wait()

    stopping = asyncio.create_task(handle.shutdown())
    await asyncio.sleep(0)
    source.gate.set()
    await stopping

    assert not handle.is_running()
    assert listener.stats.resumed == 1
    assert recording_engine.handles == ["h"]
    assert await in_memory_store.get("job-1") is None
