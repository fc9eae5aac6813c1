"""Tests for the in-process LocalEngine."""

import asyncio

import pytest

from pyresume.errors import DuplicateSuspendError, SignalRejectedError
from pyresume.executor.engine import WorkflowEngine
from pyresume.executor.local import LocalEngine
from pyresume.executor.suspend import SuspendTask


def test_local_engine_satisfies_protocol(engine):
    assert isinstance(engine, WorkflowEngine)


def test_park_issues_unique_handles(engine):
    handles = {engine.park() for _ in range(100)}

    assert len(handles) == 100
    assert engine.parked_count() == 100


@pytest.mark.asyncio
async def test_send_resume_releases_waiter(engine):
    handle = engine.park("exec-1")

    waiter = asyncio.create_task(engine.wait(handle, timeout=1.0))
    await asyncio.sleep(0)
    await engine.send_resume(handle, {"status": "resume"})

    assert await waiter == {"status": "resume"}
    assert engine.is_resumed(handle)
    assert engine.accepted_signals == 1
    assert engine.parked_count() == 0


@pytest.mark.asyncio
async def test_wait_after_resume_returns_immediately(engine):
    handle = engine.park()
    await engine.send_resume(handle, {"status": "resume"})

    assert await engine.wait(handle, timeout=0.01) == {"status": "resume"}


@pytest.mark.asyncio
async def test_second_signal_rejected(engine):
    handle = engine.park()
    await engine.send_resume(handle, {"status": "resume"})

    with pytest.raises(SignalRejectedError, match="already resumed"):
        await engine.send_resume(handle, {"status": "resume"})

    assert engine.accepted_signals == 1


@pytest.mark.asyncio
async def test_unknown_handle_rejected(engine):
    with pytest.raises(SignalRejectedError, match="Unknown") as exc_info:
        await engine.send_resume("no-such-handle", {})

    assert exc_info.value.handle == "no-such-handle"


@pytest.mark.asyncio
async def test_expired_handle_rejected(engine):
    handle = engine.park()
    engine.expire(handle)

    with pytest.raises(SignalRejectedError, match="expired"):
        await engine.send_resume(handle, {})
    with pytest.raises(SignalRejectedError, match="expired"):
        await engine.wait(handle)

    assert engine.parked_count() == 0


@pytest.mark.asyncio
async def test_wait_times_out(engine):
    handle = engine.park()

    with pytest.raises(TimeoutError):
        await engine.wait(handle, timeout=0.01)


@pytest.mark.asyncio
async def test_output_is_copied(engine):
    handle = engine.park()
    output = {"status": "resume"}
    await engine.send_resume(handle, output)
    output["status"] = "mutated"

    assert await engine.wait(handle) == {"status": "resume"}


@pytest.mark.asyncio
async def test_suspend_with_records_handle(engine, in_memory_store):
    task = SuspendTask(in_memory_store, "$.job.id")

    handle = await engine.suspend_with(task, {"job": {"id": "job-42"}})

    assert (await in_memory_store.get("job-42")).handle == handle
    assert engine.parked_count() == 1


@pytest.mark.asyncio
async def test_suspend_with_discards_handle_on_failure(in_memory_store):
    engine = LocalEngine()
    task = SuspendTask(in_memory_store, "$.job.id")
    first = await engine.suspend_with(task, {"job": {"id": "job-42"}})

    with pytest.raises(DuplicateSuspendError):
        await engine.suspend_with(task, {"job": {"id": "job-42"}})

    # Only the first execution is parked, and its record is untouched
    assert engine.parked_count() == 1
    assert (await in_memory_store.get("job-42")).handle == first


@pytest.mark.asyncio
async def test_collected_handles_are_released():
    engine = LocalEngine()
    handles = []
    for _ in range(1000):
        handle = engine.park()
        await engine.send_resume(handle, {"status": "resume"})
        await engine.wait(handle, timeout=0.01)
        handles.append(handle)

    assert engine.parked_count() == 0
    assert engine.tracked_count() == 0
    assert engine.is_resumed(handles[-1])

    with pytest.raises(SignalRejectedError, match="already resumed"):
        await engine.send_resume(handles[0], {"status": "resume"})
    assert engine.accepted_signals == 1000


@pytest.mark.asyncio
async def test_tombstones_are_bounded():
    engine = LocalEngine(max_spent=2)
    handles = [engine.park() for _ in range(3)]
    for handle in handles:
        engine.expire(handle)

    assert engine.tracked_count() == 0

    # Oldest tombstone evicted; the handle is still refused as unknown
    with pytest.raises(SignalRejectedError, match="Unknown"):
        await engine.send_resume(handles[0], {})
    with pytest.raises(SignalRejectedError, match="expired"):
        await engine.send_resume(handles[2], {})
