"""Tests for the suspend task."""

import logging

import pytest

from pyresume.errors import DuplicateSuspendError, FieldPathError
from pyresume.executor.suspend import SuspendTask
from pyresume.storage import StorageError


@pytest.mark.asyncio
async def test_suspend_records_handle(in_memory_store):
    task = SuspendTask(in_memory_store, "$.detail.jobId")

    result = await task.run({"detail": {"jobId": "job-42"}}, "handle-A")

    assert result is None
    assert (await in_memory_store.get("job-42")).handle == "handle-A"


@pytest.mark.asyncio
async def test_suspend_default_path_is_top_level_id(in_memory_store):
    task = SuspendTask(in_memory_store)

    await task.run({"id": "job-1"}, "handle-A")

    assert task.id_path.segments == ("id",)
    assert await in_memory_store.get("job-1") is not None


@pytest.mark.asyncio
async def test_suspend_numeric_job_id(in_memory_store):
    task = SuspendTask(in_memory_store)

    await task.run({"id": 1234}, "handle-A")

    assert (await in_memory_store.get("1234")).handle == "handle-A"


@pytest.mark.asyncio
async def test_duplicate_suspend_raises_and_keeps_first(in_memory_store, caplog):
    task = SuspendTask(in_memory_store, name="render")
    await task.run({"id": "job-42"}, "handle-A")

    with caplog.at_level(logging.ERROR, logger="pyresume.executor.suspend"):
        with pytest.raises(DuplicateSuspendError) as exc_info:
            await task.run({"id": "job-42"}, "handle-B")

    assert exc_info.value.job_id == "job-42"
    assert exc_info.value.is_retryable() is False
    assert (await in_memory_store.get("job-42")).handle == "handle-A"
    assert "[render]" in caplog.text
    assert "job-42" in caplog.text


@pytest.mark.asyncio
async def test_missing_job_id_in_state(in_memory_store):
    task = SuspendTask(in_memory_store, "$.job.id")

    with pytest.raises(FieldPathError):
        await task.run({"job": {}}, "handle-A")

    assert await in_memory_store.list_records() == []


def test_malformed_path_fails_at_construction(in_memory_store):
    with pytest.raises(FieldPathError):
        SuspendTask(in_memory_store, "job.id")


@pytest.mark.asyncio
async def test_store_failure_propagates(in_memory_store):
    task = SuspendTask(in_memory_store)
    await in_memory_store.close()

    with pytest.raises(StorageError):
        await task.run({"id": "job-1"}, "handle-A")


@pytest.mark.asyncio
async def test_suspend_direct_form(sqlite_memory_store):
    task = SuspendTask(sqlite_memory_store)

    await task.suspend("job-9", "handle-A")

    assert (await sqlite_memory_store.get("job-9")).handle == "handle-A"
