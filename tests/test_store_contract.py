"""
Contract tests run against every ContinuationStore backend.

The broker depends on four guarantees: insert never overwrites a live
record, get reflects the latest write, delete is idempotent, and a key
is reusable once deleted.
"""

from datetime import UTC, datetime, timedelta

import pytest

from pyresume.models import ContinuationRecord


@pytest.mark.asyncio
async def test_insert_then_get_returns_record(store):
    """A fresh insert succeeds and the handle is readable."""
    assert await store.insert("job-42", "handle-A") is True

    record = await store.get("job-42")
    assert isinstance(record, ContinuationRecord)
    assert record.job_id == "job-42"
    assert record.handle == "handle-A"


@pytest.mark.asyncio
async def test_double_insert_rejected_and_handle_unchanged(store):
    """Second insert for a live job id returns False and keeps the first handle."""
    assert await store.insert("job-42", "handle-A") is True
    assert await store.insert("job-42", "handle-B") is False

    record = await store.get("job-42")
    assert record.handle == "handle-A"


@pytest.mark.asyncio
async def test_get_unknown_returns_none(store):
    assert await store.get("job-unknown") is None


@pytest.mark.asyncio
async def test_insert_get_delete_get_round_trip(store):
    """After delete the record is gone and the key can be inserted again."""
    await store.insert("job-7", "handle-A")
    assert (await store.get("job-7")).handle == "handle-A"

    await store.delete("job-7")
    assert await store.get("job-7") is None

    assert await store.insert("job-7", "handle-B") is True
    assert (await store.get("job-7")).handle == "handle-B"


@pytest.mark.asyncio
async def test_delete_is_idempotent(store):
    """Deleting a missing key is a no-op, as is deleting twice."""
    await store.delete("never-inserted")

    await store.insert("job-1", "h")
    await store.delete("job-1")
    await store.delete("job-1")

    assert await store.get("job-1") is None


@pytest.mark.asyncio
async def test_keys_are_independent(store):
    await store.insert("job-1", "h1")
    await store.insert("job-2", "h2")

    await store.delete("job-1")

    assert await store.get("job-1") is None
    assert (await store.get("job-2")).handle == "h2"


@pytest.mark.asyncio
async def test_handle_stored_verbatim(store):
    """Handles are opaque: long, punctuated tokens come back byte-for-byte."""
    handle = "AAAAKgAAAAIAAAAA/" + "x" * 500 + "==:{\"json\": true}"
    await store.insert("job-opaque", handle)

    assert (await store.get("job-opaque")).handle == handle


@pytest.mark.asyncio
async def test_list_records_returns_all_pending(store):
    for i in range(5):
        await store.insert(f"job-{i}", f"handle-{i}")
    await store.delete("job-2")

    records = await store.list_records()

    assert sorted(r.job_id for r in records) == ["job-0", "job-1", "job-3", "job-4"]


@pytest.mark.asyncio
async def test_purge_older_than_removes_only_old_records(store):
    await store.insert("job-old", "h1")
    await store.insert("job-new", "h2")

    # Nothing is older than an hour ago
    assert await store.purge_older_than(datetime.now(UTC) - timedelta(hours=1)) == 0

    # Everything is older than an hour from now
    assert await store.purge_older_than(datetime.now(UTC) + timedelta(hours=1)) == 2
    assert await store.list_records() == []


@pytest.mark.asyncio
async def test_reset_clears_everything(store):
    await store.insert("job-1", "h1")
    await store.insert("job-2", "h2")

    await store.reset()

    assert await store.get("job-1") is None
    assert await store.list_records() == []
    assert await store.insert("job-1", "h3") is True


@pytest.mark.asyncio
async def test_created_at_is_recent_utc(store):
    before = datetime.now(UTC) - timedelta(seconds=1)
    await store.insert("job-ts", "h")
    after = datetime.now(UTC) + timedelta(seconds=1)

    record = await store.get("job-ts")
    assert record.created_at.tzinfo is not None
    assert before <= record.created_at <= after


@pytest.mark.asyncio
async def test_empty_job_id_rejected(store):
    with pytest.raises(ValueError):
        await store.insert("", "h")
