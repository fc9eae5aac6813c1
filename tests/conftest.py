"""
Pytest configuration and fixtures for pyresume tests.

Provides reusable fixtures for storage backends, engine doubles and
broker configuration.
"""

import asyncio
import shutil
import tempfile
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any
from uuid import uuid4

import pytest

from pyresume.executor.local import LocalEngine
from pyresume.models import RetryPolicy
from pyresume.storage import InMemoryContinuationStore, SqliteContinuationStore
from pyresume.storage.redis import RedisContinuationStore


def pytest_sessionfinish(session, exitstatus):
    """Force cleanup after all tests complete to prevent CI hanging."""
    import os

    # In CI environments only, force exit to prevent hanging
    if os.getenv("CI") or os.getenv("GITHUB_ACTIONS"):
        os._exit(exitstatus)


# Millisecond-scale retries so failure tests stay fast
QUICK_RETRY = RetryPolicy(max_attempts=3, initial_delay_ms=1, max_delay_ms=5, backoff_multiplier=2.0)


# ==============================================================================
# Test doubles
# ==============================================================================


class FakeRedis:
    """In-process stand-in for a redis.asyncio.Redis client.

    Implements only the commands RedisContinuationStore issues. Set
    fail_with to make every command raise.
    """

    def __init__(self):
        self.data: dict[str, bytes] = {}
        self.expiry: dict[str, Any] = {}
        self.closed = False
        self.fail_with: Exception | None = None

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    @staticmethod
    def _key(key: str | bytes) -> str:
        return key.decode() if isinstance(key, bytes) else key

    async def set(self, key, value, nx=False, ex=None):
        self._maybe_fail()
        key = self._key(key)
        if nx and key in self.data:
            return None
        self.data[key] = value.encode() if isinstance(value, str) else value
        self.expiry[key] = ex
        return True

    async def get(self, key):
        self._maybe_fail()
        return self.data.get(self._key(key))

    async def delete(self, *keys):
        self._maybe_fail()
        removed = 0
        for key in keys:
            if self.data.pop(self._key(key), None) is not None:
                removed += 1
        return removed

    async def scan_iter(self, match=None):
        self._maybe_fail()
        prefix = (match or "").rstrip("*")
        for key in list(self.data):
            if key.startswith(prefix):
                yield key.encode()

    async def aclose(self):
        self.closed = True


class RecordingEngine:
    """Engine double that records every signal.

    failures are raised in order, one per call, before calls succeed.
    """

    def __init__(self, failures: list[Exception] | None = None, delay: float = 0.0):
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.failures = list(failures or [])
        self.delay = delay

    async def send_resume(self, handle: str, output: dict[str, Any]) -> None:
        self.calls.append((handle, dict(output)))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.failures:
            raise self.failures.pop(0)

    @property
    def handles(self) -> list[str]:
        return [handle for handle, _ in self.calls]


class FlakyStore(InMemoryContinuationStore):
    """In-memory store whose operations fail on a script.

    failures maps an operation name ("get", "delete", ...) to exceptions
    raised in order by successive calls of that operation.
    """

    def __init__(self, failures: dict[str, list[Exception]] | None = None):
        super().__init__()
        self.failures = {op: list(errors) for op, errors in (failures or {}).items()}
        self.calls: dict[str, int] = {}

    def _script(self, op: str) -> None:
        self.calls[op] = self.calls.get(op, 0) + 1
        pending = self.failures.get(op)
        if pending:
            raise pending.pop(0)

    async def get(self, job_id):
        self._script("get")
        return await super().get(job_id)

    async def delete(self, job_id):
        self._script("delete")
        await super().delete(job_id)


# ==============================================================================
# Storage fixtures
# ==============================================================================


@pytest.fixture
async def in_memory_store() -> AsyncGenerator[InMemoryContinuationStore, None]:
    """Async in-memory store fixture with automatic cleanup."""
    store = InMemoryContinuationStore()
    yield store
    await store.reset()


@pytest.fixture
async def sqlite_memory_store() -> AsyncGenerator[SqliteContinuationStore, None]:
    """Async SQLite in-memory store fixture with automatic cleanup."""
    store = SqliteContinuationStore(":memory:")
    await store.connect()
    yield store
    await store.close()


@pytest.fixture
def temp_db_path():
    """Temporary database file path with automatic cleanup."""
    tmpdir = Path(tempfile.mkdtemp())
    db_path = tmpdir / "test.db"
    yield db_path
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
async def sqlite_file_store(temp_db_path: Path) -> AsyncGenerator[SqliteContinuationStore, None]:
    """Async SQLite file-based store fixture with automatic cleanup."""
    store = SqliteContinuationStore(str(temp_db_path))
    await store.connect()
    yield store
    await store.close()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
async def redis_store(fake_redis: FakeRedis) -> AsyncGenerator[RedisContinuationStore, None]:
    """Redis store backed by FakeRedis (no server needed)."""
    store = RedisContinuationStore(client=fake_redis)
    await store.connect()
    yield store
    await store.close()


@pytest.fixture(params=["memory", "sqlite", "redis"])
async def store(request):
    """Every store backend, for contract tests."""
    if request.param == "memory":
        backend = InMemoryContinuationStore()
    elif request.param == "sqlite":
        backend = SqliteContinuationStore(":memory:")
        await backend.connect()
    else:
        backend = RedisContinuationStore(client=FakeRedis())
        await backend.connect()
    yield backend
    await backend.close()


# ==============================================================================
# Engine fixtures
# ==============================================================================


@pytest.fixture
def engine() -> LocalEngine:
    """In-process engine."""
    return LocalEngine()


@pytest.fixture
def recording_engine() -> RecordingEngine:
    """Engine double that accepts every signal and records it."""
    return RecordingEngine()


@pytest.fixture
def random_job_id() -> str:
    """Generate random job ID for testing."""
    return f"job-{uuid4()}"


@pytest.fixture
def quick_retry() -> RetryPolicy:
    return QUICK_RETRY


@pytest.fixture
def completion_pattern() -> dict[str, Any]:
    """Pattern for the transcoder completion events used across tests."""
    return {
        "source": ["acme.transcoder"],
        "detail-type": ["Job Completed"],
        "detail": {"status": ["SUCCEEDED"]},
    }


def completion_event(job_id: str, status: str = "SUCCEEDED", **detail) -> dict[str, Any]:
    """Build a transcoder completion envelope for job_id."""
    return {
        "source": "acme.transcoder",
        "detail-type": "Job Completed",
        "detail": {"id": job_id, "status": status, **detail},
    }


@pytest.fixture
def make_event():
    return completion_event
