"""In-memory storage implementation for pyresume.

Design Pattern: Adapter Pattern
InMemoryContinuationStore adapts a dictionary to the ContinuationStore
interface.

Instance is immediately usable after __init__.
"""

from __future__ import annotations

import asyncio
from datetime import datetime

from pyresume.models import ContinuationRecord
from pyresume.storage.base import ContinuationStore, StorageError


class InMemoryContinuationStore(ContinuationStore):
    """In-memory storage for testing and single-process use.

    Can be substituted for SqliteContinuationStore without changing client code.

    Usage:
        store = InMemoryContinuationStore()
        await store.insert("job-42", handle)
    """

    def __init__(self):
        """Initialize empty in-memory storage."""
        # Storage: {job_id: ContinuationRecord}
        self._records: dict[str, ContinuationRecord] = {}

        # Makes check-then-insert atomic across coroutines
        self._lock = asyncio.Lock()

        self._closed = False

    def __repr__(self) -> str:
        """Return string representation of storage instance."""
        return "InMemoryContinuationStore"

    def __len__(self) -> int:
        return len(self._records)

    def _check_open(self) -> None:
        if self._closed:
            raise StorageError("Store is closed")

    async def insert(self, job_id: str, handle: str) -> bool:
        """Record a continuation unless the job id is already taken."""
        self._check_open()
        record = ContinuationRecord(job_id=job_id, handle=handle)

        async with self._lock:
            if job_id in self._records:
                return False
            self._records[job_id] = record
            return True

    async def get(self, job_id: str) -> ContinuationRecord | None:
        """Look up the pending continuation for a job id."""
        self._check_open()
        async with self._lock:
            return self._records.get(job_id)

    async def delete(self, job_id: str) -> None:
        """Remove a record; absent keys are ignored."""
        self._check_open()
        async with self._lock:
            self._records.pop(job_id, None)

    async def list_records(self) -> list[ContinuationRecord]:
        """Return all pending records, oldest first."""
        self._check_open()
        async with self._lock:
            return sorted(self._records.values(), key=lambda r: r.created_at)

    async def purge_older_than(self, cutoff: datetime) -> int:
        """Drop records created before cutoff."""
        self._check_open()
        async with self._lock:
            expired = [job_id for job_id, r in self._records.items() if r.created_at < cutoff]
            for job_id in expired:
                del self._records[job_id]
            return len(expired)

    async def reset(self) -> None:
        """Clear all records."""
        async with self._lock:
            self._records.clear()

    async def close(self) -> None:
        """Mark the store closed. Further operations raise StorageError."""
        self._closed = True
