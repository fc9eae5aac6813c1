"""SQLite-backed storage implementation for pyresume.

Design Pattern: Adapter Pattern
SqliteContinuationStore adapts an SQLite database to the ContinuationStore
interface.

Implementation details:
- aiosqlite for async operations
- WAL mode for concurrent readers across processes
- job_id PRIMARY KEY + INSERT ... ON CONFLICT DO NOTHING for the
  conditional insert (atomic inside SQLite, no read-then-write)
- INTEGER millisecond timestamps
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path

import aiosqlite

from pyresume.models import ContinuationRecord
from pyresume.models.record import to_millis
from pyresume.storage.base import ContinuationStore, StorageError, StoreUnavailableError


class SqliteContinuationStore(ContinuationStore):
    """SQLite-backed durable storage.

    Design Principles Applied:
    - Single Responsibility: Only handles persistence (no resume logic)
    - Dependency Inversion: Implements ContinuationStore

    After __init__, the instance is not yet usable. Call connect() first.
    This follows asyncio best practices (no async in __init__).

    Usage:
        store = SqliteContinuationStore("continuations.db")
        await store.connect()
        try:
            await store.insert("job-42", handle)
        finally:
            await store.close()
    """

    def __init__(self, db_path: str):
        """Initialize storage (connection not opened yet).

        Args:
            db_path: Path to SQLite database file, or ":memory:"
        """
        self.db_path = db_path
        self._connection: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()  # Serialize access to shared connection

    @classmethod
    async def in_memory(cls) -> SqliteContinuationStore:
        """
        Create an in-memory SQLite store for testing.

        Returns:
            Connected in-memory storage instance

        Example:
            store = await SqliteContinuationStore.in_memory()
        """
        instance = cls(":memory:")
        await instance.connect()
        return instance

    def __repr__(self) -> str:
        """Return string representation of storage instance."""
        if self.db_path == ":memory:":
            return "SqliteContinuationStore(in-memory)"
        return f"SqliteContinuationStore({self.db_path})"

    async def connect(self) -> None:
        """Open database connection and initialize schema.

        Fixed initialization sequence:
        1. Open connection
        2. Enable WAL mode
        3. Create table and index
        """
        if self._connection is not None:
            return

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self._connection = await aiosqlite.connect(
                self.db_path,
                timeout=5.0,
                isolation_level=None,  # Autocommit mode
            )
        except aiosqlite.OperationalError as e:
            raise StoreUnavailableError(f"Cannot open {self.db_path}: {e}") from e

        # In-memory databases report "memory" and don't support WAL
        cursor = await self._connection.execute("PRAGMA journal_mode=WAL")
        result = await cursor.fetchone()
        await cursor.close()

        if result:
            mode = result[0].upper()
            if mode not in ("WAL", "MEMORY"):
                raise StorageError(f"Failed to enable WAL mode, got: {result[0]}")

        await self._connection.execute("PRAGMA synchronous=NORMAL")
        await self._connection.execute("PRAGMA busy_timeout=5000")

        await self._create_schema()

    async def _create_schema(self) -> None:
        """Create the continuations table.

        Schema design:
        - job_id is the primary key; uniqueness is enforced by SQLite
        - handle is stored verbatim, never parsed
        - created_at in milliseconds, indexed for retention purges
        """
        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS continuations (
                job_id TEXT PRIMARY KEY,
                handle TEXT NOT NULL,
                created_at INTEGER NOT NULL
            )
        """)

        await self._connection.execute("""
            CREATE INDEX IF NOT EXISTS idx_continuations_created
            ON continuations(created_at)
        """)

    def _check_connected(self) -> None:
        """Ensure connection established.

        Raises immediately if not connected.
        """
        if self._connection is None:
            raise StorageError("Not connected. Call connect() first.")

    async def _execute(self, sql: str, params: tuple = ()) -> aiosqlite.Cursor:
        """Run one statement, mapping lock contention to a transient error."""
        self._check_connected()
        try:
            return await self._connection.execute(sql, params)
        except aiosqlite.OperationalError as e:
            # "database is locked" under contention from other processes
            raise StoreUnavailableError(f"SQLite operation failed: {e}") from e
        except aiosqlite.Error as e:
            raise StorageError(f"SQLite operation failed: {e}") from e

    async def insert(self, job_id: str, handle: str) -> bool:
        """Insert a record unless the job id already exists.

        ON CONFLICT DO NOTHING leaves an existing row untouched and reports
        rowcount 0, so the check and the write are one atomic statement.
        """
        record = ContinuationRecord(job_id=job_id, handle=handle)

        async with self._lock:
            cursor = await self._execute(
                """
                INSERT INTO continuations (job_id, handle, created_at)
                VALUES (?, ?, ?)
                ON CONFLICT(job_id) DO NOTHING
                """,
                (record.job_id, record.handle, record.created_at_millis()),
            )
            inserted = cursor.rowcount == 1
            await cursor.close()
            return inserted

    async def get(self, job_id: str) -> ContinuationRecord | None:
        """Fetch the record for a job id, if any."""
        async with self._lock:
            cursor = await self._execute(
                """
                SELECT job_id, handle, created_at
                FROM continuations
                WHERE job_id = ?
                """,
                (job_id,),
            )
            row = await cursor.fetchone()
            await cursor.close()

        if row is None:
            return None

        return self._row_to_record(row)

    async def delete(self, job_id: str) -> None:
        """Delete the record for a job id. Absent keys are ignored."""
        async with self._lock:
            cursor = await self._execute(
                "DELETE FROM continuations WHERE job_id = ?",
                (job_id,),
            )
            await cursor.close()

    async def list_records(self) -> list[ContinuationRecord]:
        """Return all pending records, oldest first."""
        async with self._lock:
            cursor = await self._execute(
                """
                SELECT job_id, handle, created_at
                FROM continuations
                ORDER BY created_at ASC
                """
            )
            rows = await cursor.fetchall()
            await cursor.close()

        return [self._row_to_record(row) for row in rows]

    async def purge_older_than(self, cutoff: datetime) -> int:
        """Delete records created before cutoff."""
        cutoff_millis = to_millis(cutoff)

        async with self._lock:
            cursor = await self._execute(
                "DELETE FROM continuations WHERE created_at < ?",
                (cutoff_millis,),
            )
            removed = cursor.rowcount
            await cursor.close()
            return removed

    @staticmethod
    def _row_to_record(row) -> ContinuationRecord:
        try:
            return ContinuationRecord.from_millis(row[0], row[1], row[2])
        except (TypeError, ValueError) as e:
            raise StorageError(f"Failed to parse continuation row: {e}") from e

    async def reset(self) -> None:
        """Clear all data (for testing/demos).

        After reset, storage is empty but functional.
        """
        async with self._lock:
            cursor = await self._execute("DELETE FROM continuations")
            await cursor.close()

    async def close(self) -> None:
        """Close storage connections.

        Explicit resource cleanup, not relying on GC.
        """
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
