"""Redis-based continuation store.

Provides a Redis backend so suspend tasks and resume orchestrators can run
on separate machines without a shared filesystem.

Data Structures:
- pyresume:cont:{job_id} (STRING): JSON-serialized ContinuationRecord

Key Features:
- Conditional insert: SET ... NX is atomic on the server
- Retention: optional EX expiry on every record
- Network-accessible: connection pooling via redis-py

Design: Adapter Pattern
Implements ContinuationStore for Redis, adapting the key-value store to
the ContinuationStore interface.
"""

from __future__ import annotations

from datetime import datetime, timedelta

try:
    import redis.asyncio as redis
    from redis.exceptions import ConnectionError as RedisConnectionError
    from redis.exceptions import RedisError
    from redis.exceptions import TimeoutError as RedisTimeoutError
except ImportError:
    raise ImportError(
        "redis-py is required for RedisContinuationStore. Install with: pip install redis"
    )

from pyresume.models import ContinuationRecord
from pyresume.storage.base import ContinuationStore, StorageError, StoreUnavailableError

KEY_PREFIX = "pyresume:cont:"


class RedisContinuationStore(ContinuationStore):
    """Redis continuation store using connection pooling.

    All dependencies (Redis connection) passed explicitly.

    Usage:
        store = RedisContinuationStore("redis://localhost:6379")
        await store.connect()

        await store.insert("job-42", handle)
        record = await store.get("job-42")
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        max_connections: int = 16,
        ttl: timedelta | None = None,
        client: redis.Redis | None = None,
    ):
        """Initialize Redis continuation store.

        Default redis_url works for local development.

        Args:
            redis_url: Redis connection URL
            max_connections: Maximum pool size
            ttl: Optional expiry applied to every record (retention policy)
            client: Pre-built client to use instead of connecting to redis_url
        """
        if ttl is not None and ttl.total_seconds() < 1:
            raise ValueError("ttl must be at least one second")

        self._redis_url = redis_url
        self._max_connections = max_connections
        self._ttl = ttl
        self._redis: redis.Redis | None = client

    def __repr__(self) -> str:
        return f"RedisContinuationStore({self._redis_url})"

    async def connect(self) -> None:
        """Establish Redis connection pool."""
        if self._redis is not None:
            return

        self._redis = redis.from_url(
            self._redis_url,
            decode_responses=False,
            max_connections=self._max_connections,
        )

    async def close(self) -> None:
        """Close Redis connection pool."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    def _check_connected(self) -> None:
        """Ensure connection established.

        Raises immediately if not connected.
        """
        if self._redis is None:
            raise StorageError("Not connected. Call connect() first.")

    @staticmethod
    def _record_key(job_id: str) -> str:
        """Build Redis key for a continuation record."""
        return f"{KEY_PREFIX}{job_id}"

    @staticmethod
    def _decode(raw: bytes | str) -> ContinuationRecord:
        try:
            return ContinuationRecord.from_json(raw)
        except ValueError as e:
            raise StorageError(str(e)) from e

    async def insert(self, job_id: str, handle: str) -> bool:
        """Store a record with SET NX; an existing key is left untouched."""
        self._check_connected()
        record = ContinuationRecord(job_id=job_id, handle=handle)

        try:
            created = await self._redis.set(
                self._record_key(job_id),
                record.to_json(),
                nx=True,
                ex=self._ttl,
            )
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise StoreUnavailableError(f"Redis unavailable: {e}") from e
        except RedisError as e:
            raise StorageError(f"Redis SET failed for {job_id}: {e}") from e

        # SET NX returns None when the key exists
        return bool(created)

    async def get(self, job_id: str) -> ContinuationRecord | None:
        """Fetch and decode the record for a job id."""
        self._check_connected()

        try:
            raw = await self._redis.get(self._record_key(job_id))
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise StoreUnavailableError(f"Redis unavailable: {e}") from e
        except RedisError as e:
            raise StorageError(f"Redis GET failed for {job_id}: {e}") from e

        if raw is None:
            return None

        return self._decode(raw)

    async def delete(self, job_id: str) -> None:
        """DEL the record key. DEL of a missing key is a no-op."""
        self._check_connected()

        try:
            await self._redis.delete(self._record_key(job_id))
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise StoreUnavailableError(f"Redis unavailable: {e}") from e
        except RedisError as e:
            raise StorageError(f"Redis DEL failed for {job_id}: {e}") from e

    async def _scan_records(self) -> list[ContinuationRecord]:
        records = []
        try:
            async for key in self._redis.scan_iter(match=f"{KEY_PREFIX}*"):
                raw = await self._redis.get(key)
                # Key may have expired or been resumed between SCAN and GET
                if raw is not None:
                    records.append(self._decode(raw))
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise StoreUnavailableError(f"Redis unavailable: {e}") from e
        except RedisError as e:
            raise StorageError(f"Redis SCAN failed: {e}") from e
        return records

    async def list_records(self) -> list[ContinuationRecord]:
        """Return all pending records, oldest first (uses SCAN, not KEYS)."""
        self._check_connected()
        records = await self._scan_records()
        return sorted(records, key=lambda r: r.created_at)

    async def purge_older_than(self, cutoff: datetime) -> int:
        """Delete records created before cutoff."""
        self._check_connected()
        removed = 0
        for record in await self._scan_records():
            if record.created_at < cutoff:
                await self.delete(record.job_id)
                removed += 1
        return removed

    async def reset(self) -> None:
        """Delete every continuation key (for testing/demos)."""
        self._check_connected()
        for record in await self._scan_records():
            await self.delete(record.job_id)
