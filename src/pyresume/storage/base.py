"""
ContinuationStore - Abstract interface for continuation storage backends.

Design Pattern: Adapter Pattern
ContinuationStore defines the target interface that all storage adapters
implement. Different backends (SQLite, Redis, Memory) adapt to this common
interface.

Design Principle: Interface Segregation (SOLID)
The interface is deliberately small: conditional insert, point lookup and
idempotent delete. There is no update operation; a record goes from
created to deleted without ever changing.

Design Principle: Dependency Inversion (SOLID)
The suspend task and the resume orchestrator depend on this abstraction,
not on concrete storage implementations, so tests can run against
InMemoryContinuationStore.

Concurrency contract:
    insert() must be atomic and conditional. It is the only mutual
    exclusion primitive preventing two suspends from colliding on one job
    id. get() must return a consistent snapshot and delete() must be
    idempotent; nothing else is required of a backend for concurrent
    resume attempts to be safe.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from pyresume.models import ContinuationRecord, RetryableError


class StorageError(Exception):
    """
    Storage operation failed.

    Custom exception with context, not generic Exception.
    Permanent by default: a malformed row or a closed store will not heal
    on retry.
    """

    def is_retryable(self) -> bool:
        return False


class StoreUnavailableError(StorageError, RetryableError):
    """The backend could not be reached. Transient, retried with backoff."""

    def is_retryable(self) -> bool:
        return True


class ContinuationStore(ABC):
    """
    Abstract storage interface for pending continuations.

    Clients program to this interface, not to concrete implementations.

    Pattern Benefits:
    - Open-Closed Principle: Add new storage backends without modifying clients
    - Testability: Easy to substitute InMemoryContinuationStore
    - Flexibility: Switch storage at setup time (SQLite <-> Redis <-> Memory)
    """

    # ========================================================================
    # Core Operations - The protocol relies on these three only
    # ========================================================================

    @abstractmethod
    async def insert(self, job_id: str, handle: str) -> bool:
        """
        Record a continuation handle for a job id, unless one already exists.

        Returns a bool instead of raising: False means a live record already
        holds this job id, which the caller decides how to report. The
        existing record is never overwritten.

        Args:
            job_id: External job identifier (the store key)
            handle: Opaque continuation handle issued by the workflow engine

        Returns:
            True if the record was created, False if one already existed

        Raises:
            StorageError: If the backend operation fails
        """
        pass

    @abstractmethod
    async def get(self, job_id: str) -> ContinuationRecord | None:
        """
        Look up the pending continuation for a job id.

        Returns None when no record exists, which is a valid state: the job
        was never suspended on, or its execution has already been resumed.

        Args:
            job_id: External job identifier

        Returns:
            ContinuationRecord if found, None otherwise

        Raises:
            StorageError: If the backend operation fails
        """
        pass

    @abstractmethod
    async def delete(self, job_id: str) -> None:
        """
        Remove the continuation record for a job id.

        Idempotent: deleting an absent key is not an error.

        Args:
            job_id: External job identifier

        Raises:
            StorageError: If the backend operation fails
        """
        pass

    # ========================================================================
    # Diagnostics and Retention
    # ========================================================================

    @abstractmethod
    async def list_records(self) -> list[ContinuationRecord]:
        """
        Return every pending continuation, oldest first.

        Used for diagnostics (which executions are parked, and since when).
        Not used by the suspend/resume protocol.
        """
        pass

    @abstractmethod
    async def purge_older_than(self, cutoff: datetime) -> int:
        """
        Delete records created before cutoff.

        Retention policy hook. Purging a record abandons its parked
        execution, so this is an operator action, never part of the
        resume path.

        Args:
            cutoff: Records with created_at strictly before this are removed

        Returns:
            Number of records removed
        """
        pass

    # ========================================================================
    # Utility Operations
    # ========================================================================

    @abstractmethod
    async def reset(self) -> None:
        """
        Clear all data (for testing/demos).

        Warning: Destructive operation - only use in testing!
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """
        Close storage connections and clean up resources.

        Storage connections must be explicitly closed, not left to garbage
        collection. Use this in a try/finally block or `async with`.
        """
        pass

    async def __aenter__(self) -> ContinuationStore:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
