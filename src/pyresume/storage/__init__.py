"""Storage backends for pending continuations.

Provides multiple storage implementations behind a common interface:
    - ContinuationStore: Abstract interface
    - SqliteContinuationStore: SQLite-backed storage
    - RedisContinuationStore: Redis-backed distributed storage
    - InMemoryContinuationStore: In-memory storage for testing

Design: Adapter Pattern + Dependency Inversion (SOLID)
    All storage implementations adapt to the ContinuationStore interface.
    Clients depend on abstraction, not concrete implementations,
    enabling easy swapping between storage backends.
"""

from pyresume.storage.base import ContinuationStore, StorageError, StoreUnavailableError

# Lazy imports so that optional backends (redis) are only imported when used


def __getattr__(name: str):
    """Lazy import storage implementations."""
    if name == "InMemoryContinuationStore":
        from pyresume.storage.memory import InMemoryContinuationStore

        return InMemoryContinuationStore
    elif name == "RedisContinuationStore":
        from pyresume.storage.redis import RedisContinuationStore

        return RedisContinuationStore
    elif name == "SqliteContinuationStore":
        from pyresume.storage.sqlite import SqliteContinuationStore

        return SqliteContinuationStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "ContinuationStore",
    "StorageError",
    "StoreUnavailableError",
    "SqliteContinuationStore",
    "RedisContinuationStore",
    "InMemoryContinuationStore",
]
