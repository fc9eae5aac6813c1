"""Continuation record stored while an execution is parked."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_MILLISECOND = timedelta(milliseconds=1)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def to_millis(moment: datetime) -> int:
    """Return an aware datetime as integer milliseconds since the epoch."""
    return (moment - _EPOCH) // _MILLISECOND


@dataclass(frozen=True)
class ContinuationRecord:
    """
    Pending resumption of one suspended execution.

    The record exists exactly while an execution is parked awaiting the
    external job identified by ``job_id``. It is created by the suspend
    task, read by the resume orchestrator, and deleted once a resume
    signal has been delivered (or refused). There is no update in place.

    Attributes:
        job_id: External job identifier, the store's unique key
        handle: Engine-issued continuation handle, treated as opaque
        created_at: When the record was written (diagnostics and retention only)
    """

    job_id: str
    handle: str
    created_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if not isinstance(self.job_id, str) or not self.job_id:
            raise ValueError("job_id must be a non-empty string")
        if not isinstance(self.handle, str) or not self.handle:
            raise ValueError("handle must be a non-empty string")

    def created_at_millis(self) -> int:
        """Return created_at as integer milliseconds since the epoch."""
        return to_millis(self.created_at)

    @classmethod
    def from_millis(cls, job_id: str, handle: str, created_at_ms: int) -> ContinuationRecord:
        """Rebuild a record from a stored millisecond timestamp."""
        return cls(
            job_id=job_id,
            handle=handle,
            created_at=_EPOCH + timedelta(milliseconds=created_at_ms),
        )

    def to_json(self) -> str:
        """Serialize for key-value backends that store a single value."""
        return json.dumps(
            {
                "job_id": self.job_id,
                "handle": self.handle,
                "created_at": self.created_at_millis(),
            }
        )

    @classmethod
    def from_json(cls, data: str | bytes) -> ContinuationRecord:
        """Inverse of to_json().

        Raises:
            ValueError: If the document is not a serialized record
        """
        try:
            doc = json.loads(data)
            return cls.from_millis(doc["job_id"], doc["handle"], int(doc["created_at"]))
        except (KeyError, TypeError, json.JSONDecodeError) as e:
            raise ValueError(f"Malformed continuation record: {e}") from e

    def __repr__(self) -> str:
        # Handles can be long engine tokens; keep log lines readable.
        short = self.handle if len(self.handle) <= 16 else f"{self.handle[:13]}..."
        return (
            f"ContinuationRecord(job_id={self.job_id!r}, handle={short!r}, "
            f"created_at={self.created_at.isoformat()})"
        )
