"""Inbound completion event envelope."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from uuid_extensions import uuid7

__all__ = ["CompletionEvent"]


@dataclass(frozen=True)
class CompletionEvent:
    """
    One event from the inbound stream.

    The envelope mirrors the common event-bus layout: a source, a detail
    type and a structured detail payload. ``raw`` keeps the full envelope
    so that patterns and field paths can address any top-level field.

    Attributes:
        source: Category/source of the event (e.g. "acme.transcoder")
        detail_type: Event type (e.g. "Job Completed")
        detail: Structured payload
        id: Event id; redeliveries of one event share it
        time: When the event was emitted
        raw: Full envelope as a dict
    """

    source: str
    detail_type: str
    detail: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid7()))
    time: datetime = field(default_factory=lambda: datetime.now(UTC))
    raw: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.raw:
            # frozen dataclass: build the envelope once
            object.__setattr__(self, "raw", self.envelope())

    def envelope(self) -> dict[str, Any]:
        """Return the event in envelope form (dash-separated keys)."""
        return {
            "id": self.id,
            "source": self.source,
            "detail-type": self.detail_type,
            "time": self.time.isoformat(),
            "detail": self.detail,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CompletionEvent:
        """Build an event from an envelope dict.

        Accepts both ``detail-type`` and ``detail_type``. Unknown top-level
        keys are preserved in ``raw``.

        Raises:
            ValueError: If source or detail type is missing
        """
        source = data.get("source")
        detail_type = data.get("detail-type", data.get("detail_type"))
        if not isinstance(source, str) or not isinstance(detail_type, str):
            raise ValueError("event envelope requires string 'source' and 'detail-type'")

        detail = data.get("detail") or {}
        if not isinstance(detail, dict):
            raise ValueError("event 'detail' must be an object")

        time_value = data.get("time")
        if isinstance(time_value, datetime):
            time = time_value
        elif isinstance(time_value, str):
            time = datetime.fromisoformat(time_value.replace("Z", "+00:00"))
        else:
            time = datetime.now(UTC)

        raw = dict(data)
        if "detail-type" not in raw:
            raw["detail-type"] = detail_type
            raw.pop("detail_type", None)

        return cls(
            source=source,
            detail_type=detail_type,
            detail=detail,
            id=str(data.get("id") or uuid7()),
            time=time,
            raw=raw,
        )

    def __repr__(self) -> str:
        return (
            f"CompletionEvent(id={self.id!r}, source={self.source!r}, "
            f"detail_type={self.detail_type!r})"
        )
