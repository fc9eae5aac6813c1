"""Inbound event stream interface.

The listener pulls events from an EventSource. Real deployments adapt a
bus subscription, a queue consumer or a webhook receiver to this protocol;
QueueEventSource is the in-process implementation.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol, runtime_checkable

from pyresume.events.models import CompletionEvent

__all__ = ["EventSource", "QueueEventSource"]


@runtime_checkable
class EventSource(Protocol):
    """Protocol for the inbound event stream.

    **Contract**:
    - receive() returns the next event, or None when nothing arrived
      within timeout seconds.
    - Delivery may be at-least-once and unordered across events; the
      listener and orchestrator tolerate both.
    """

    async def receive(self, timeout: float) -> CompletionEvent | None:
        """Wait up to timeout seconds for the next event."""
        ...


class QueueEventSource:
    """EventSource backed by an asyncio.Queue.

    Usage:
        source = QueueEventSource()
        await source.publish({"source": "acme.jobs", "detail-type": "Done",
                              "detail": {"id": "job-42"}})
    """

    def __init__(self, maxsize: int = 0):
        self._queue: asyncio.Queue[CompletionEvent] = asyncio.Queue(maxsize=maxsize)

    def __len__(self) -> int:
        return self._queue.qsize()

    def __bool__(self) -> bool:
        # An empty queue is still a live source
        return True

    async def publish(self, event: CompletionEvent | dict[str, Any]) -> CompletionEvent:
        """Enqueue an event (dicts are parsed as envelopes).

        Returns:
            The enqueued CompletionEvent
        """
        if isinstance(event, dict):
            event = CompletionEvent.from_dict(event)
        await self._queue.put(event)
        return event

    async def receive(self, timeout: float) -> CompletionEvent | None:
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except TimeoutError:
            return None
