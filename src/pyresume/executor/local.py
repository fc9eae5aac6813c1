"""In-process workflow engine.

LocalEngine is a minimal engine with the two primitives the broker relies
on: a suspend that parks an execution behind an opaque handle, and a
resume-by-handle that releases it. It backs single-process deployments,
demos and tests.

Design: Information Hiding (Parnas)
Parked executions are tracked per engine instance with an asyncio.Event
and the delivered output, so nothing leaks between engines and nothing is
module-global. Once a resumed execution has collected its output (or a
handle expires) the entry is dropped and only a bounded tombstone remains,
so reused handles are still rejected.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from uuid_extensions import uuid7

from pyresume.errors import SignalRejectedError

if TYPE_CHECKING:
    from pyresume.executor.suspend import SuspendTask

logger = logging.getLogger(__name__)

__all__ = ["LocalEngine"]


@dataclass
class _Parked:
    execution_id: str
    event: asyncio.Event = field(default_factory=asyncio.Event)
    output: dict[str, Any] | None = None
    resumed: bool = False


class LocalEngine:
    """Engine that parks coroutines until a resume signal arrives.

    Handles are single use: the first send_resume() for a handle wins and
    later ones are rejected, as are signals for expired or unknown handles.

    Usage:
        engine = LocalEngine()
        handle = await engine.suspend_with(task, {"job": {"id": "job-42"}})
        output = await engine.wait(handle)   # returns once resumed
    """

    def __init__(self, max_spent: int = 10_000):
        self._parked: dict[str, _Parked] = {}
        # handle -> rejection reason, oldest first
        self._spent: OrderedDict[str, str] = OrderedDict()
        self._max_spent = max_spent
        self._lock = asyncio.Lock()
        self._accepted = 0

    def __repr__(self) -> str:
        return f"LocalEngine(parked={self.parked_count()})"

    @property
    def accepted_signals(self) -> int:
        """Number of resume signals accepted since creation."""
        return self._accepted

    def parked_count(self) -> int:
        """Number of executions still waiting for a signal."""
        return sum(1 for p in self._parked.values() if not p.resumed)

    def tracked_count(self) -> int:
        """Number of handles held in full, parked or resumed but not yet collected."""
        return len(self._parked)

    def park(self, execution_id: str | None = None) -> str:
        """Park an execution and issue its continuation handle.

        Args:
            execution_id: Optional label for logging

        Returns:
            A fresh, opaque handle
        """
        handle = str(uuid7())
        self._parked[handle] = _Parked(execution_id=execution_id or handle)
        logger.debug(f"Parked execution {execution_id or handle}")
        return handle

    async def suspend_with(
        self, task: SuspendTask, state: dict[str, Any], execution_id: str | None = None
    ) -> str:
        """Park an execution and run the suspend task synchronously.

        If the task fails (for example with a duplicate job id), the handle
        is discarded so it can never be resumed, and the error propagates.

        Returns:
            The handle the task recorded
        """
        handle = self.park(execution_id)
        try:
            await task.run(state, handle)
        except Exception:
            self._parked.pop(handle, None)
            raise
        return handle

    async def send_resume(self, handle: str, output: dict[str, Any]) -> None:
        """Release the execution parked behind handle.

        Raises:
            SignalRejectedError: Unknown, expired or already-resumed handle
        """
        async with self._lock:
            self._check_spent(handle)
            parked = self._parked.get(handle)
            if parked is None:
                raise SignalRejectedError("Unknown continuation handle", handle=handle)
            if parked.resumed:
                raise SignalRejectedError("Execution already resumed", handle=handle)

            parked.output = dict(output)
            parked.resumed = True
            self._accepted += 1
            parked.event.set()

        logger.debug(f"Resumed execution {parked.execution_id}")

    async def wait(self, handle: str, timeout: float | None = None) -> dict[str, Any]:
        """Block until the execution behind handle is resumed.

        Args:
            handle: Handle returned by park()
            timeout: Seconds to wait, None for no limit

        Returns:
            The output delivered with the resume signal

        Raises:
            SignalRejectedError: Unknown or expired handle
            TimeoutError: No signal within timeout
        """
        self._check_spent(handle)
        parked = self._parked.get(handle)
        if parked is None:
            raise SignalRejectedError("Unknown continuation handle", handle=handle)

        await asyncio.wait_for(parked.event.wait(), timeout=timeout)

        # Output collected; keep only a tombstone
        self._retire(handle, "Execution already resumed")
        return dict(parked.output or {})

    def expire(self, handle: str) -> None:
        """Invalidate a handle, e.g. when its execution timed out or was stopped."""
        self._retire(handle, "Continuation handle expired")

    def is_resumed(self, handle: str) -> bool:
        parked = self._parked.get(handle)
        if parked is not None:
            return parked.resumed
        return self._spent.get(handle) == "Execution already resumed"

    def _check_spent(self, handle: str) -> None:
        reason = self._spent.get(handle)
        if reason is not None:
            raise SignalRejectedError(reason, handle=handle)

    def _retire(self, handle: str, reason: str) -> None:
        if self._parked.pop(handle, None) is None:
            return
        self._spent[handle] = reason
        while len(self._spent) > self._max_spent:
            self._spent.popitem(last=False)
