"""Resume orchestrator: look up, signal, clean up.

Drives one resume attempt per completion event through three sequential
steps, each depending on the previous one:

1. LOOKUP   - read the continuation record for the job id
2. SIGNAL   - deliver the resume signal to the engine with the stored handle
3. CLEANUP  - delete the record so the handle cannot be reused

State machine:

    START → LOOKUP → SKIPPED
                   → SIGNAL → SIGNAL_OK       → CLEANUP → DONE
                            → SIGNAL_REJECTED → CLEANUP → DONE
                            → SIGNAL_FAILED             → DONE

Design: Error Handling
Expected failures become ResumeOutcome values; only programming errors
propagate. A missing record is the idempotency boundary against
at-least-once delivery: duplicates end in SKIPPED without touching the
engine. Transient failures are retried at the step that failed, never by
re-running earlier steps.

Concurrent deliveries for the same job id are serialized by a per-job lock
held across the engine signal, so a duplicate that arrives mid-signal
waits and then ends in SKIPPED instead of signalling a second time.
Different job ids never contend.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from pyresume.errors import SignalRejectedError, SignalTransportError
from pyresume.events.models import CompletionEvent
from pyresume.executor.engine import WorkflowEngine
from pyresume.models import ContinuationRecord, ResumeOutcome, ResumeState, RetryPolicy
from pyresume.storage.base import ContinuationStore, StorageError

logger = logging.getLogger(__name__)

__all__ = ["ResumeOrchestrator", "DEFAULT_RESUME_OUTPUT"]

T = TypeVar("T")

DEFAULT_RESUME_OUTPUT: dict[str, Any] = {"status": "resume"}


class ResumeOrchestrator:
    """Runs resume attempts against a store and an engine.

    All dependencies passed explicitly, no globals.

    Usage:
        orchestrator = ResumeOrchestrator(store, engine)
        outcome = await orchestrator.resume("job-42")
    """

    def __init__(
        self,
        store: ContinuationStore,
        engine: WorkflowEngine,
        *,
        name: str = "resume",
        output: dict[str, Any] | None = None,
        forward_event_detail: bool = False,
        signal_retry: RetryPolicy = RetryPolicy.FAST,
        store_retry: RetryPolicy = RetryPolicy.FAST,
        signal_timeout: float | None = 10.0,
    ):
        """Create an orchestrator.

        Args:
            store: Continuation store holding pending handles
            engine: Client used to deliver resume signals
            name: Broker instance name, used in log messages
            output: Fixed payload sent with every resume signal
            forward_event_detail: Also send the triggering event's detail
            signal_retry: Retry policy for transient signal failures
            store_retry: Retry policy for transient store failures
            signal_timeout: Seconds before a signal call counts as transient failure
        """
        self._store = store
        self._engine = engine
        self._name = name
        self._output = dict(DEFAULT_RESUME_OUTPUT if output is None else output)
        self._forward_event_detail = forward_event_detail
        self._signal_retry = signal_retry
        self._store_retry = store_retry
        self._signal_timeout = signal_timeout

        # Per-job serialization so duplicate deliveries inside this process
        # observe each other's delete. Entries are dropped when idle.
        self._job_locks: dict[str, asyncio.Lock] = {}
        self._job_lock_users: dict[str, int] = {}

    @asynccontextmanager
    async def _job_lock(self, job_id: str) -> AsyncIterator[None]:
        lock = self._job_locks.setdefault(job_id, asyncio.Lock())
        self._job_lock_users[job_id] = self._job_lock_users.get(job_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._job_lock_users[job_id] -= 1
            if self._job_lock_users[job_id] == 0:
                del self._job_lock_users[job_id]
                del self._job_locks[job_id]

    def build_output(self, event: CompletionEvent | None = None) -> dict[str, Any]:
        """Return the payload for a resume signal."""
        output = dict(self._output)
        if self._forward_event_detail and event is not None:
            output["event"] = event.detail
        return output

    async def resume(self, job_id: str, event: CompletionEvent | None = None) -> ResumeOutcome:
        """Run one resume attempt for job_id to a terminal state.

        Args:
            job_id: Job id extracted from the completion event
            event: The triggering event, used when forwarding event detail

        Returns:
            ResumeOutcome in state SKIPPED or DONE
        """
        async with self._job_lock(job_id):
            return await self._run(job_id, event)

    async def _run(self, job_id: str, event: CompletionEvent | None) -> ResumeOutcome:
        history = [ResumeState.START, ResumeState.LOOKUP]

        # Step 1: LOOKUP
        try:
            record = await self._store_call("lookup", job_id, lambda: self._store.get(job_id))
        except StorageError as e:
            logger.error(
                f"[{self._name}] Lookup failed for job {job_id}, record left in place "
                f"for redelivery: {e}"
            )
            history.append(ResumeState.DONE)
            return ResumeOutcome(
                job_id=job_id,
                state=ResumeState.DONE,
                history=tuple(history),
                error=f"lookup failed: {e}",
            )

        if record is None:
            logger.debug(f"[{self._name}] No pending continuation for job {job_id}, skipping")
            history.append(ResumeState.SKIPPED)
            return ResumeOutcome(
                job_id=job_id,
                state=ResumeState.SKIPPED,
                history=tuple(history),
            )

        # Step 2: SIGNAL
        history.append(ResumeState.SIGNAL)
        signal_state, attempts, error = await self._signal(record, self.build_output(event))
        history.append(signal_state)

        if signal_state == ResumeState.SIGNAL_FAILED:
            history.append(ResumeState.DONE)
            return ResumeOutcome(
                job_id=job_id,
                state=ResumeState.DONE,
                signal_state=signal_state,
                history=tuple(history),
                signal_attempts=attempts,
                error=error,
            )

        # Step 3: CLEANUP (after acceptance and after rejection alike)
        history.append(ResumeState.CLEANUP)
        cleaned_up = True
        try:
            await self._store_call("cleanup", job_id, lambda: self._store.delete(job_id))
        except StorageError as e:
            cleaned_up = False
            if signal_state == ResumeState.SIGNAL_OK:
                logger.error(
                    f"[{self._name}] Job {job_id} resumed but its continuation record "
                    f"could not be deleted; manual cleanup required: {e}"
                )
            else:
                logger.error(f"[{self._name}] Failed to delete stale record for job {job_id}: {e}")
            error = f"{error}; cleanup failed: {e}" if error else f"cleanup failed: {e}"

        history.append(ResumeState.DONE)

        if signal_state == ResumeState.SIGNAL_OK:
            logger.info(f"[{self._name}] Resumed execution waiting on job {job_id}")

        return ResumeOutcome(
            job_id=job_id,
            state=ResumeState.DONE,
            signal_state=signal_state,
            history=tuple(history),
            signal_attempts=attempts,
            cleaned_up=cleaned_up,
            error=error,
        )

    async def _signal(
        self, record: ContinuationRecord, output: dict[str, Any]
    ) -> tuple[ResumeState, int, str | None]:
        """Deliver the resume signal, retrying transient failures.

        Returns:
            (signal result state, attempts made, error message or None)
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                call = self._engine.send_resume(record.handle, output)
                if self._signal_timeout is not None:
                    await asyncio.wait_for(call, timeout=self._signal_timeout)
                else:
                    await call
                return ResumeState.SIGNAL_OK, attempt, None

            except SignalRejectedError as e:
                logger.warning(
                    f"[{self._name}] Engine rejected resume for job {record.job_id}: {e}"
                )
                return ResumeState.SIGNAL_REJECTED, attempt, f"signal rejected: {e}"

            except (SignalTransportError, TimeoutError) as e:
                reason = str(e) or "timed out"

            except Exception as e:
                # Unclassified engine errors count as transient only if they say so
                if not (hasattr(e, "is_retryable") and e.is_retryable()):
                    logger.error(
                        f"[{self._name}] Signal for job {record.job_id} failed with "
                        f"unexpected error, record kept: {type(e).__name__}: {e}"
                    )
                    return ResumeState.SIGNAL_FAILED, attempt, f"signal failed: {e}"
                reason = str(e)

            delay_ms = self._signal_retry.delay_for_attempt(attempt)
            if delay_ms is None:
                logger.error(
                    f"[{self._name}] Giving up on resume signal for job {record.job_id} "
                    f"after {attempt} attempts, record kept for redelivery: {reason}"
                )
                return (
                    ResumeState.SIGNAL_FAILED,
                    attempt,
                    f"signal failed after {attempt} attempts: {reason}",
                )

            logger.warning(
                f"[{self._name}] Signal attempt {attempt} for job {record.job_id} failed "
                f"({reason}), retrying in {delay_ms}ms"
            )
            await asyncio.sleep(delay_ms / 1000.0)

    async def _store_call(
        self, step: str, job_id: str, operation: Callable[[], Awaitable[T]]
    ) -> T:
        """Run a store operation, retrying transient StorageErrors."""
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except StorageError as e:
                delay_ms = None
                if e.is_retryable():
                    delay_ms = self._store_retry.delay_for_attempt(attempt)
                if delay_ms is None:
                    raise
                logger.warning(
                    f"[{self._name}] Store {step} for job {job_id} failed "
                    f"(attempt {attempt}): {e}, retrying in {delay_ms}ms"
                )
                await asyncio.sleep(delay_ms / 1000.0)
