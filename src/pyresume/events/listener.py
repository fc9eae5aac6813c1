"""Completion listener: filter the event stream and trigger resumes.

The listener pulls events from an EventSource, keeps those matching the
configured EventPattern, extracts a job id from each with a field path,
and hands it to the ResumeOrchestrator. Every event is processed in its
own task, so one slow or failing event never blocks the stream.

Features:
- Declarative event filtering
- Non-blocking per-event processing with optional concurrency limit
- Per-event failure isolation
- Graceful shutdown
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pyresume.events.models import CompletionEvent
from pyresume.events.path import FieldPath
from pyresume.events.pattern import EventPattern
from pyresume.events.source import EventSource
from pyresume.models import ResumeOutcome

if TYPE_CHECKING:
    from pyresume.executor.orchestrator import ResumeOrchestrator

logger = logging.getLogger(__name__)

__all__ = ["CompletionListener", "ListenerHandle", "ListenerStats", "ListenerError"]

OutcomeCallback = Callable[[CompletionEvent, ResumeOutcome], Awaitable[None]]


@dataclass
class ListenerStats:
    """Counters for events seen by a listener."""

    received: int = 0
    ignored: int = 0
    resumed: int = 0
    skipped: int = 0
    failed: int = 0


class CompletionListener:
    """Standing subscription that resumes executions on completion events.

    Design Patterns:
    - Template Method: _run() defines the fixed receive/dispatch loop
    - Builder: with_poll_interval(), with_max_concurrent() for configuration

    Usage:
        listener = CompletionListener(source, pattern, "$.detail.jobId", orchestrator) \\
            .with_poll_interval(0.5) \\
            .with_max_concurrent(50)

        handle = await listener.start()
        # ... let it run ...
        await handle.shutdown()
    """

    def __init__(
        self,
        source: EventSource,
        pattern: EventPattern,
        id_path: FieldPath | str,
        orchestrator: ResumeOrchestrator,
        name: str = "resume",
    ):
        """Create a listener.

        Args:
            source: Inbound event stream
            pattern: Predicate selecting completion events
            id_path: Path locating the job id in the event envelope
            orchestrator: Orchestrator invoked once per matching event
            name: Broker instance name, used in log messages
        """
        self._source = source
        self._pattern = pattern
        self._id_path = id_path if isinstance(id_path, FieldPath) else FieldPath.parse(id_path)
        self._orchestrator = orchestrator
        self._name = name

        self._poll_interval = 1.0
        self._max_concurrent: asyncio.Semaphore | None = None
        self._on_outcome: OutcomeCallback | None = None

        self.stats = ListenerStats()

        self._shutdown_event = asyncio.Event()
        self._running = False
        self._loop_task: asyncio.Task | None = None

        # Keep references so per-event tasks aren't garbage collected mid-flight
        self._background_tasks: set[asyncio.Task] = set()

    def with_poll_interval(self, interval: float) -> CompletionListener:
        """Set how long one receive() waits before re-checking for shutdown.

        Returns:
            self for method chaining
        """
        if interval <= 0:
            raise ValueError("poll interval must be positive")
        self._poll_interval = interval
        return self

    def with_max_concurrent(self, max_concurrent: int) -> CompletionListener:
        """Limit how many events are processed at once.

        The permit is acquired before receiving, so at capacity the listener
        stops pulling from the source (backpressure).

        Returns:
            self for method chaining
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self._max_concurrent = asyncio.Semaphore(max_concurrent)
        return self

    def with_outcome_callback(self, callback: OutcomeCallback) -> CompletionListener:
        """Report every resume outcome to callback (metrics, alerting).

        Callback failures are logged and do not affect the event.

        Returns:
            self for method chaining
        """
        self._on_outcome = callback
        return self

    async def handle(self, event: CompletionEvent) -> ResumeOutcome | None:
        """Process one event.

        Returns:
            The resume outcome, or None if the event does not match the pattern

        Raises:
            FieldPathError: Matching event carries no usable job id
        """
        self.stats.received += 1

        if not self._pattern.matches(event):
            self.stats.ignored += 1
            logger.debug(f"[{self._name}] Ignoring non-matching event {event.id}")
            return None

        job_id = self._id_path.resolve_str(event.raw)
        outcome = await self._orchestrator.resume(job_id, event)

        if outcome.is_skipped():
            self.stats.skipped += 1
        elif outcome.is_resumed():
            self.stats.resumed += 1
        if outcome.is_failure():
            self.stats.failed += 1

        if self._on_outcome is not None:
            try:
                await self._on_outcome(event, outcome)
            except Exception as e:
                logger.warning(f"[{self._name}] Outcome callback failed for {event.id}: {e}")

        return outcome

    async def start(self) -> ListenerHandle:
        """Start the listener loop.

        Returns ListenerHandle immediately, letting caller decide
        whether to await or run concurrently.
        """
        if self._running:
            raise ListenerError(f"Listener {self._name} is already running")
        self._running = True
        self._shutdown_event.clear()
        self._loop_task = asyncio.create_task(self._run())
        return ListenerHandle(self, self._loop_task)

    async def _run(self) -> None:
        """Main loop: receive, dispatch to a background task, repeat."""
        logger.info(f"[{self._name}] Completion listener started")

        try:
            while self._running and not self._shutdown_event.is_set():
                permit = False
                try:
                    if self._max_concurrent is not None:
                        await self._max_concurrent.acquire()
                        permit = True

                    event = await self._source.receive(self._poll_interval)

                    if event is None:
                        continue

                    task = asyncio.create_task(self._process(event, permit))
                    permit = False  # now owned by the task
                    self._background_tasks.add(task)
                    task.add_done_callback(self._background_tasks.discard)

                except Exception as e:
                    logger.error(f"[{self._name}] Event source error: {e}")
                    await asyncio.sleep(self._poll_interval)

                finally:
                    if permit:
                        self._max_concurrent.release()
        finally:
            logger.info(f"[{self._name}] Completion listener stopped")

    async def _process(self, event: CompletionEvent, permit: bool) -> None:
        """Handle one event in isolation; failures are logged, never raised."""
        try:
            await self.handle(event)
        except Exception as e:
            self.stats.failed += 1
            logger.error(
                f"[{self._name}] Failed to process event {event.id}: {type(e).__name__}: {e}"
            )
        finally:
            if permit:
                self._max_concurrent.release()

    async def shutdown(self) -> None:
        """Stop receiving and wait for in-flight events to finish."""
        logger.info(f"[{self._name}] Completion listener shutting down...")
        self._running = False
        self._shutdown_event.set()

        # Let the loop finish its current receive; an event it hands off
        # now joins the in-flight set before we drain it
        if self._loop_task is not None and not self._loop_task.done():
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass

        while self._background_tasks:
            logger.info(
                f"[{self._name}] Waiting for {len(self._background_tasks)} in-flight events..."
            )
            await asyncio.gather(*self._background_tasks, return_exceptions=True)


class ListenerHandle:
    """Handle for controlling a running listener.

    Composition - handle HAS-A listener, not IS-A listener.

    Usage:
        handle = await listener.start()
        await handle.shutdown()
    """

    def __init__(self, listener: CompletionListener, task: asyncio.Task):
        self._listener = listener
        self._task = task

    def is_running(self) -> bool:
        """Return True if the listener task is still running."""
        return not self._task.done()

    async def shutdown(self) -> None:
        """Shutdown listener and wait for completion."""
        await self._listener.shutdown()
        await self._task

    def abort(self) -> None:
        """Cancel the listener loop without waiting for in-flight events.

        Prefer shutdown() for normal termination.
        """
        self._listener._running = False
        self._task.cancel()


class ListenerError(Exception):
    """Listener operation failed."""

    pass
