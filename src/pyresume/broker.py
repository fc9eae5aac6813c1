"""
ResumeBroker: one wired broker instance.

Design Pattern: Façade Pattern
Builds the suspend task, the orchestrator and the completion listener
from a single BrokerConfig, so callers deal with one object instead of
wiring the three halves by hand. Everything is still reachable for callers
that need finer control.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from pyresume.config import BrokerConfig
from pyresume.events.listener import CompletionListener, ListenerHandle
from pyresume.events.models import CompletionEvent
from pyresume.events.source import EventSource, QueueEventSource
from pyresume.executor.engine import WorkflowEngine
from pyresume.executor.orchestrator import ResumeOrchestrator
from pyresume.executor.suspend import SuspendTask
from pyresume.models import ResumeOutcome
from pyresume.storage.base import ContinuationStore

logger = logging.getLogger(__name__)

__all__ = ["ResumeBroker"]


class ResumeBroker:
    """
    Suspend-and-resume broker for one integration.

    Usage:
        store = SqliteContinuationStore("broker.db")
        await store.connect()

        broker = ResumeBroker(store, engine, BrokerConfig(
            name="render",
            suspend_id_path="$.job.id",
            event_pattern={"source": ["acme.render"]},
        ))

        # Engine side: run broker.task when an execution suspends
        await broker.task.run(state, handle)

        # Event side: consume completion events
        handle = await broker.start()
        ...
        await handle.shutdown()
    """

    def __init__(
        self,
        store: ContinuationStore,
        engine: WorkflowEngine,
        config: BrokerConfig,
        source: EventSource | None = None,
    ):
        """Validate config and wire the components.

        Args:
            store: Continuation store shared by both halves
            engine: Engine client receiving resume signals
            config: Broker configuration
            source: Inbound event stream (defaults to a QueueEventSource)

        Raises:
            ConfigurationError: If config is invalid
        """
        config.validate()

        self._config = config
        self._store = store
        self._source = source if source is not None else QueueEventSource()

        self.task = SuspendTask(store, config.suspend_id_path, name=config.name)

        self.orchestrator = ResumeOrchestrator(
            store,
            engine,
            name=config.name,
            output=config.resume_output,
            forward_event_detail=config.forward_event_detail,
            signal_retry=config.signal_retry,
            store_retry=config.store_retry,
            signal_timeout=config.signal_timeout,
        )

        self.listener = CompletionListener(
            self._source,
            config.pattern,
            config.resume_id_path,
            self.orchestrator,
            name=config.name,
        )

        logger.debug(f"[{config.name}] Broker configured with pattern {config.pattern!r}")

    def __repr__(self) -> str:
        return f"ResumeBroker(name={self._config.name!r}, store={type(self._store).__name__})"

    @property
    def config(self) -> BrokerConfig:
        return self._config

    @property
    def source(self) -> EventSource:
        return self._source

    async def suspend(self, state: dict[str, Any], handle: str) -> None:
        """Record a suspending execution (same as task.run)."""
        await self.task.run(state, handle)

    async def handle_event(self, event: CompletionEvent | dict[str, Any]) -> ResumeOutcome | None:
        """Process one event outside the listener loop (webhook-style delivery).

        Returns:
            The resume outcome, or None if the event does not match
        """
        if isinstance(event, dict):
            event = CompletionEvent.from_dict(event)
        return await self.listener.handle(event)

    async def start(self) -> ListenerHandle:
        """Start consuming the event source."""
        return await self.listener.start()

    async def purge_expired(self, now: datetime | None = None) -> int:
        """Delete records older than record_ttl.

        Such records belong to executions whose completion event never
        arrived. Does nothing when no TTL is configured.

        Returns:
            Number of records deleted
        """
        if self._config.record_ttl is None:
            return 0

        cutoff = (now or datetime.now(UTC)) - self._config.record_ttl
        purged = await self._store.purge_older_than(cutoff)
        if purged:
            logger.warning(
                f"[{self._config.name}] Purged {purged} abandoned continuation records "
                f"created before {cutoff.isoformat()}"
            )
        return purged
