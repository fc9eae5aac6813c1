"""
pyresume: suspend a workflow execution and resume it on an external event

A long-running execution pauses at a designated point while an external
job runs. The broker records the execution's continuation handle under the
job's id, watches the event stream for the job's completion event, sends
the resume signal with the stored handle, and deletes the record so the
handle is never used twice.

Design Pattern: Façade Pattern
This module re-exports the public surface; ResumeBroker wires the pieces
for one integration.

Example:
    ```python
    import asyncio
    from pyresume import BrokerConfig, LocalEngine, ResumeBroker, SqliteContinuationStore

    async def main():
        store = SqliteContinuationStore("broker.db")
        await store.connect()
        engine = LocalEngine()

        broker = ResumeBroker(store, engine, BrokerConfig(
            name="render",
            suspend_id_path="$.job.id",
            event_pattern={"source": ["acme.render"], "detail-type": ["Render Finished"]},
        ))

        handle = await engine.suspend_with(broker.task, {"job": {"id": "job-42"}})

        await broker.handle_event({
            "source": "acme.render",
            "detail-type": "Render Finished",
            "detail": {"id": "job-42"},
        })
        print(await engine.wait(handle))   # {'status': 'resume'}

        await store.close()

    asyncio.run(main())
    ```
"""

# Core types
from pyresume.models import (
    ContinuationRecord,
    ResumeOutcome,
    ResumeState,
    RetryableError,
    RetryPolicy,
)

# Errors
from pyresume.errors import (
    ConfigurationError,
    DuplicateSuspendError,
    FieldPathError,
    PatternError,
    ResumeError,
    SignalError,
    SignalRejectedError,
    SignalTransportError,
)

# Storage (Adapter pattern)
from pyresume.storage import (
    ContinuationStore,
    InMemoryContinuationStore,
    SqliteContinuationStore,
    StorageError,
    StoreUnavailableError,
)

# Events
from pyresume.events import (
    CompletionEvent,
    CompletionListener,
    EventPattern,
    EventSource,
    FieldPath,
    ListenerError,
    ListenerHandle,
    ListenerStats,
    QueueEventSource,
)

# Execution
from pyresume.executor import (
    DEFAULT_RESUME_OUTPUT,
    LocalEngine,
    ResumeOrchestrator,
    SuspendTask,
    WorkflowEngine,
)

# Façade
from pyresume.config import BrokerConfig
from pyresume.broker import ResumeBroker

# Version
__version__ = "0.1.0"

__all__ = [
    # Core types
    "ContinuationRecord",
    "ResumeOutcome",
    "ResumeState",
    "RetryPolicy",
    "RetryableError",

    # Errors
    "ResumeError",
    "ConfigurationError",
    "DuplicateSuspendError",
    "FieldPathError",
    "PatternError",
    "SignalError",
    "SignalRejectedError",
    "SignalTransportError",

    # Storage (Adapter pattern)
    "ContinuationStore",
    "InMemoryContinuationStore",
    "SqliteContinuationStore",
    "StorageError",
    "StoreUnavailableError",

    # Events
    "CompletionEvent",
    "CompletionListener",
    "EventPattern",
    "EventSource",
    "FieldPath",
    "ListenerError",
    "ListenerHandle",
    "ListenerStats",
    "QueueEventSource",

    # Execution
    "WorkflowEngine",
    "LocalEngine",
    "SuspendTask",
    "ResumeOrchestrator",
    "DEFAULT_RESUME_OUTPUT",

    # Façade
    "BrokerConfig",
    "ResumeBroker",

    # Metadata
    "__version__",
]
