"""
Executor module - the suspend and resume halves of the broker.

This module contains the execution components:
- engine: WorkflowEngine protocol (the engine client the broker signals)
- local: LocalEngine, an in-process engine for single-process use and tests
- suspend: SuspendTask, records a parked execution's handle
- orchestrator: ResumeOrchestrator, the lookup/signal/cleanup state machine
"""

from pyresume.executor.engine import WorkflowEngine
from pyresume.executor.local import LocalEngine
from pyresume.executor.orchestrator import DEFAULT_RESUME_OUTPUT, ResumeOrchestrator
from pyresume.executor.suspend import SuspendTask

__all__ = [
    # Engine client
    "WorkflowEngine",
    "LocalEngine",
    # Suspend side
    "SuspendTask",
    # Resume side
    "ResumeOrchestrator",
    "DEFAULT_RESUME_OUTPUT",
]
