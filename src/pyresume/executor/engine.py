"""
Workflow engine collaborator interface.

The broker never parks or runs executions itself. It needs exactly one
thing from the engine: a way to deliver a resume signal given a
continuation handle. Any engine offering a blocking suspend primitive that
yields an opaque handle, and a resume-by-handle call, can be adapted to
this protocol.

Contract for implementations:
- Return normally when the engine accepted the signal.
- Raise SignalRejectedError when the handle is stale, unknown, expired or
  already used. The broker does not retry these.
- Raise SignalTransportError for transient failures (engine unreachable,
  throttled). The broker retries these with backoff.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

__all__ = ["WorkflowEngine"]


@runtime_checkable
class WorkflowEngine(Protocol):
    """Protocol for delivering resume signals to a workflow engine.

    **Pattern**: Interface Segregation Principle (SOLID)
    The broker depends on the single operation it uses, so engine clients
    stay small and easy to mock.

    **Usage**:
    ```python
    class StepFunctionsEngine:
        def __init__(self, client):
            self._client = client

        async def send_resume(self, handle: str, output: dict[str, Any]) -> None:
            try:
                await self._client.send_task_success(
                    taskToken=handle, output=json.dumps(output)
                )
            except self._client.exceptions.TaskTimedOut as e:
                raise SignalRejectedError(str(e), handle=handle) from e
    ```
    """

    async def send_resume(self, handle: str, output: dict[str, Any]) -> None:
        """
        Resume the execution identified by handle.

        Args:
            handle: Continuation handle issued at suspend time
            output: Payload handed to the resumed execution

        Raises:
            SignalRejectedError: Engine refused the handle
            SignalTransportError: Transient delivery failure
        """
        ...
