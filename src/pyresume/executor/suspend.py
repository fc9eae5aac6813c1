"""Suspend task: record a parked execution's continuation handle.

Invoked synchronously by the workflow engine when an execution reaches its
pause point. The task performs one durable write and returns without a
result; parking the execution is the engine's job.

Design: Error Handling
A duplicate job id is an integration bug, not a transient condition, so
it is raised immediately and never retried here.
"""

from __future__ import annotations

import logging
from typing import Any

from pyresume.errors import DuplicateSuspendError
from pyresume.events.path import FieldPath
from pyresume.storage.base import ContinuationStore

logger = logging.getLogger(__name__)

__all__ = ["SuspendTask"]


class SuspendTask:
    """Writes the continuation record for a suspending execution.

    Usage:
        task = SuspendTask(store, "$.job.id")

        # Called by the engine with the execution state and its handle
        await task.run({"job": {"id": "job-42"}}, handle)
    """

    def __init__(
        self,
        store: ContinuationStore,
        id_path: FieldPath | str = "$.id",
        name: str = "resume",
    ):
        """Create a suspend task.

        Args:
            store: Continuation store to write to
            id_path: Path locating the job id in the execution state
            name: Broker instance name, used in log messages
        """
        self._store = store
        self._id_path = id_path if isinstance(id_path, FieldPath) else FieldPath.parse(id_path)
        self._name = name

    @property
    def id_path(self) -> FieldPath:
        return self._id_path

    async def run(self, state: dict[str, Any], handle: str) -> None:
        """Extract the job id from state and record the handle under it.

        Args:
            state: The suspending execution's state document
            handle: Continuation handle issued by the engine

        Raises:
            FieldPathError: Job id missing from state
            DuplicateSuspendError: Job id already awaiting resumption
            StorageError: Store write failed
        """
        job_id = self._id_path.resolve_str(state)
        await self.suspend(job_id, handle)

    async def suspend(self, job_id: str, handle: str) -> None:
        """Record handle under job_id.

        Raises:
            DuplicateSuspendError: Job id already awaiting resumption
            StorageError: Store write failed
        """
        inserted = await self._store.insert(job_id, handle)

        if not inserted:
            logger.error(
                f"[{self._name}] Refusing suspend: job id {job_id!r} already has a "
                "pending continuation (job ids must not be reused while awaited)"
            )
            raise DuplicateSuspendError(job_id)

        logger.debug(f"[{self._name}] Suspended on job {job_id}")
