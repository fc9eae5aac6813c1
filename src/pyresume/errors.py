"""
Exception hierarchy for the resume broker.

All broker errors derive from ResumeError, which is a RetryableError:
callers (and the orchestrator's retry loops) ask is_retryable() instead of
matching on concrete types.

    ResumeError
    ├── ConfigurationError          (never retried)
    │   ├── DuplicateSuspendError
    │   ├── FieldPathError
    │   └── PatternError
    └── SignalError
        ├── SignalRejectedError     (never retried)
        └── SignalTransportError    (retried with backoff)

Storage failures live next to the storage interface, see
pyresume.storage.base.StorageError.
"""

from pyresume.models.retry import RetryableError

__all__ = [
    "ResumeError",
    "ConfigurationError",
    "DuplicateSuspendError",
    "FieldPathError",
    "PatternError",
    "SignalError",
    "SignalRejectedError",
    "SignalTransportError",
]


class ResumeError(RetryableError):
    """Base class for resume broker errors."""

    pass


class ConfigurationError(ResumeError):
    """Integration or setup mistake. Retrying cannot fix it."""

    def is_retryable(self) -> bool:
        return False


class DuplicateSuspendError(ConfigurationError):
    """A suspend reused a job id that is still awaiting resumption.

    Overwriting the live record would either lose the parked execution's
    handle or deliver its resume signal to the wrong execution, so the
    insert is refused and the error surfaces to the engine.
    """

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job id {job_id!r} already has a pending continuation")


class FieldPathError(ConfigurationError):
    """A field path is malformed or does not resolve against a document."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Field path {path!r}: {reason}")


class PatternError(ConfigurationError):
    """An event pattern is not structurally well formed."""

    pass


class SignalError(ResumeError):
    """Delivering a resume signal to the workflow engine failed."""

    def __init__(self, message: str, handle: str | None = None):
        self.handle = handle
        super().__init__(message)


class SignalRejectedError(SignalError):
    """The engine refused the handle (expired, unknown, already resumed).

    A stale handle cannot be usefully retried.
    """

    def is_retryable(self) -> bool:
        return False


class SignalTransportError(SignalError):
    """The engine could not be reached, or the call timed out."""

    pass
