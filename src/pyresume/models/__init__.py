"""Core data models for the resume broker.

Defines the stored continuation record, the resume attempt state
machine and its outcome, and retry behavior.

Design: Dependency-Free Models
These types have no dependencies on storage, executor or events modules
to prevent circular imports and enable clean layering.
"""

from pyresume.models.outcome import ResumeOutcome
from pyresume.models.record import ContinuationRecord
from pyresume.models.retry import RetryableError, RetryPolicy
from pyresume.models.status import ResumeState

__all__ = [
    "ContinuationRecord",
    "ResumeOutcome",
    "ResumeState",
    "RetryPolicy",
    "RetryableError",
]
