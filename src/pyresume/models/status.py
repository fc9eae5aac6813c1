"""Status enumeration for resume attempt tracking.

Defines the lifecycle states of a single resume attempt, from the
initial lookup of a continuation record to its cleanup.
"""

from enum import Enum


class ResumeState(Enum):
    """State of a single resume attempt.

    Lifecycle:
        START → LOOKUP → SKIPPED
        START → LOOKUP → SIGNAL → SIGNAL_OK/SIGNAL_REJECTED → CLEANUP → DONE
        START → LOOKUP → SIGNAL → SIGNAL_FAILED → DONE

    SKIPPED and DONE are the only terminal states.
    """

    START = "START"
    """Attempt created, nothing done yet."""

    LOOKUP = "LOOKUP"
    """Reading the continuation record for the job id."""

    SKIPPED = "SKIPPED"
    """No pending continuation (never suspended, or already resumed)."""

    SIGNAL = "SIGNAL"
    """Delivering the resume signal to the workflow engine."""

    SIGNAL_OK = "SIGNAL_OK"
    """The engine accepted the resume signal."""

    SIGNAL_REJECTED = "SIGNAL_REJECTED"
    """The engine refused the handle (stale, expired or already resumed)."""

    SIGNAL_FAILED = "SIGNAL_FAILED"
    """Transient transport failures exhausted the retry budget.

    The continuation record is kept so a redelivered event can re-drive
    the attempt.
    """

    CLEANUP = "CLEANUP"
    """Deleting the continuation record."""

    DONE = "DONE"
    """Attempt finished (inspect the outcome for success or failure)."""

    @property
    def is_terminal(self) -> bool:
        """Check if this state ends the attempt."""
        return self in (ResumeState.SKIPPED, ResumeState.DONE)

    @property
    def is_signal_result(self) -> bool:
        """Check if this state records the result of the signal step."""
        return self in (
            ResumeState.SIGNAL_OK,
            ResumeState.SIGNAL_REJECTED,
            ResumeState.SIGNAL_FAILED,
        )

    def __str__(self) -> str:
        return self.value
