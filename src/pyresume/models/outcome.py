"""
Resume attempt outcomes.

Every call to ResumeOrchestrator.resume() returns a ResumeOutcome in a
terminal state. Expected failures (no pending continuation, a rejected
handle, exhausted transport retries, a failed cleanup) are reported as
values rather than raised, so one bad job id never takes down the
listener that delivered it.

Example:
    ```python
    outcome = await orchestrator.resume("job-42")

    if outcome.is_skipped():
        print("nothing was waiting on job-42")
    elif outcome.is_resumed():
        print("execution resumed")
    elif outcome.needs_manual_cleanup():
        print(f"record for {outcome.job_id} must be removed by hand")
    ```
"""

from __future__ import annotations

from dataclasses import dataclass

from pyresume.models.status import ResumeState

__all__ = ["ResumeOutcome"]


@dataclass(frozen=True)
class ResumeOutcome:
    """
    Result of one resume attempt.

    Attributes:
        job_id: Job id the attempt was driven by
        state: Terminal state reached (SKIPPED or DONE)
        signal_state: Result of the signal step, None if it never ran
        history: Every state visited, in order, starting at START
        signal_attempts: Number of send_resume calls made
        cleaned_up: Whether the continuation record was deleted
        error: Human-readable failure description, None on success
    """

    job_id: str
    state: ResumeState
    signal_state: ResumeState | None = None
    history: tuple[ResumeState, ...] = ()
    signal_attempts: int = 0
    cleaned_up: bool = False
    error: str | None = None

    def __post_init__(self) -> None:
        if not self.state.is_terminal:
            raise ValueError(f"ResumeOutcome requires a terminal state, got {self.state}")
        if self.signal_state is not None and not self.signal_state.is_signal_result:
            raise ValueError(f"Not a signal result state: {self.signal_state}")

    def is_skipped(self) -> bool:
        """True when no continuation was pending for the job id."""
        return self.state == ResumeState.SKIPPED

    def is_resumed(self) -> bool:
        """True when the engine accepted the resume signal."""
        return self.signal_state == ResumeState.SIGNAL_OK

    def is_failure(self) -> bool:
        """True when the attempt ended with an error worth surfacing."""
        return self.error is not None

    def needs_manual_cleanup(self) -> bool:
        """True when the execution resumed but its record could not be deleted."""
        return self.is_resumed() and not self.cleaned_up

    def __str__(self) -> str:
        path = " → ".join(state.value for state in self.history)
        suffix = f", error={self.error}" if self.error else ""
        return f"ResumeOutcome(job_id={self.job_id!r}, {path}{suffix})"
