"""
Broker configuration.

One BrokerConfig describes one broker instance: where the job id lives in
the suspending execution's state and in the completion event, which events
count as completions, what the resume signal carries, and how hard to try
before giving up. Several instances with different configurations can run
side by side in one process.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from pyresume.errors import ConfigurationError, FieldPathError, PatternError
from pyresume.events.path import FieldPath
from pyresume.events.pattern import EventPattern
from pyresume.executor.orchestrator import DEFAULT_RESUME_OUTPUT
from pyresume.models import RetryPolicy

__all__ = ["BrokerConfig"]


@dataclass(frozen=True)
class BrokerConfig:
    """
    Configuration for one broker instance.

    Examples:
        config = BrokerConfig(
            name="render",
            suspend_id_path="$.job.id",
            resume_id_path="$.detail.jobId",
            event_pattern={
                "source": ["acme.render"],
                "detail-type": ["Render Finished"],
                "detail": {"status": ["SUCCEEDED"]},
            },
        )
        config.validate()
    """

    name: str
    """Instance name, prefixed to log messages."""

    event_pattern: EventPattern | dict[str, Any]
    """Predicate selecting completion events (dicts are parsed)."""

    suspend_id_path: str = "$.id"
    """Path to the job id in the suspending execution's state."""

    resume_id_path: str = "$.detail.id"
    """Path to the job id in the completion event envelope."""

    resume_output: dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_RESUME_OUTPUT))
    """Fixed payload delivered with every resume signal."""

    forward_event_detail: bool = False
    """Also deliver the event's detail under the "event" key."""

    signal_retry: RetryPolicy = RetryPolicy.FAST
    store_retry: RetryPolicy = RetryPolicy.FAST

    signal_timeout: float | None = 10.0
    """Seconds before a signal call counts as a transient failure."""

    record_ttl: timedelta | None = None
    """Age after which a pending record is considered abandoned."""

    def __post_init__(self) -> None:
        if isinstance(self.event_pattern, dict):
            # frozen dataclass: coerce through object.__setattr__
            object.__setattr__(self, "event_pattern", EventPattern.from_dict(self.event_pattern))

    @property
    def pattern(self) -> EventPattern:
        """The event pattern, always as an EventPattern.

        Raises:
            ConfigurationError: event_pattern is neither a dict nor an EventPattern
        """
        if not isinstance(self.event_pattern, EventPattern):
            raise ConfigurationError(
                f"event_pattern must be a dict or EventPattern, got {type(self.event_pattern).__name__}"
            )
        return self.event_pattern

    def validate(self) -> None:
        """Check the configuration before any event is processed.

        Raises:
            ConfigurationError: On the first invalid setting
        """
        if not isinstance(self.name, str) or not self.name.strip():
            raise ConfigurationError("broker name must be a non-empty string")

        for label, path in (
            ("suspend_id_path", self.suspend_id_path),
            ("resume_id_path", self.resume_id_path),
        ):
            try:
                parsed = FieldPath.parse(path)
            except FieldPathError as e:
                raise ConfigurationError(f"{label}: {e}") from e
            if not parsed.segments:
                raise ConfigurationError(f"{label} must select a field, not the whole document")

        try:
            self.pattern.validate()
        except PatternError as e:
            raise ConfigurationError(f"event_pattern: {e}") from e

        if not isinstance(self.resume_output, dict):
            raise ConfigurationError("resume_output must be a dict")

        if self.signal_timeout is not None and self.signal_timeout <= 0:
            raise ConfigurationError(
                f"signal_timeout must be positive, got {self.signal_timeout}"
            )

        for label, policy in (("signal_retry", self.signal_retry), ("store_retry", self.store_retry)):
            try:
                policy.validate()
            except ValueError as e:
                raise ConfigurationError(f"{label}: {e}") from e

        if self.record_ttl is not None and self.record_ttl <= timedelta(0):
            raise ConfigurationError("record_ttl must be positive")
