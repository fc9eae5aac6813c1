"""
Declarative event-matching predicates.

An EventPattern is a conjunction of field constraints over an event
envelope, using event-bus content filtering semantics:

    {
        "source": ["acme.transcoder"],
        "detail-type": ["Job Completed", "Job Failed"],
        "detail": {
            "status": ["SUCCEEDED"],
            "jobId": [{"prefix": "job-"}],
        },
    }

- A key mapping to a list matches when the event field equals any entry.
- A key mapping to a dict descends into the nested object.
- Entries may be literals or a matcher object:
    {"prefix": str}, {"suffix": str}, {"equals-ignore-case": str},
    {"anything-but": value | [values]}, {"exists": bool},
    {"numeric": [op, number, (op, number)]}
- An event field holding a list matches when any of its elements matches.

The pattern is supplied wholesale by the integrator. It is checked for
structural well-formedness at setup time and otherwise not interpreted.
"""

from __future__ import annotations

import operator
from dataclasses import dataclass
from typing import Any

from pyresume.errors import PatternError
from pyresume.events.models import CompletionEvent

__all__ = ["EventPattern"]

# camelCase keys accepted for infrastructure-style pattern definitions
_KEY_ALIASES = {"detailType": "detail-type", "detail_type": "detail-type"}

_NUMERIC_OPS = {
    "=": operator.eq,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}

_MATCHERS = ("prefix", "suffix", "equals-ignore-case", "anything-but", "exists", "numeric")

_MISSING = object()


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


@dataclass(frozen=True)
class EventPattern:
    """A validated event-matching predicate.

    Build with EventPattern.from_dict(); the constructor does not validate.

    Attributes:
        rules: Normalized pattern document
    """

    rules: dict[str, Any]

    @classmethod
    def from_dict(cls, pattern: dict[str, Any]) -> EventPattern:
        """Normalize key aliases and validate a pattern document.

        Raises:
            PatternError: If the pattern is not well formed
        """
        if not isinstance(pattern, dict) or not pattern:
            raise PatternError("event pattern must be a non-empty object")

        normalized = {_KEY_ALIASES.get(key, key): value for key, value in pattern.items()}
        instance = cls(rules=normalized)
        instance.validate()
        return instance

    def validate(self) -> None:
        """Check structural well-formedness.

        Raises:
            PatternError: On the first malformed rule, naming its location
        """
        self._validate_node(self.rules, "$")

    def _validate_node(self, node: dict[str, Any], where: str) -> None:
        if not node:
            raise PatternError(f"{where}: empty object in pattern")
        for key, rule in node.items():
            if not isinstance(key, str):
                raise PatternError(f"{where}: field names must be strings")
            location = f"{where}.{key}"
            if isinstance(rule, dict):
                self._validate_node(rule, location)
            elif isinstance(rule, list):
                if not rule:
                    raise PatternError(f"{location}: empty value list never matches")
                for entry in rule:
                    self._validate_entry(entry, location)
            else:
                raise PatternError(
                    f"{location}: expected a list of values or a nested object, "
                    f"got {type(rule).__name__}"
                )

    def _validate_entry(self, entry: Any, location: str) -> None:
        if entry is None or isinstance(entry, str | bool) or _is_number(entry):
            return
        if not isinstance(entry, dict) or len(entry) != 1:
            raise PatternError(f"{location}: entries must be literals or single-key matchers")

        (name, arg), = entry.items()
        if name not in _MATCHERS:
            raise PatternError(f"{location}: unknown matcher {name!r}")

        if name in ("prefix", "suffix", "equals-ignore-case") and not isinstance(arg, str):
            raise PatternError(f"{location}: {name} expects a string")
        if name == "exists" and not isinstance(arg, bool):
            raise PatternError(f"{location}: exists expects true or false")
        if name == "anything-but":
            values = arg if isinstance(arg, list) else [arg]
            if not values or any(isinstance(v, dict | list) for v in values):
                raise PatternError(f"{location}: anything-but expects literal values")
        if name == "numeric":
            if not isinstance(arg, list) or len(arg) not in (2, 4):
                raise PatternError(f"{location}: numeric expects [op, n] or [op, n, op, n]")
            for op, bound in zip(arg[::2], arg[1::2], strict=True):
                if op not in _NUMERIC_OPS or not _is_number(bound):
                    raise PatternError(f"{location}: bad numeric comparison {op!r} {bound!r}")

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def matches(self, event: CompletionEvent | dict[str, Any]) -> bool:
        """Return True if the event satisfies every constraint."""
        document = event.raw if isinstance(event, CompletionEvent) else event
        return self._match_node(self.rules, document)

    def _match_node(self, node: dict[str, Any], document: Any) -> bool:
        if not isinstance(document, dict):
            return False
        for key, rule in node.items():
            value = document.get(key, _MISSING)
            if isinstance(rule, dict):
                if value is _MISSING or not self._match_node(rule, value):
                    return False
            elif not self._match_field(rule, value):
                return False
        return True

    def _match_field(self, entries: list[Any], value: Any) -> bool:
        if value is _MISSING:
            return any(
                isinstance(e, dict) and e.get("exists") is False for e in entries
            )
        candidates = value if isinstance(value, list) else [value]
        return any(
            self._match_entry(entry, candidate)
            for entry in entries
            for candidate in candidates
        )

    @staticmethod
    def _match_entry(entry: Any, value: Any) -> bool:
        if not isinstance(entry, dict):
            # bool is an int subclass; keep True from matching 1
            if isinstance(entry, bool) or isinstance(value, bool):
                return entry is value
            return entry == value

        (name, arg), = entry.items()
        if name == "exists":
            return arg is True
        if name == "prefix":
            return isinstance(value, str) and value.startswith(arg)
        if name == "suffix":
            return isinstance(value, str) and value.endswith(arg)
        if name == "equals-ignore-case":
            return isinstance(value, str) and value.casefold() == arg.casefold()
        if name == "anything-but":
            excluded = arg if isinstance(arg, list) else [arg]
            return value not in excluded
        if name == "numeric":
            if not _is_number(value):
                return False
            return all(
                _NUMERIC_OPS[op](value, bound)
                for op, bound in zip(arg[::2], arg[1::2], strict=True)
            )
        return False

    def __repr__(self) -> str:
        return f"EventPattern({self.rules!r})"
