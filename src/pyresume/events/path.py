"""
JSONPath-style field paths.

A small, strict subset of JSONPath is enough to locate a job id in a
workflow's state or in an event envelope:

    $                   the whole document
    $.detail.jobId      nested object keys
    $.items[0].id       list indexes
    $['detail-type']    bracketed keys (for names with dashes or dots)

Paths are parsed once, at setup time, so a typo fails fast instead of on
the first event.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from pyresume.errors import FieldPathError

__all__ = ["FieldPath"]

_TOKEN = re.compile(
    r"""
    \.(?P<key>[A-Za-z_][A-Za-z0-9_-]*)      # .key
    | \[(?P<index>-?\d+)\]                  # [0]
    | \[(?P<quote>['"])(?P<qkey>.*?)(?P=quote)\]  # ['key'] or ["key"]
    """,
    re.VERBOSE,
)

Segment = str | int


@dataclass(frozen=True)
class FieldPath:
    """A parsed field path.

    Attributes:
        expression: The original path text
        segments: Keys (str) and list indexes (int) from the root down
    """

    expression: str
    segments: tuple[Segment, ...]

    @classmethod
    def parse(cls, expression: str) -> FieldPath:
        """Parse a path expression.

        Raises:
            FieldPathError: If the expression is not a supported path
        """
        if not isinstance(expression, str) or not expression.startswith("$"):
            raise FieldPathError(str(expression), "must start with '$'")

        segments: list[Segment] = []
        pos = 1
        while pos < len(expression):
            match = _TOKEN.match(expression, pos)
            if match is None:
                raise FieldPathError(expression, f"unexpected text at offset {pos}")
            if match.group("key") is not None:
                segments.append(match.group("key"))
            elif match.group("index") is not None:
                segments.append(int(match.group("index")))
            else:
                segments.append(match.group("qkey"))
            pos = match.end()

        return cls(expression=expression, segments=tuple(segments))

    def resolve(self, document: Any) -> Any:
        """Walk the document along this path.

        Raises:
            FieldPathError: If a segment is missing or has the wrong type
        """
        current = document
        for segment in self.segments:
            if isinstance(segment, int):
                if not isinstance(current, list | tuple):
                    raise FieldPathError(self.expression, f"expected a list at [{segment}]")
                try:
                    current = current[segment]
                except IndexError:
                    raise FieldPathError(
                        self.expression, f"index {segment} out of range"
                    ) from None
            else:
                if not isinstance(current, dict):
                    raise FieldPathError(self.expression, f"expected an object at {segment!r}")
                if segment not in current:
                    raise FieldPathError(self.expression, f"missing field {segment!r}")
                current = current[segment]
        return current

    def resolve_str(self, document: Any) -> str:
        """Resolve to a non-empty string (a job id).

        Integers are accepted and converted, since some job systems issue
        numeric ids.

        Raises:
            FieldPathError: If the value is missing, empty or not a scalar id
        """
        value = self.resolve(document)
        if isinstance(value, bool) or not isinstance(value, str | int):
            raise FieldPathError(
                self.expression, f"expected a string id, got {type(value).__name__}"
            )
        value = str(value)
        if not value:
            raise FieldPathError(self.expression, "resolved to an empty id")
        return value

    def __str__(self) -> str:
        return self.expression
