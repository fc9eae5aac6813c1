"""
Events module - inbound completion events and how they are matched.

- models: CompletionEvent envelope
- path: FieldPath, JSONPath-style job id extraction
- pattern: EventPattern, declarative event filter
- source: EventSource protocol and QueueEventSource
- listener: CompletionListener, the standing subscription
"""

from pyresume.events.listener import (
    CompletionListener,
    ListenerError,
    ListenerHandle,
    ListenerStats,
)
from pyresume.events.models import CompletionEvent
from pyresume.events.path import FieldPath
from pyresume.events.pattern import EventPattern
from pyresume.events.source import EventSource, QueueEventSource

__all__ = [
    "CompletionEvent",
    "FieldPath",
    "EventPattern",
    "EventSource",
    "QueueEventSource",
    "CompletionListener",
    "ListenerHandle",
    "ListenerStats",
    "ListenerError",
]
