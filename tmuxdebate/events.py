"""Debate events and a small listener registry."""

from __future__ import annotations

import contextlib
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class DebateEventType(str, Enum):
    PHASE_CHANGE = "phase_change"
    ROUND_START = "round_start"
    ROUND_END = "round_end"
    PROPOSER_OUTPUT = "proposer_output"
    REVIEWER_OUTPUT = "reviewer_output"
    CONSENSUS = "consensus"
    TIMEOUT = "timeout"
    WARNING = "warning"
    ERROR = "error"
    DEBATE_COMPLETE = "debate_complete"


@dataclass
class DebateEvent:
    """Something that happened during a debate."""

    type: DebateEventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


EventListener = Callable[[DebateEvent], None]


class EventEmitter:
    """
    Fan-out of debate events to subscribed listeners.

    A failing listener is skipped; it never breaks the debate.
    """

    def __init__(self):
        self._listeners: list[tuple[EventListener, frozenset[DebateEventType] | None]] = []

    def subscribe(
        self,
        listener: EventListener,
        types: Iterable[DebateEventType] | None = None,
    ) -> Callable[[], None]:
        """Register a listener, optionally for some event types only.

        Returns a function that removes the listener again.
        """
        entry = (listener, frozenset(types) if types is not None else None)
        self._listeners.append(entry)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        self._listeners = [entry for entry in self._listeners if entry[0] is not listener]

    def emit(self, event_type: DebateEventType, **data: Any) -> DebateEvent:
        event = DebateEvent(type=event_type, data=data)
        for listener, types in list(self._listeners):
            if types is not None and event_type not in types:
                continue
            with contextlib.suppress(Exception):
                listener(event)
        return event
