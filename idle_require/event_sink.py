from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from idle_require.events import Event, EventType

logger = logging.getLogger(__name__)


class EventSink(ABC):
    """
    Receives the scheduler's structured events.

    start_drain() opens a numbered drain pass; emit() may also be called
    between passes, since scheduling happens outside of them. A scheduler
    built with event_sink=None emits nothing.
    """

    @abstractmethod
    def start_drain(self) -> int: ...

    @abstractmethod
    def emit(self, event_type: EventType, feature: str | None = None, **data: Any) -> None: ...


@dataclass
class InMemoryEventSink(EventSink):
    """Keeps every event in order. Used by the CLI report and by tests."""

    events: list[Event] = field(default_factory=list)
    _drain: int = field(default=0, init=False)
    _seq: int = field(default=0, init=False)

    @property
    def current_drain(self) -> int:
        """Number of the most recently started pass; 0 before the first."""
        return self._drain

    def start_drain(self) -> int:
        self._drain += 1
        self._seq = 0
        return self._drain

    def emit(self, event_type: EventType, feature: str | None = None, **data: Any) -> None:
        self._seq += 1
        event = Event(drain=self._drain, seq=self._seq, type=event_type, feature=feature, data=data)
        self.events.append(event)
        logger.debug("event drain=%d seq=%d %s %s %s", event.drain, event.seq, event_type.value, feature or "-", data)

    def of_type(self, *event_types: EventType) -> list[Event]:
        return [e for e in self.events if e.type in event_types]

    def in_drain(self, drain: int) -> list[Event]:
        """Events of one pass, plus anything emitted after it and before the next."""
        return [e for e in self.events if e.drain == drain]
