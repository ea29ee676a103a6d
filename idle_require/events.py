from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    """
    Scheduler observability vocabulary.
    Keep this small; add types only when tests require them.
    """

    ACTION_SCHEDULED = "ACTION_SCHEDULED"
    TIMER_ARMED = "TIMER_ARMED"
    DRAIN_START = "DRAIN_START"
    ACTION_STARTED = "ACTION_STARTED"
    CACHE_LOADED = "CACHE_LOADED"
    CACHE_HIT = "CACHE_HIT"
    CACHE_MISS = "CACHE_MISS"
    FEATURE_SKIPPED = "FEATURE_SKIPPED"
    FEATURE_LOADED = "FEATURE_LOADED"
    CACHE_RECORDED = "CACHE_RECORDED"
    CACHE_FLUSHED = "CACHE_FLUSHED"
    DRAIN_END = "DRAIN_END"


@dataclass(frozen=True, slots=True)
class Event:
    """
    A structured, orderable fact emitted by the scheduler (optionally).

    drain and seq are owned by the sink. drain is the most recently started
    drain pass (0 before the first), so facts emitted between passes, such
    as scheduling from the caller, attach to the pass that preceded them.
    """

    drain: int
    seq: int
    type: EventType
    feature: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
