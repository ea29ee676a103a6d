from __future__ import annotations

from idle_require.event_sink import InMemoryEventSink
from idle_require.events import EventType


def test_events_before_the_first_pass_belong_to_drain_zero() -> None:
    sink = InMemoryEventSink()

    sink.emit(EventType.ACTION_SCHEDULED, "foo", order=0)
    sink.emit(EventType.TIMER_ARMED, delay=0.1)

    assert sink.current_drain == 0
    assert [(e.drain, e.seq) for e in sink.events] == [(0, 1), (0, 2)]


def test_each_pass_restarts_sequence_numbers() -> None:
    sink = InMemoryEventSink()

    assert sink.start_drain() == 1
    sink.emit(EventType.DRAIN_START, pending=1)
    sink.emit(EventType.DRAIN_END, ran=1, pending=0, rearmed=False)
    assert sink.start_drain() == 2
    sink.emit(EventType.DRAIN_START, pending=0)

    assert [e.seq for e in sink.in_drain(1)] == [1, 2]
    assert [e.seq for e in sink.in_drain(2)] == [1]


def test_of_type_accepts_several_types_and_keeps_emission_order() -> None:
    sink = InMemoryEventSink()
    sink.start_drain()
    sink.emit(EventType.CACHE_MISS, "a")
    sink.emit(EventType.FEATURE_LOADED, "a", observed=1)
    sink.emit(EventType.CACHE_HIT, "b", deps=["b"])

    hits_and_misses = sink.of_type(EventType.CACHE_HIT, EventType.CACHE_MISS)

    assert [(e.type, e.feature) for e in hits_and_misses] == [
        (EventType.CACHE_MISS, "a"),
        (EventType.CACHE_HIT, "b"),
    ]
