from __future__ import annotations

from pathlib import Path

from idle_require.api import idle_require
from idle_require.cache_io import save_dependency_cache
from idle_require.events import EventType
from tests._support.fakes import assert_timer_invariant, make_harness

BUDGET = 0.05
ACTION_COST = 0.03


def test_pass_stops_pulling_actions_once_the_budget_is_spent(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    save_dependency_cache(path, {"a": ["a1", "a2", "a3", "a4", "a"]})
    h = make_harness(path, max_duration=BUDGET)
    h.loader.on_load = lambda _feature: h.clock.advance(ACTION_COST)

    idle_require(h.scheduler, "a")
    h.timer.fire()

    end = h.sink.of_type(EventType.DRAIN_END)[0]
    # LOAD_CACHE and IDLE_REQUIRE are free; a1 leaves 0.03 elapsed, a2 crosses.
    assert end.data["ran"] == 4
    assert end.data["rearmed"] is True
    assert h.clock.now <= BUDGET + ACTION_COST
    assert h.loader.calls == ["a1", "a2"]
    assert_timer_invariant(h)

    h.timer.run_until_idle()
    assert h.loader.calls == ["a1", "a2", "a3", "a4", "a"]


def test_every_pass_respects_budget_plus_one_in_flight_action(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    save_dependency_cache(path, {f"f{i}": [f"d{i}", f"f{i}"] for i in range(6)})
    h = make_harness(path, max_duration=BUDGET)
    h.loader.on_load = lambda _feature: h.clock.advance(ACTION_COST)

    for i in range(6):
        idle_require(h.scheduler, f"f{i}", i)

    passes = 0
    while h.timer.armed:
        start = h.clock.now
        h.timer.fire()
        passes += 1
        assert h.clock.now - start <= BUDGET + ACTION_COST
        assert_timer_invariant(h)

    assert passes > 1
    assert len(h.loader.calls) == 12
