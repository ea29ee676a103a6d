from __future__ import annotations

from pathlib import Path

import pytest

from idle_require.api import idle_require
from idle_require.cache_io import load_dependency_cache
from idle_require.events import EventType
from idle_require.reporting import derive_drain_rows
from idle_require.scheduler import SchedulerClosedError
from tests._support.fakes import assert_timer_invariant, make_harness


def test_close_with_run_pending_loads_everything_and_flushes(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    h = make_harness(path, graph={"a": ["b"]})
    idle_require(h.scheduler, "a")
    idle_require(h.scheduler, "c", 3)

    h.scheduler.close(run_pending=True)

    assert h.loader.calls == ["a", "c"]
    assert h.scheduler.pending == 0
    assert h.timer.armed == 0
    assert h.timer.fired == 0
    assert load_dependency_cache(path) == {"a": ["b", "a"], "c": ["c"]}


def test_close_without_run_pending_cancels_the_timer(tmp_path: Path) -> None:
    h = make_harness(tmp_path / "cache.json")
    idle_require(h.scheduler, "a")

    h.scheduler.close()

    assert h.scheduler.closed
    assert h.timer.armed == 0
    assert h.scheduler.pending == 2
    assert h.timer.run_until_idle() == 0
    assert h.loader.calls == []


def test_scheduling_after_close_is_rejected(tmp_path: Path) -> None:
    h = make_harness(tmp_path / "cache.json")
    h.scheduler.close()

    with pytest.raises(SchedulerClosedError):
        idle_require(h.scheduler, "a")


def test_close_failure_leaves_remaining_work_armed(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    h = make_harness(path)
    h.loader.broken.add("broken")
    idle_require(h.scheduler, "broken")
    idle_require(h.scheduler, "ok", 3)

    with pytest.raises(ModuleNotFoundError):
        h.scheduler.close(run_pending=True)

    assert not h.scheduler.closed
    assert h.scheduler.pending == 1
    assert h.scheduler.timer_armed
    assert_timer_invariant(h)

    h.timer.run_until_idle()

    assert h.loader.calls == ["broken", "ok"]
    assert load_dependency_cache(path) == {"ok": ["ok"]}
    assert_timer_invariant(h)


def test_final_pass_reports_its_flush(tmp_path: Path) -> None:
    h = make_harness(tmp_path / "cache.json")
    idle_require(h.scheduler, "a")

    h.scheduler.close(run_pending=True)

    types = [e.type for e in h.sink.in_drain(h.sink.current_drain)]
    assert types.index(EventType.CACHE_FLUSHED) < types.index(EventType.DRAIN_END)
    row = derive_drain_rows(h.sink.events)[-1]
    assert row.final
    assert row.flushed
