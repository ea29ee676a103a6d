from __future__ import annotations

import asyncio
from pathlib import Path

from idle_require.api import idle_require
from idle_require.cache_io import load_dependency_cache
from idle_require.dependency_cache import DependencyCache
from idle_require.host import AsyncioIdleTimer
from idle_require.scheduler import IdleScheduler
from tests._support.fakes import GraphLoader


def test_drains_on_the_event_loop_until_idle(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    loader = GraphLoader(graph={"app": ["lib"]})

    async def _run() -> IdleScheduler:
        scheduler = IdleScheduler(
            loader,
            AsyncioIdleTimer(),
            DependencyCache(path),
            idle_queue_delay=0.001,
            idle_action_max_duration=1.0,
        )
        idle_require(scheduler, "app")
        assert scheduler.timer_armed
        assert loader.calls == []
        for _ in range(500):
            if scheduler.idle:
                break
            await asyncio.sleep(0.002)
        return scheduler

    scheduler = asyncio.run(_run())

    assert scheduler.idle
    assert loader.calls == ["app"]
    assert load_dependency_cache(path) == {"app": ["lib", "app"]}
