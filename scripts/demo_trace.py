from __future__ import annotations

import sys
import tempfile
from pathlib import Path

from idle_require.api import idle_require
from idle_require.dependency_cache import DependencyCache
from idle_require.event_sink import InMemoryEventSink
from idle_require.host import ImportlibFeatureLoader, ManualIdleTimer
from idle_require.reporting import render_text_report
from idle_require.scheduler import IdleScheduler

FEATURES = ["colorsys", "xml.dom.minidom"]


def _run(cache_path: Path) -> str:
    sink = InMemoryEventSink()
    timer = ManualIdleTimer()
    scheduler = IdleScheduler(
        ImportlibFeatureLoader(),
        timer,
        DependencyCache(cache_path),
        idle_action_max_duration=0.005,
        event_sink=sink,
    )
    for order, feature in enumerate(FEATURES):
        idle_require(scheduler, feature, order)
    timer.run_until_idle()
    return render_text_report(sink.events)


def main() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        cache_path = Path(tmp) / "dependency-cache.json"

        print("First run (nothing cached):")
        print(_run(cache_path))

        # Forget the modules so the second run has to load them again.
        for name in [m for m in sys.modules if m == "colorsys" or m.startswith("xml")]:
            del sys.modules[name]

        print("Second run (replaying recorded dependency order):")
        print(_run(cache_path))


if __name__ == "__main__":
    main()
