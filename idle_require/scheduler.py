from __future__ import annotations

import heapq
import logging
import time
from typing import Any, Callable

from idle_require.actions import FALLBACK_ORDER, Action, ActionKind, Order, QueueEntry, sub_orders
from idle_require.config import (
    DEFAULT_IDLE_ACTION_MAX_DURATION,
    DEFAULT_IDLE_QUEUE_DELAY,
    IdleRequireConfig,
)
from idle_require.dependency_cache import DependencyCache
from idle_require.event_sink import EventSink
from idle_require.events import EventType
from idle_require.host import FeatureLoader, IdleHandle, IdleTimer

logger = logging.getLogger(__name__)


class SchedulerClosedError(RuntimeError):
    """Raised when scheduling on a scheduler that has been closed."""


class IdleScheduler:
    """
    Priority queue of deferred actions drained in bounded idle-time slices.

    Invariant (outside a drain pass): the queue is non-empty, or the cache
    is dirty, exactly when one idle-timer callback is armed.

    Rules:
    - Smallest (order, insertion seq) runs first.
    - A drain pass stops pulling new actions once idle_action_max_duration
      has elapsed; an action already running is never interrupted.
    - Scheduling during a drain never arms a timer; the pass re-arms at most
      once on exit, on every exit path.
    """

    def __init__(
        self,
        loader: FeatureLoader,
        timer: IdleTimer,
        cache: DependencyCache,
        *,
        idle_queue_delay: float = DEFAULT_IDLE_QUEUE_DELAY,
        idle_action_max_duration: float = DEFAULT_IDLE_ACTION_MAX_DURATION,
        clock: Callable[[], float] = time.monotonic,
        event_sink: EventSink | None = None,
    ) -> None:
        self.loader = loader
        self.timer = timer
        self.cache = cache
        self.idle_queue_delay = float(idle_queue_delay)
        self.idle_action_max_duration = float(idle_action_max_duration)
        self.event_sink = event_sink
        self._clock = clock
        self._queue: list[QueueEntry] = []
        self._seq = 0
        self._handle: IdleHandle | None = None
        self._draining = False
        self._closed = False

    @classmethod
    def from_config(
        cls,
        config: IdleRequireConfig,
        loader: FeatureLoader,
        timer: IdleTimer,
        *,
        clock: Callable[[], float] = time.monotonic,
        event_sink: EventSink | None = None,
    ) -> IdleScheduler:
        return cls(
            loader,
            timer,
            DependencyCache(config.cache_file_path),
            idle_queue_delay=config.idle_queue_delay,
            idle_action_max_duration=config.idle_action_max_duration,
            clock=clock,
            event_sink=event_sink,
        )

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def timer_armed(self) -> bool:
        return self._handle is not None

    @property
    def draining(self) -> bool:
        return self._draining

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def idle(self) -> bool:
        """Nothing queued, nothing to flush, no timer armed."""
        return not self._has_work() and self._handle is None

    def pending_entries(self) -> list[QueueEntry]:
        return sorted(self._queue)

    def _emit(self, event_type: EventType, feature: str | None = None, **data: Any) -> None:
        if self.event_sink is not None:
            self.event_sink.emit(event_type, feature, **data)

    def _has_work(self) -> bool:
        return bool(self._queue) or self.cache.dirty

    def schedule(self, action: Action, order: Order) -> None:
        if self._closed:
            raise SchedulerClosedError(f"cannot schedule {action}: scheduler is closed")
        self._seq += 1
        heapq.heappush(self._queue, QueueEntry(order, self._seq, action))
        self._emit(EventType.ACTION_SCHEDULED, action.feature, kind=action.kind.value, order=order)
        if not self._draining:
            self._arm()

    def _arm(self) -> None:
        if self._handle is not None:
            return
        self._handle = self.timer.call_when_idle(self.idle_queue_delay, self.drain)
        self._emit(EventType.TIMER_ARMED, delay=self.idle_queue_delay)

    def drain(self) -> None:
        """Run one bounded pass. Invoked by the idle timer."""
        if self._draining:
            return
        # The callback that brought us here is spent; drop any other.
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()

        self._draining = True
        if self.event_sink is not None:
            self.event_sink.start_drain()
        self._emit(EventType.DRAIN_START, pending=len(self._queue))
        start = self._clock()
        ran = 0
        try:
            while self._clock() - start < self.idle_action_max_duration and self._has_work():
                if self._queue:
                    self._dispatch(heapq.heappop(self._queue))
                    ran += 1
                else:
                    self._flush()
        finally:
            self._draining = False
            if not self._closed and self._has_work():
                self._arm()
            self._emit(
                EventType.DRAIN_END,
                ran=ran,
                pending=len(self._queue),
                rearmed=self._handle is not None,
            )
            logger.debug("Drain pass ran %d action(s), %d pending", ran, len(self._queue))

    def close(self, *, run_pending: bool = False) -> None:
        """
        Stop idle draining. With run_pending, every queued action runs now
        without a time budget. A dirty cache is flushed either way.
        """
        if self._closed:
            return
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()

        if run_pending and self._queue:
            self._draining = True
            if self.event_sink is not None:
                self.event_sink.start_drain()
            self._emit(EventType.DRAIN_START, pending=len(self._queue), final=True)
            ran = 0
            try:
                while self._queue:
                    self._dispatch(heapq.heappop(self._queue))
                    ran += 1
                self._flush()
            finally:
                self._draining = False
                # Still open on failure: leftover work goes back on the timer.
                if self._has_work():
                    self._arm()
                self._emit(
                    EventType.DRAIN_END,
                    ran=ran,
                    pending=len(self._queue),
                    rearmed=self._handle is not None,
                )

        self._closed = True
        self._flush()
        if self._queue:
            logger.info("Scheduler closed with %d action(s) never run", len(self._queue))

    def _flush(self) -> None:
        if self.cache.flush_if_dirty():
            self._emit(EventType.CACHE_FLUSHED, features=len(self.cache))

    def _dispatch(self, entry: QueueEntry) -> None:
        action = entry.action
        self._emit(EventType.ACTION_STARTED, action.feature, kind=action.kind.value, order=entry.order)
        logger.debug("Running %s at order %s", action, entry.order)

        if action.kind is ActionKind.LOAD_CACHE:
            if self.cache.ensure_loaded():
                self._emit(EventType.CACHE_LOADED, features=len(self.cache))
        elif action.kind is ActionKind.IDLE_REQUIRE:
            self._expand(entry)
        elif action.kind is ActionKind.REQUIRE:
            self._require(action.feature)
        elif action.kind is ActionKind.DEPENDENCY_REQUIRE:
            self._require_dependency(action.feature)
        else:
            raise ValueError(f"unknown action kind: {action.kind}")

    def _expand(self, entry: QueueEntry) -> None:
        feature = entry.action.feature
        if self.loader.is_loaded(feature):
            self._emit(EventType.FEATURE_SKIPPED, feature, reason="already_loaded")
            return

        if self.cache.ensure_loaded():
            self._emit(EventType.CACHE_LOADED, features=len(self.cache))
        deps = self.cache.lookup(feature)
        if not deps:
            self._emit(EventType.CACHE_MISS, feature)
            self.schedule(Action.require(feature), FALLBACK_ORDER)
            return

        self._emit(EventType.CACHE_HIT, feature, deps=list(deps))
        if deps[-1] != feature:
            deps.append(feature)
        for dep, order in zip(deps, sub_orders(entry.order, len(deps))):
            self.schedule(Action.dependency_require(dep), order)

    def _require(self, feature: str) -> None:
        observed = self.loader.load(feature)
        self._emit(EventType.FEATURE_LOADED, feature, observed=len(observed))
        if observed:
            self.cache.record(feature, observed)
            self._emit(EventType.CACHE_RECORDED, feature, deps=list(observed))

    def _require_dependency(self, feature: str) -> None:
        if self.loader.is_loaded(feature):
            self._emit(EventType.FEATURE_SKIPPED, feature, reason="already_loaded")
            return
        observed = self.loader.load(feature)
        self._emit(EventType.FEATURE_LOADED, feature, observed=len(observed))
