"""
Host collaborators consumed by the scheduler.

The scheduler never loads features or waits for idleness itself; it talks
to a FeatureLoader and an IdleTimer. Concrete adapters:

- ImportlibFeatureLoader: features are importable module names.
- ManualIdleTimer: deterministic, fired explicitly (tests, demos).
- AsyncioIdleTimer: one-shot callbacks on the host's event loop thread.
"""
from __future__ import annotations

import asyncio
import importlib
import logging
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class IdleHandle(Protocol):
    def cancel(self) -> None: ...


class IdleTimer(ABC):
    @abstractmethod
    def call_when_idle(self, delay: float, callback: Callable[[], None]) -> IdleHandle:
        """Arm a one-shot callback to run after `delay` idle seconds."""


class FeatureLoader(ABC):
    @abstractmethod
    def is_loaded(self, feature: str) -> bool:
        """Whether the host already has `feature` loaded."""

    @abstractmethod
    def load(self, feature: str) -> list[str]:
        """Load `feature` unconditionally.

        Returns the features that became loaded as a side effect, ordered
        leaves first with `feature` itself last. Returns an empty list when
        nothing new was loaded. Host failures propagate unchanged.
        """


class ImportlibFeatureLoader(FeatureLoader):
    """
    Loads features with importlib and observes nested imports via sys.modules.

    The import system re-inserts each module into sys.modules once it has
    finished executing, so the new entries are listed in completion order:
    every module follows the modules it imported.
    """

    def is_loaded(self, feature: str) -> bool:
        return feature in sys.modules

    def load(self, feature: str) -> list[str]:
        before = set(sys.modules)
        importlib.import_module(feature)
        observed = [name for name in list(sys.modules) if name not in before]
        if feature in observed:
            observed.remove(feature)
            observed.append(feature)
        logger.debug("Imported %s (+%d modules)", feature, len(observed))
        return observed


@dataclass
class _ManualHandle:
    delay: float
    callback: Callable[[], None]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class ManualIdleTimer(IdleTimer):
    """
    Idle timer driven explicitly by the caller.
    Callbacks fire oldest first; delays are recorded, not waited for.
    """

    pending: list[_ManualHandle] = field(default_factory=list)
    fired: int = 0
    armed_total: int = 0

    @property
    def armed(self) -> int:
        return sum(1 for h in self.pending if not h.cancelled)

    def call_when_idle(self, delay: float, callback: Callable[[], None]) -> IdleHandle:
        handle = _ManualHandle(delay=float(delay), callback=callback)
        self.pending.append(handle)
        self.armed_total += 1
        return handle

    def fire(self) -> bool:
        """Run the oldest armed callback. Returns False if nothing was armed."""
        while self.pending:
            handle = self.pending.pop(0)
            if handle.cancelled:
                continue
            self.fired += 1
            handle.callback()
            return True
        return False

    def run_until_idle(self, max_fires: int = 10_000) -> int:
        """Fire until nothing is armed. Returns the number of callbacks run."""
        count = 0
        while count < max_fires and self.fire():
            count += 1
        if self.armed:
            raise RuntimeError(f"idle timer still armed after {max_fires} fires")
        return count


class AsyncioIdleTimer(IdleTimer):
    """
    Arms callbacks with loop.call_later on the host's single event loop.

    asyncio has no notion of user inactivity, so `delay` seconds of loop
    time stand in for an idle period.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_when_idle(self, delay: float, callback: Callable[[], None]) -> IdleHandle:
        loop = self._loop if self._loop is not None else asyncio.get_running_loop()
        return loop.call_later(delay, callback)
