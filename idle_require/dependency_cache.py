from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from idle_require.cache_io import CacheFormatError, load_dependency_cache, save_dependency_cache

logger = logging.getLogger(__name__)


class DependencyCache:
    """
    Lazily-loaded mapping: feature -> recorded dependency order (leaves first).

    Lifecycle flags:
      - loaded: the persisted mapping has been read (or found absent/corrupt).
      - dirty: in-memory changes not yet written; dirty implies loaded.

    Only the scheduler's drain routine mutates the cache.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._features: dict[str, list[str]] = {}
        self._loaded = False
        self._dirty = False
        self.reads = 0
        self.writes = 0

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def dirty(self) -> bool:
        return self._dirty

    def __len__(self) -> int:
        return len(self._features)

    def snapshot(self) -> dict[str, list[str]]:
        return {name: list(deps) for name, deps in self._features.items()}

    def ensure_loaded(self) -> bool:
        """
        Read the persisted cache once. Returns True if this call did the read.

        A missing or corrupt file yields an empty cache; the failure is
        logged, never raised.
        """
        if self._loaded:
            return False
        self.reads += 1
        try:
            features = load_dependency_cache(self.path)
        except CacheFormatError as e:
            logger.warning("Ignoring unusable dependency cache %s: %s", self.path, e)
            features = {}
        self._features = features
        self._loaded = True
        self._dirty = False
        logger.info("Dependency cache loaded: path=%s, features=%d", self.path, len(features))
        return True

    def lookup(self, feature: str) -> list[str] | None:
        deps = self._features.get(feature)
        return list(deps) if deps is not None else None

    def record(self, feature: str, deps_in_order: Sequence[str]) -> None:
        self.ensure_loaded()
        deps = list(deps_in_order)
        if self._features.get(feature) == deps:
            return
        self._features[feature] = deps
        self._dirty = True
        logger.info("Recorded expansion: %s -> %d dependencies", feature, len(deps))

    def flush_if_dirty(self) -> bool:
        """
        Persist the full mapping when dirty. Returns True if a write happened.

        PersistenceWriteError propagates and leaves the cache dirty.
        """
        if not self._dirty:
            return False
        save_dependency_cache(self.path, self._features)
        self.writes += 1
        self._dirty = False
        logger.info("Dependency cache flushed: path=%s, features=%d", self.path, len(self._features))
        return True
