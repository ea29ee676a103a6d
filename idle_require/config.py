from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

DEFAULT_IDLE_QUEUE_DELAY = 0.1
DEFAULT_IDLE_ACTION_MAX_DURATION = 0.01


class ConfigFormatError(ValueError):
    """Raised when scheduler configuration fails validation."""


def default_cache_path() -> Path:
    """$XDG_DATA_HOME/idle-require/dependency-cache.json (~/.local/share fallback)."""
    base = os.environ.get("XDG_DATA_HOME")
    root = Path(base) if base else Path.home() / ".local" / "share"
    return root / "idle-require" / "dependency-cache.json"


# Accepted spellings -> field name.
_KEYS = {
    "idleQueueDelay": "idle_queue_delay",
    "idle_queue_delay": "idle_queue_delay",
    "idleActionMaxDuration": "idle_action_max_duration",
    "idle_action_max_duration": "idle_action_max_duration",
    "cacheFilePath": "cache_file_path",
    "cache_file_path": "cache_file_path",
}


@dataclass(frozen=True)
class IdleRequireConfig:
    # Seconds of idleness before each drain pass.
    idle_queue_delay: float = DEFAULT_IDLE_QUEUE_DELAY
    # Seconds a single drain pass may spend pulling new actions.
    idle_action_max_duration: float = DEFAULT_IDLE_ACTION_MAX_DURATION
    cache_file_path: Path = field(default_factory=default_cache_path)

    def __post_init__(self) -> None:
        for name in ("idle_queue_delay", "idle_action_max_duration"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigFormatError(f"{name} must be a number")
            if value <= 0:
                raise ConfigFormatError(f"{name} must be > 0")
        if not isinstance(self.cache_file_path, Path):
            object.__setattr__(self, "cache_file_path", Path(self.cache_file_path))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> IdleRequireConfig:
        kwargs: dict[str, Any] = {}
        for key, value in raw.items():
            name = _KEYS.get(key)
            if name is None:
                raise ConfigFormatError(f"unknown option {key!r}")
            if name in kwargs:
                raise ConfigFormatError(f"option {name!r} given more than once")
            kwargs[name] = value
        path = kwargs.get("cache_file_path")
        if path is not None:
            if not isinstance(path, (str, Path)) or not str(path):
                raise ConfigFormatError("cache_file_path must be a non-empty string")
            kwargs["cache_file_path"] = Path(path).expanduser()
        return cls(**kwargs)


def load_config(path: Path) -> IdleRequireConfig:
    """Load a JSON object of options, e.g. {"idleQueueDelay": 0.2}."""

    if not path.exists():
        raise ConfigFormatError(f"file not found: {path}")
    if not path.is_file():
        raise ConfigFormatError(f"not a file: {path}")

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigFormatError(f"unreadable config file {path}: {e}") from e

    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigFormatError(
            f"invalid JSON: {e.msg} (line {e.lineno}, col {e.colno})"
        ) from e

    if not isinstance(raw, dict):
        raise ConfigFormatError("root must be a JSON object")
    return IdleRequireConfig.from_mapping(raw)
