from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Mapping, Sequence

CACHE_FORMAT_VERSION = 1


class CacheFormatError(ValueError):
    """Raised when a persisted dependency cache fails validation."""


class PersistenceWriteError(OSError):
    """Raised when the dependency cache cannot be written to storage."""


def load_dependency_cache(path: Path) -> dict[str, list[str]]:
    """Load and validate a persisted dependency cache.

    Format:
      {
        "version": 1,
        "features": {
          "email.mime.text": ["email.charset", "email.mime.base", "email.mime.text"],
          ...
        }
      }

    Each list is the feature's recorded dependency order, leaves first.
    Returns an empty mapping when the file does not exist.
    """

    if not path.exists():
        return {}
    if not path.is_file():
        raise CacheFormatError(f"not a file: {path}")

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise CacheFormatError(f"unreadable cache file {path}: {e}") from e

    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise CacheFormatError(
            f"invalid JSON: {e.msg} (line {e.lineno}, col {e.colno})"
        ) from e
    except (ValueError, RecursionError) as e:
        raise CacheFormatError(f"unparseable cache content: {e}") from e

    if not isinstance(raw, dict):
        raise CacheFormatError("root must be a JSON object")

    version = raw.get("version")
    if version != CACHE_FORMAT_VERSION:
        raise CacheFormatError(
            f"unsupported cache version {version!r} (expected {CACHE_FORMAT_VERSION})"
        )

    features_raw = raw.get("features")
    if not isinstance(features_raw, dict):
        raise CacheFormatError("features must be an object")

    features: dict[str, list[str]] = {}
    for name, deps in features_raw.items():
        if not name:
            raise CacheFormatError("feature names must be non-empty strings")
        if not isinstance(deps, list):
            raise CacheFormatError(f"features[{name!r}] must be an array")
        for i, dep in enumerate(deps):
            if not isinstance(dep, str) or not dep:
                raise CacheFormatError(f"features[{name!r}][{i}] must be a non-empty string")
        features[name] = list(deps)
    return features


def save_dependency_cache(path: Path, features: Mapping[str, Sequence[str]]) -> None:
    """Write the full mapping to `path` as a single atomic replace.

    Missing parent directories are created first. The payload is written to
    a temporary file beside the target and renamed over it, so an
    interrupted write never leaves a half-written cache behind.
    """

    payload = {
        "version": CACHE_FORMAT_VERSION,
        "features": {name: list(deps) for name, deps in features.items()},
    }
    tmp: Path | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=path.parent, prefix=f".{path.name}.", delete=False
        ) as fh:
            tmp = Path(fh.name)
            json.dump(payload, fh, indent=2, sort_keys=True)
            fh.write("\n")
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, path)
    except OSError as e:
        if tmp is not None and tmp.exists():
            tmp.unlink()
        raise PersistenceWriteError(f"cannot write dependency cache {path}: {e}") from e
