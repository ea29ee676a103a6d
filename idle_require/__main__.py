from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import sys
from pathlib import Path
from typing import Any

from idle_require.api import InvalidOrderError, idle_require
from idle_require.cache_io import CacheFormatError, load_dependency_cache
from idle_require.config import ConfigFormatError, IdleRequireConfig, load_config
from idle_require.event_sink import InMemoryEventSink
from idle_require.host import AsyncioIdleTimer, ImportlibFeatureLoader
from idle_require.reporting import render_text_report
from idle_require.scheduler import IdleScheduler


def _resolve_config(args: argparse.Namespace) -> IdleRequireConfig:
    config = load_config(Path(str(args.config))) if args.config else IdleRequireConfig()
    overrides: dict[str, Any] = {}
    if args.cache:
        overrides["cache_file_path"] = Path(str(args.cache))
    if getattr(args, "delay", None) is not None:
        overrides["idle_queue_delay"] = float(args.delay)
    if getattr(args, "slice", None) is not None:
        overrides["idle_action_max_duration"] = float(args.slice)
    return dataclasses.replace(config, **overrides) if overrides else config


async def _wait_until_idle(scheduler: IdleScheduler, *, timeout: float) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not scheduler.idle:
        if loop.time() >= deadline:
            return False
        await asyncio.sleep(scheduler.idle_queue_delay)
    return True


def _cmd_warm(args: argparse.Namespace) -> int:
    try:
        config = _resolve_config(args)
    except ConfigFormatError as e:
        print(f"ERROR: invalid configuration: {e}", file=sys.stderr)
        return 2

    sink = InMemoryEventSink()
    failures: list[str] = []
    loop = asyncio.new_event_loop()

    def _on_error(_loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        exc = context.get("exception")
        failures.append(f"{type(exc).__name__}: {exc}" if exc else str(context.get("message")))

    loop.set_exception_handler(_on_error)
    try:
        scheduler = IdleScheduler.from_config(
            config,
            ImportlibFeatureLoader(),
            AsyncioIdleTimer(loop),
            event_sink=sink,
        )
        try:
            for feature in args.features:
                idle_require(scheduler, feature, args.order)
        except InvalidOrderError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 2

        finished = loop.run_until_complete(_wait_until_idle(scheduler, timeout=float(args.timeout)))
        if not finished:
            print(
                f"WARNING: not idle after {args.timeout}s; running {scheduler.pending} action(s) now",
                file=sys.stderr,
            )
        scheduler.close(run_pending=True)
    finally:
        loop.close()

    sys.stdout.write(render_text_report(sink.events))
    for failure in failures:
        print(f"ERROR: {failure}", file=sys.stderr)
    return 1 if failures else 0


def _cache_path(args: argparse.Namespace) -> Path:
    return _resolve_config(args).cache_file_path


def _cmd_show_cache(args: argparse.Namespace) -> int:
    try:
        path = _cache_path(args)
        features = load_dependency_cache(path)
    except (ConfigFormatError, CacheFormatError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    if not features:
        sys.stdout.write(f"(No recorded features in {path}.)\n")
        return 0

    out: list[str] = [f"{path}"]
    for name in sorted(features):
        deps = features[name]
        out.append(f"  {name} ({len(deps)})")
        out.extend(f"    {dep}" for dep in deps)
    sys.stdout.write("\n".join(out) + "\n")
    return 0


def _cmd_clear_cache(args: argparse.Namespace) -> int:
    try:
        path = _cache_path(args)
    except ConfigFormatError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    if not path.exists():
        sys.stdout.write(f"No cache at {path}\n")
        return 0
    path.unlink()
    sys.stdout.write(f"Removed {path}\n")
    return 0


def _add_cache_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", type=str, default=None, help="JSON configuration file.")
    p.add_argument("--cache", type=str, default=None, help="Dependency cache file (overrides config).")


def build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="idle_require",
        description=(
            "Idle Require: deferred feature loading in idle-time slices.\n"
            "\n"
            "Learns each feature's dependency order across runs and replays it\n"
            "one dependency at a time."
        ),
    )
    parser.add_argument("--verbose", action="store_true", help="Log scheduler activity to stderr.")

    sub = parser.add_subparsers(dest="command", required=True)

    warm = sub.add_parser("warm", help="Idle-require modules on an asyncio loop and print drain passes.")
    warm.add_argument("features", nargs="+", help="Importable module names.")
    warm.add_argument("--order", type=int, default=0, help="Priority; smaller runs first.")
    warm.add_argument("--delay", type=float, default=None, help="Idle seconds between drain passes.")
    warm.add_argument("--slice", type=float, default=None, help="Seconds a drain pass may run.")
    warm.add_argument("--timeout", type=float, default=30.0, help="Safety cap before running the rest at once.")
    _add_cache_options(warm)
    warm.set_defaults(func=_cmd_warm)

    show = sub.add_parser("show-cache", help="Print recorded dependency orders.")
    _add_cache_options(show)
    show.set_defaults(func=_cmd_show_cache)

    clear = sub.add_parser("clear-cache", help="Delete the dependency cache file.")
    _add_cache_options(clear)
    clear.set_defaults(func=_cmd_clear_cache)

    return parser


def main(argv: list[str] | None = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
