# deep_suppressor/cli.py
"""
deep-suppressor command.

    deep-suppressor --target 'com.tencent.mm=com.tencent.mm:appbrand*,com.tencent.mm:push'
    deep-suppressor --config suppress_config.json --console --log-level DEBUG

Signals:
    SIGTERM / SIGINT  stop, flush habits, exit
    SIGUSR1           check now
    SIGUSR2           force a full habits save
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Sequence
from pathlib import Path

from deep_suppressor import config
from deep_suppressor.exceptions import TargetListError
from deep_suppressor.habits import HabitsFileStorage, HabitStore
from deep_suppressor.logging_setup import LEVELS, LogSink
from deep_suppressor.probes import DumpsysActivityProbe, PsutilPressureProbe, PsutilTerminationAction
from deep_suppressor.scheduler import Scheduler
from deep_suppressor.targets import build_targets

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deep-suppressor",
        description="Adaptive background process suppressor.",
    )
    parser.add_argument(
        "--target",
        "-t",
        action="append",
        default=[],
        metavar="SPEC",
        help="[!]APP_ID=PATTERN[,PATTERN...]; leading '!' makes the target sticky (repeatable)",
    )
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        metavar="PATH",
        help=f"JSON target config (default when no --target is given: {config.TARGETS_FILE})",
    )
    parser.add_argument("--habits", default=config.HABITS_FILE, metavar="PATH", help="Learned habits file")
    parser.add_argument("--log-file", default=config.LOG_FILE, metavar="PATH", help="Rotating log file")
    parser.add_argument(
        "--log-level",
        default=config.LOG_LEVEL.upper(),
        type=str.upper,
        choices=sorted(LEVELS),
        help="Minimum log level",
    )
    parser.add_argument("--console", action="store_true", help="Also log to stderr")
    return parser


def resolve_config_path(args: argparse.Namespace) -> Path | None:
    if args.config:
        return Path(args.config)
    if not args.target:
        default = Path(config.TARGETS_FILE)
        if default.exists():
            return default
    return None


async def serve(scheduler: Scheduler) -> None:
    """Run the scheduler with signal handlers installed on the running loop."""
    loop = asyncio.get_running_loop()
    handlers = {
        "SIGTERM": scheduler.request_stop,
        "SIGINT": scheduler.request_stop,
        "SIGUSR1": scheduler.request_check,
        "SIGUSR2": scheduler.request_save,
    }
    installed: list[signal.Signals] = []
    for name, callback in handlers.items():
        sig = getattr(signal, name, None)
        if sig is None:
            continue
        try:
            loop.add_signal_handler(sig, callback)
        except (NotImplementedError, RuntimeError) as e:
            logger.warning(f"Cannot install {name} handler: {e}")
            continue
        installed.append(sig)

    try:
        await scheduler.run()
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    with LogSink(args.log_file, level=args.log_level, console=args.console) as sink:
        log = sink.logger
        log.info("Starting process manager")
        try:
            targets = build_targets(args.target, resolve_config_path(args))
        except TargetListError as e:
            log.error(f"Invalid target list: {e}")
            print(f"deep-suppressor: {e}", file=sys.stderr)
            return 1

        store = HabitStore(HabitsFileStorage(args.habits), logger=log.getChild("habits"))
        store.load()

        scheduler = Scheduler(
            targets,
            store,
            DumpsysActivityProbe(),
            PsutilTerminationAction(),
            pressure_probe=PsutilPressureProbe(),
            logger=log.getChild("scheduler"),
        )
        log.info(f"Process manager started with {len(targets)} targets")
        asyncio.run(serve(scheduler))
        log.info("Process manager stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
