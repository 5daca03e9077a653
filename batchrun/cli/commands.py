from __future__ import annotations

import argparse
import asyncio
import signal
import sys

from batchrun.config import BatchConfig, ConfigError, load_config
from batchrun.logging_config import get_logger, setup_logging
from batchrun.runner import (
    BatchDriver,
    BatchSummary,
    NullProgressSink,
    SetupFailure,
    TerminalProgressSink,
)
from batchrun.runner.progress import ProgressSink, first_line
from batchrun.tasks import CommandTaskFactory, require_env

from .args import build_parser

logger = get_logger(__name__)


def run_cli(argv: list[str] | None = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
        setup_logging(args.log_level, args.log_file)

        match args.command:
            case "run":
                return cmd_run(args)
            case "show":
                return cmd_show(args)
            case _:
                return 2

    except (ConfigError, SetupFailure) as exc:
        print(str(exc), file=sys.stderr)
        return 2

    except KeyboardInterrupt:
        return 130


def cmd_run(args: argparse.Namespace) -> int:
    config = load_config(args.config).with_overrides(
        total=args.total, concurrency=args.concurrency
    )
    driver = build_driver(config, progress=not args.no_progress)
    summary = asyncio.run(_run_interruptible(driver))
    _print_summary(summary)
    return exit_code(summary)


def cmd_show(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    for key, value in config.items():
        print(f"{key}: {value}".rstrip())
    return 0


def build_driver(config: BatchConfig, *, progress: bool = True) -> BatchDriver:
    factory = CommandTaskFactory(
        config.command,
        config.total,
        label=config.label,
        env=config.env,
        working_dir=config.working_dir,
    )
    sink: ProgressSink
    if progress:
        sink = TerminalProgressSink(sys.stdout, interval=config.progress_interval)
    else:
        sink = NullProgressSink()

    return BatchDriver(
        config.total,
        config.resolved_concurrency,
        factory,
        sink=sink,
        preflight=require_env(config.require_env),
    )


def exit_code(summary: BatchSummary) -> int:
    if summary.error is not None:
        return 1
    if summary.cancelled:
        return 130
    if summary.failed:
        return 1
    return 0


async def _run_interruptible(driver: BatchDriver) -> BatchSummary:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, driver.signal_cancel)
    except (NotImplementedError, RuntimeError, ValueError):
        # No loop signal handlers here; Ctrl+C surfaces as KeyboardInterrupt.
        logger.debug("SIGINT handler unavailable, interrupts will not drain the batch")
        return await driver.run()

    try:
        return await driver.run()
    finally:
        loop.remove_signal_handler(signal.SIGINT)


def _print_summary(summary: BatchSummary) -> None:
    for label, failure in summary.failures().items():
        print(f"FAIL {label}: {first_line(failure.error)}")

    print("--- Batch Summary ---")
    print(f"Total attempted: {summary.attempted}")
    print(f"Successful: {summary.succeeded}")
    print(f"Failed: {summary.failed}")

    if summary.error is not None:
        print(f"Unexpected error: {summary.error}")

    if summary.cancelled and summary.not_attempted > 0:
        print(f"Process aborted. {summary.not_attempted} tasks were not attempted.")

    print("---------------------")
