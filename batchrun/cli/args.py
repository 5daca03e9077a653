from __future__ import annotations

import argparse


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="batchrun")

    parser.add_argument(
        "--config",
        default="batchrun.yml",
        help="Path to config file",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Minimum log level",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write logs to this file",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        required=True,
    )

    # run
    run = subparsers.add_parser("run", help="Run the batch")
    run.add_argument(
        "--total",
        type=_non_negative_int,
        default=None,
        help="Override the number of tasks",
    )
    run.add_argument(
        "--concurrency",
        type=_positive_int,
        default=None,
        help="Override the number of tasks running at once",
    )
    run.add_argument(
        "--no-progress",
        action="store_true",
        help="Do not draw the progress bar",
    )

    # show
    subparsers.add_parser("show", help="Show the resolved batch configuration")

    return parser
