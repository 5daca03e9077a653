"""
loguru configuration for batchrun.

Library modules only call `get_logger`; handlers are installed by the CLI
through `setup_logging`.
"""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<level>{message}</level>"
)

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[name]}:{line} | {message}"


def setup_logging(
    level: str = "INFO",
    log_file: str | Path | None = None,
    *,
    rotation: str = "10 MB",
    colorize: bool | None = None,
) -> None:
    """
    Replace loguru's handlers with a console handler and an optional file.

    Args:
        level: Minimum level for both handlers (DEBUG, INFO, WARNING, ERROR)
        log_file: Path of a log file, created with its parent directories
        rotation: File rotation policy
        colorize: Force colour on or off; None lets loguru detect a terminal
    """
    logger.remove()
    logger.configure(extra={"name": "batchrun"})

    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=level.upper(),
        colorize=colorize,
        backtrace=False,
        diagnose=False,
    )

    if log_file is not None:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(path),
            format=FILE_FORMAT,
            level=level.upper(),
            rotation=rotation,
            backtrace=True,
            diagnose=False,
            encoding="utf-8",
        )

    logger.debug("Logging configured - level: {}, file: {}", level.upper(), log_file)


def get_logger(name: str | None = None):
    if name:
        return logger.bind(name=name)
    return logger
