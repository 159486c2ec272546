"""Loguru sinks for RideTrack.

Console output stays at INFO so per-frame DEBUG chatter from the scheduler
and the tracking manager only lands in the rotating run log. The run log and
the error log live under ``RIDETRACK_LOG_DIR`` (``logs`` by default).
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

LOG_DIR_ENV = "RIDETRACK_LOG_DIR"
DEFAULT_LOG_DIR = "logs"
FRAME_BUDGET_MS = 1000.0 / 60

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {thread.name} | {name}:{function}:{line} - {message}"


def configure_logging(log_dir: Optional[Union[str, Path]] = None, console_level: str = "INFO") -> Path:
    """Replace all loguru sinks with the RideTrack console, run and error sinks.

    Args:
        log_dir: Directory for log files; ``RIDETRACK_LOG_DIR`` or ``logs`` when None
        console_level: Minimum level written to stderr

    Returns:
        The directory the file sinks write to
    """
    directory = Path(log_dir or os.environ.get(LOG_DIR_ENV, DEFAULT_LOG_DIR))
    directory.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(sys.stderr, level=console_level, format=CONSOLE_FORMAT, colorize=True)
    # Frame thread and callers log concurrently; enqueue keeps file writes ordered.
    logger.add(
        directory / "ridetrack_{time}.log",
        rotation="50 MB",
        retention="10 days",
        level="DEBUG",
        format=FILE_FORMAT,
        enqueue=True,
    )
    logger.add(
        directory / "errors_{time}.log",
        rotation="10 MB",
        retention="30 days",
        level="ERROR",
        format=FILE_FORMAT,
        enqueue=True,
        backtrace=True,
    )
    return directory


configure_logging()


def get_logger(name: Optional[str] = None):
    """Logger bound to ``name`` (normally the calling module's ``__name__``)."""
    if name:
        return logger.bind(name=name)
    return logger


def log_performance(operation: str, duration_ms: float, threshold_ms: float = FRAME_BUDGET_MS) -> None:
    """Warn when ``operation`` overran ``threshold_ms``, else record it at DEBUG.

    The default budget is one frame at 60 Hz.
    """
    if duration_ms > threshold_ms:
        logger.warning(f"Slow operation: {operation} took {duration_ms:.2f}ms (budget {threshold_ms:.1f}ms)")
    else:
        logger.debug(f"{operation} took {duration_ms:.2f}ms")


__all__ = ["FRAME_BUDGET_MS", "LOG_DIR_ENV", "configure_logging", "get_logger", "log_performance", "logger"]
