"""
Unified output system using Loguru.
Replaces print() statements and stdlib logging with dual output (console + file).
"""

import sys
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from loguru import logger


def setup_loguru(
    log_file: Path, level: str = "INFO", console_output: bool = False
) -> None:
    """
    Configure loguru with a rotating file sink.

    Args:
        log_file: Path to log file
        level: Minimum level for file logging (DEBUG, INFO, WARNING, ERROR)
        console_output: Also mirror log records to stderr
    """
    logger.remove()

    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_file,
        rotation="10 MB",
        retention=5,  # Keep 5 backup files
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}",
        enqueue=False,  # Synchronous writes (thread-safe but blocking)
    )

    if console_output:
        logger.add(sys.stderr, level=level, format="{level}: {message}")

    logger.info(f"Loguru initialized: {log_file} (level={level})")


def is_silent() -> bool:
    """True when the current thread asked for file-only logging."""
    return getattr(threading.current_thread(), "silent_logging", False)


def log(message: str, level: str = "info") -> None:
    """
    Unified logging: writes to file AND prints for the user.

    Use this instead of print() for user-facing messages that should also be logged.
    Threads with ``silent_logging = True`` (silent sync cycles, background
    workers) only write to the log file.

    Args:
        message: User-facing message
        level: Log level (debug, info, warning, error)
    """
    log_func = getattr(logger.opt(depth=1), level)
    log_func(message)

    if not is_silent():
        print(message)


@contextmanager
def silenced(enabled: bool = True) -> Iterator[None]:
    """Temporarily route log() on this thread to the log file only."""
    thread = threading.current_thread()
    previous = getattr(thread, "silent_logging", False)
    if enabled:
        thread.silent_logging = True
    try:
        yield
    finally:
        thread.silent_logging = previous
