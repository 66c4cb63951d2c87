"""Logging configuration for willump."""

import inspect
import logging
import sys
import time
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Optional

# Log directory
LOG_DIR = Path.home() / ".willump" / "logs"

# Log file with timestamp
LOG_FILE = LOG_DIR / f"willump_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

# Operations slower than this are logged as warnings
SLOW_THRESHOLD_MS = 1000

# Create formatters
DETAILED_FORMAT = logging.Formatter(
    '%(asctime)s.%(msecs)03d | %(levelname)-8s | %(name)-25s | %(funcName)-20s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

SIMPLE_FORMAT = logging.Formatter(
    '%(asctime)s | %(levelname)-8s | %(message)s',
    datefmt='%H:%M:%S'
)


def setup_logging(level: int = logging.WARNING, log_to_file: bool = True) -> logging.Logger:
    """
    Setup application-wide logging.

    Args:
        level: Console logging level. The file handler always records DEBUG.
        log_to_file: Also write a detailed log file under ~/.willump/logs.

    Returns:
        Root logger for the application
    """
    logger = logging.getLogger('willump')
    logger.setLevel(logging.DEBUG)

    # Avoid duplicate handlers
    if logger.handlers:
        for handler in logger.handlers:
            if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
                handler.setLevel(level)
        return logger

    if log_to_file:
        try:
            LOG_DIR.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(LOG_FILE, encoding='utf-8')
        except OSError as e:
            sys.stderr.write(f"willump: file logging disabled ({e})\n")
        else:
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(DETAILED_FORMAT)
            logger.addHandler(file_handler)

    # Console handler goes to stderr so stdout stays machine readable
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(SIMPLE_FORMAT)
    logger.addHandler(console_handler)

    logger.debug(f"Logging initialized. Log file: {LOG_FILE if log_to_file else '<disabled>'}")

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a specific module."""
    return logging.getLogger(f'willump.{name}')


def _log_elapsed(logger: logging.Logger, label: str, start: float):
    elapsed = (time.perf_counter() - start) * 1000  # ms
    if elapsed > SLOW_THRESHOLD_MS:
        logger.warning(f"SLOW: {label} took {elapsed:.2f}ms")
    else:
        logger.debug(f"{label} took {elapsed:.2f}ms")


def timed(func):
    """
    Decorator to log function execution time. Works on coroutines too.

    Failures are logged at DEBUG and re-raised; reporting them is the caller's job.
    """
    logger = get_logger('perf')

    if inspect.iscoroutinefunction(func):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                elapsed = (time.perf_counter() - start) * 1000
                logger.debug(f"{func.__qualname__} failed after {elapsed:.2f}ms: {e}")
                raise
            _log_elapsed(logger, func.__qualname__, start)
            return result
        return async_wrapper

    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            elapsed = (time.perf_counter() - start) * 1000
            logger.debug(f"{func.__qualname__} failed after {elapsed:.2f}ms: {e}")
            raise
        _log_elapsed(logger, func.__qualname__, start)
        return result
    return wrapper


class PerfTimer:
    """Context manager for timing code blocks."""

    def __init__(self, name: str, logger: Optional[logging.Logger] = None):
        self.name = name
        self.logger = logger or get_logger('perf')
        self.start: float = 0
        self.elapsed: float = 0

    def __enter__(self):
        self.start = time.perf_counter()
        self.logger.debug(f"Starting: {self.name}")
        return self

    def __exit__(self, *args):
        self.elapsed = (time.perf_counter() - self.start) * 1000
        if self.elapsed > SLOW_THRESHOLD_MS:
            self.logger.warning(f"SLOW: {self.name} took {self.elapsed:.2f}ms")
        else:
            self.logger.debug(f"Completed: {self.name} in {self.elapsed:.2f}ms")


def get_log_file_path() -> Path:
    """Get current log file path."""
    return LOG_FILE
