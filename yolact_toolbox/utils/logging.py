"""
Logging helpers shared by the whole package.

Features:
1. Standard log levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
2. Console output with optional rotating log file
3. Custom log format
4. Loggers configured once and reused across modules
"""

import os
import sys
import logging
import logging.handlers
from typing import Optional, Union
import atexit


# Loggers configured through setup_logger
_loggers = {}

DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LOG_DIR = "logs"
DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10MB
DEFAULT_BACKUP_COUNT = 5


def setup_logger(
    name: str,
    level: Union[int, str] = DEFAULT_LOG_LEVEL,
    log_format: str = DEFAULT_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    log_file: Optional[str] = None,
    log_dir: str = DEFAULT_LOG_DIR,
    console: bool = True,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    propagate: bool = False,
) -> logging.Logger:
    """
    Configure a logger.

    Args:
        name: Logger name, usually the module or package name
        level: Log level, as a number or a name (DEBUG, INFO, ...)
        log_format: Record format
        date_format: Date format
        log_file: Log file name inside ``log_dir``; no file output if None
        log_dir: Directory of the log file
        console: Whether to write to stdout
        max_bytes: Size at which the log file is rotated
        backup_count: Number of rotated files to keep
        propagate: Whether records propagate to parent loggers

    Returns:
        The configured logger
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), DEFAULT_LOG_LEVEL)

    if name in _loggers:
        logger = _loggers[name]
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = propagate

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    formatter = logging.Formatter(log_format, date_format)

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(level)
        logger.addHandler(console_handler)

    if log_file is not None:
        if not os.path.exists(log_dir):
            os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, log_file),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    _loggers[name] = logger

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Return a configured logger, creating a console logger if needed.

    Args:
        name: Logger name

    Returns:
        The logger
    """
    if name in _loggers:
        return _loggers[name]
    return setup_logger(name)


def flush_all_loggers() -> None:
    """Flush every handler of the configured loggers."""
    for name, logger in _loggers.items():
        for handler in logger.handlers:
            handler.flush()


atexit.register(flush_all_loggers)
