"""Logging setup for cuepoint with console and rotating file output"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

from cuepoint.config import LoggingConfig

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

# HLS probes hit the network every few seconds; httpx logs each request at INFO
NOISY_LOGGERS = ("httpx", "httpcore")


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    log_to_console: bool = True,
    log_to_file: bool = False,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    log_format: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the root logger for a process embedding the orchestration core.

    Previously installed root handlers are replaced, so calling this twice
    does not duplicate output.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Rotating log file, created with its parent directory
        log_to_console: Write to stdout
        log_to_file: Write to ``log_file``
        max_bytes: Size at which the log file rotates
        backup_count: Rotated files kept
        log_format: Format of file records

    Returns:
        The root logger
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    if log_to_console:
        root.addHandler(_console_handler(level))

    log_path = Path(log_file or "logs/cuepoint.log")
    if log_to_file:
        root.addHandler(
            _file_handler(log_path, level, max_bytes, backup_count, log_format or DEFAULT_FORMAT)
        )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    destinations = ["console"] if log_to_console else []
    if log_to_file:
        destinations.append(str(log_path))
    root.info(f"cuepoint logging initialized - Level: {log_level} ({', '.join(destinations) or 'no output'})")
    return root


def setup_logging_from_config(config: LoggingConfig) -> logging.Logger:
    """Configure logging from the ``logging`` config section."""
    return setup_logging(
        log_level=config.level,
        log_file=config.file,
        log_to_console=config.to_console,
        log_to_file=config.to_file,
        max_bytes=config.max_bytes,
        backup_count=config.backup_count,
        log_format=config.format,
    )


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    return handler


def _file_handler(
    path: Path, level: int, max_bytes: int, backup_count: int, log_format: str
) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(log_format, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler
