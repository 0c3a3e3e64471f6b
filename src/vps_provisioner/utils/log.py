"""Structured logging setup."""

import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

import structlog

from vps_provisioner.exceptions import ConfigurationError

_log_handle: Optional[TextIO] = None


def configure_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """Configure structlog for the provisioning run.

    Console output goes to stderr so that prompts and the final report on
    stdout stay readable. With ``log_file`` set, events are appended to that
    file as key/value lines instead.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file to write log events to

    Raises:
        ConfigurationError: If the level is unknown or the file cannot be opened
    """
    global _log_handle

    level_no = logging.getLevelName(level.upper())
    if not isinstance(level_no, int):
        raise ConfigurationError(f"Unknown log level: {level}")

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
    ]

    close_logging()
    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            _log_handle = open(log_file, "a")
        except OSError as e:
            raise ConfigurationError(f"Cannot open log file {log_file}: {e}") from e
        processors.append(
            structlog.processors.KeyValueRenderer(
                key_order=["timestamp", "level", "event"]
            )
        )
        logger_factory = structlog.WriteLoggerFactory(file=_log_handle)
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
        logger_factory = structlog.PrintLoggerFactory(file=sys.stderr)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_no),
        logger_factory=logger_factory,
        cache_logger_on_first_use=False,
    )


def close_logging() -> None:
    """Close the log file opened by configure_logging, if any."""
    global _log_handle

    if _log_handle is None:
        return
    structlog.reset_defaults()
    _log_handle.close()
    _log_handle = None
