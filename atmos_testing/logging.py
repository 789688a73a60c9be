"""structlog configuration for harness runs.

Every harness module logs through ``structlog.get_logger(__name__)`` with
key/value events. This module wires the processors once per process.

Example:
    >>> configure_logging(log_level="DEBUG", json_output=False)
    >>> log = structlog.get_logger()
    >>> log.info("unit_deployed", component="efs/basic", stack="default-test")
"""

from __future__ import annotations

import logging
import sys

import structlog

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = False,
) -> None:
    """Configure structlog for a harness run.

    Args:
        log_level: Minimum level to emit (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: If True, render JSON lines for CI log collection.
            If False, use the console renderer.

    Raises:
        ValueError: If log_level is not a known level name.
    """
    level = _LEVELS.get(log_level.upper())
    if level is None:
        msg = f"Unknown log level {log_level!r}, expected one of {', '.join(_LEVELS)}"
        raise ValueError(msg)

    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


__all__ = ["configure_logging"]
