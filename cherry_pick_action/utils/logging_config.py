"""
Logging configuration using structlog.

Log output goes to stdout, either as key=value console lines (the default,
readable in GitHub Actions logs) or as JSON. Every event carries
``component="cherry-pick-action"``.
"""

import logging
from typing import Any

import structlog

from cherry_pick_action.enums import LogFormat
from cherry_pick_action.exceptions import ConfigurationError

COMPONENT = "cherry-pick-action"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def parse_level(level: str) -> int:
    """Map a level name to a logging level.

    Raises:
        ConfigurationError: If the level is not supported
    """
    try:
        return _LEVELS[level.strip().lower()]
    except KeyError:
        raise ConfigurationError(f"unsupported log level {level!r}") from None


def configure_logging(log_level: str = "info", log_format: str = "text") -> None:
    """Configure structured logging.

    Args:
        log_level: Minimum level (debug, info, warn, error)
        log_format: ``text`` for console rendering, ``json`` for JSON lines

    Raises:
        ConfigurationError: If the level or format is not supported
    """
    level = parse_level(log_level)

    try:
        fmt = LogFormat(log_format.strip().lower() or LogFormat.TEXT.value)
    except ValueError:
        raise ConfigurationError(f"unsupported log format {log_format!r}") from None

    renderer: Any
    if fmt is LogFormat.JSON:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(component=COMPONENT)
