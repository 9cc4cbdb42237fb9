"""
Structured logging for agentloop.

All modules log through structlog with snake_case event names and keyword
context, e.g. ``logger.info("tool_call_completed", tool_name=..., run_id=...)``.
"""

import importlib
import logging
import sys
from typing import Any, cast

import structlog
from structlog.types import EventDict, WrappedLogger

# Keys whose values never reach the log sink
SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "passwd",
        "secret",
        "api_key",
        "apikey",
        "authorization",
        "auth",
        "credential",
        "credentials",
        "access_token",
        "refresh_token",
        "private_key",
        "bearer",
    }
)

REDACTED = "***REDACTED***"


def filter_sensitive_data(
    _logger: WrappedLogger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """
    Processor that redacts sensitive values from a log event.

    Matching is done on exact key names so that usage counters such as
    ``total_tokens`` or ``input_tokens`` are left untouched.
    """
    for key in list(event_dict.keys()):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(event_dict[key], dict):
            event_dict[key] = {
                k: (REDACTED if k.lower() in SENSITIVE_KEYS else v)
                for k, v in event_dict[key].items()
            }
    return event_dict


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """
    Configure structlog for the process.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR). Defaults to
            ``settings.log_level``, or DEBUG when ``settings.debug`` is set
        fmt: "console" for development, "json" for production. Defaults to
            ``settings.log_format``
    """
    # Resolved at call time: the config package imports modules that log
    config = importlib.import_module("agentloop.config.settings").settings
    if level is None:
        level = "DEBUG" if config.debug else config.log_level
    if fmt is None:
        fmt = config.log_format

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        filter_sensitive_data,
    ]

    if fmt == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    level_num = logging.getLevelName(level.upper())
    if not isinstance(level_num, int):
        level_num = logging.INFO

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger bound to the given module name."""
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))


__all__ = [
    "configure_logging",
    "filter_sensitive_data",
    "get_logger",
    "SENSITIVE_KEYS",
]
