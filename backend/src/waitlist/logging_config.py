"""Structured logging for the waitlist API and CLI.

Every module logs snake_case events with key/value context through
``get_logger(__name__)``. JSON output carries the service name and
environment so lines from several deployments can share one sink.
"""

import logging
import sys

import structlog

from waitlist.settings import settings


def _add_service_context(logger, method_name, event_dict):
    event_dict.setdefault("service", settings.app_name)
    event_dict.setdefault("env", settings.env)
    return event_dict


def _level_number(level_name: str) -> int:
    level = logging.getLevelName(level_name.upper())
    # Unknown names come back as "Level X" strings
    return level if isinstance(level, int) else logging.INFO


def configure_logging(log_level: str | None = None, log_format: str | None = None) -> None:
    """Configure structlog and route stdlib logging to stdout.

    Args:
        log_level: Overrides ``settings.log_level``
        log_format: ``json`` or ``console``; overrides ``settings.log_format``
    """
    level = _level_number(log_level or settings.log_level)
    shared = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
    ]

    if (log_format or settings.log_format) == "json":
        processors = shared + [
            _add_service_context,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared + [
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # uvicorn and SQLAlchemy log through the standard library
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)
