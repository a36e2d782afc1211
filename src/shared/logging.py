"""Logging configuration shared by every bounded context."""

import logging
import sys

import structlog

from shared.config import Settings

logger = structlog.get_logger(__name__)

# Suppress noisy library loggers
_NOISY_LOGGERS = ("sqlalchemy.engine", "apscheduler", "httpx", "httpcore")


def configure_logging(settings: Settings) -> None:
    """Configure stdlib logging and structlog for the given environment.

    Development and test runs get a human-readable console renderer;
    production emits one JSON object per line.
    """
    level = logging.getLevelName(settings.log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    renderer = structlog.processors.JSONRenderer() if settings.is_production else structlog.dev.ConsoleRenderer()

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
        cache_logger_on_first_use=True,
    )
