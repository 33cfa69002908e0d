"""Structured logging configuration using structlog.

JSON output for production, human-readable console output for development.
Everything goes to stderr: the CLI writes its JSON to stdout. Modules log
through get_logger(); the aggregator binds the viewer (cohort, section)
with viewer_context() so fetch and parse events carry who they were for.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

from src.academics.config import AcademicsConfig, get_config

# Chatty HTTP internals stay at WARNING unless DEBUG is requested
_QUIET_LOGGERS = ("urllib3", "requests")


def setup_logging(json_output: bool = False, log_level: str = "INFO") -> None:
    """Configure structlog and route stdlib logging to stderr.

    Args:
        json_output: If True, output JSON (production). If False, console format (dev).
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.handlers = [logging.StreamHandler(sys.stderr)]
    root.setLevel(numeric_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(
            numeric_level if numeric_level <= logging.DEBUG else logging.WARNING
        )


def configure_logging(config: AcademicsConfig | None = None) -> None:
    """setup_logging() driven by LOG_JSON / LOG_LEVEL."""
    config = config or get_config()
    setup_logging(json_output=config.log_json, log_level=config.log_level)


@contextmanager
def viewer_context(cohort: str, section: str) -> Iterator[None]:
    """Bind the viewer to every log event emitted inside the block."""
    with structlog.contextvars.bound_contextvars(cohort=cohort, section=section):
        yield


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance bound with the module name.

    Args:
        name: Logger name (typically __name__ from calling module).
    """
    return structlog.get_logger(name)
