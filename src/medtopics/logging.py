"""Structured logging for medtopics.

This module provides a configured structlog logger with JSON output
for production and pretty console output for development. Job runs
bind a ``job``/``run_id`` pair into the context so every event emitted
during one ingestion or refresh pass can be correlated.
"""

import logging
import os
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog

__all__ = [
    "bind_run_context",
    "configure_logging",
    "get_logger",
]


def configure_logging(
    level: int = logging.INFO,
    json_output: bool = False,
    add_timestamp: bool = True,
) -> None:
    """Configure structlog for the application.

    Args:
        level: Logging level (default: INFO)
        json_output: If True, output JSON; if False, pretty console output
        add_timestamp: If True, add ISO timestamp to log entries
    """
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if add_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso", utc=True))

    if json_output:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    # Set levels for noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("motor").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a configured structlog logger.

    Args:
        name: Logger name (usually __name__ of the calling module)

    Returns:
        Configured structlog BoundLogger instance
    """
    return structlog.get_logger(name)


@contextmanager
def bind_run_context(job: str) -> Iterator[str]:
    """Bind ``job`` and a fresh ``run_id`` to every log event in the block.

    Args:
        job: Job kind (e.g. "ingestion", "refresh")

    Yields:
        The generated run id
    """
    run_id = uuid.uuid4().hex[:12]
    with structlog.contextvars.bound_contextvars(job=job, run_id=run_id):
        yield run_id


_configured = False


def _ensure_configured() -> None:
    """Ensure logging is configured with defaults.

    ``MEDTOPICS_LOG_JSON=1`` switches to JSON output and
    ``MEDTOPICS_LOG_LEVEL`` overrides the level name.
    """
    global _configured
    if not _configured:
        level_name = os.environ.get("MEDTOPICS_LOG_LEVEL", "INFO").upper()
        configure_logging(
            level=logging.getLevelNamesMapping().get(level_name, logging.INFO),
            json_output=os.environ.get("MEDTOPICS_LOG_JSON", "").lower() in ("1", "true", "yes"),
        )
        _configured = True


_ensure_configured()
