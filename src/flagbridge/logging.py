"""
Structured logging for flagbridge.

Manifesto:
    Flag evaluation never raises into the caller, so logs are the only place
    a failing evaluation is visible. Every record is structured: event name
    first, then ``flag``, ``error_kind`` and friends as fields.

    - **Structured:** JSON output for log aggregation
    - **Flexible:** Colored console output for development
    - **ECS-compatible:** ``@timestamp``, ``log.level``, ``service.name``

Architecture:
    ::

        configure_logging(level="INFO", json_format=True, service="flagbridge")
              │
              ▼
        structlog processor chain:
          1. TimeStamper(iso)
          2. merge_contextvars, add_log_level
          3. _add_service_metadata
          4. _elasticsearch_compatible (JSON only)
          5. JSONRenderer / ConsoleRenderer

Examples:
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> logger = get_logger(__name__)
    >>> logger.warning("evaluation_failed", flag="checkout", error_kind="FLAG_NOT_FOUND")

Tags:
    logging, structlog, observability, ecs, flagbridge
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

_SERVICE_NAME = "flagbridge"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service.name", _SERVICE_NAME)
    return event_dict


def _elasticsearch_compatible(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Make field names Elasticsearch/ECS compatible."""
    if "timestamp" in event_dict:
        event_dict["@timestamp"] = event_dict.pop("timestamp")
    if "level" in event_dict:
        event_dict["log.level"] = event_dict.pop("level")
    return event_dict


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # Resolved per call; stdout is reserved for command output.
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "flagbridge",
    add_timestamp: bool = True,
    cache_loggers: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name to include in logs
        add_timestamp: Include ISO timestamp in logs
        cache_loggers: Cache bound loggers on first use. The CLI turns this
            off so each invocation writes to the current stderr.
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    if json_format is None:
        json_format = not sys.stdout.isatty()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]

    if add_timestamp:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        shared_processors.append(_elasticsearch_compatible)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=cache_loggers,
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``).

    The name is bound as the ``logger_name`` field; PrintLogger has no name of
    its own, and ``logger`` is reserved by ``structlog.wrap_logger``.
    """
    if name:
        return structlog.get_logger(logger_name=name)
    return structlog.get_logger()


__all__ = [
    "configure_logging",
    "get_logger",
]
