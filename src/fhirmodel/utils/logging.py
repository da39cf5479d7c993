"""Logging configuration for fhirmodel.

The library only emits structlog events; it never configures logging on
import. Applications (and the definition generator) call ``setup_logging``.
Serialization binds the resource type and document format of the current
operation with ``log_context`` so nested events carry them.
"""

import logging
import sys
from typing import Any, ContextManager, MutableMapping, Optional

import structlog
from structlog.stdlib import BoundLogger, LoggerFactory

from fhirmodel.config import get_settings

LIBRARY = "fhirmodel"


def add_library_context(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Tag events with the emitting library."""
    event_dict.setdefault("library", LIBRARY)
    return event_dict


def setup_logging(level: Optional[str] = None) -> None:
    """Configure structured logging for applications embedding the library.

    Args:
        level: Log level overriding ``Settings.log_level``
    """
    settings = get_settings()
    level = (level or settings.log_level).upper()

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level),
    )
    logging.getLogger(LIBRARY).setLevel(level)

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            add_library_context,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            render_processor(),
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=True,
    )


def render_processor() -> Any:
    """Choose renderer based on configuration."""
    settings = get_settings()

    if settings.log_format == "json":
        return structlog.processors.JSONRenderer(sort_keys=True)
    return structlog.dev.ConsoleRenderer()


def log_context(**values: Any) -> ContextManager[None]:
    """Bind values to every event logged inside the ``with`` block.

    Values whose value is None are not bound.
    """
    bound = {key: value for key, value in values.items() if value is not None}
    return structlog.contextvars.bound_contextvars(**bound)


def get_logger(name: str) -> BoundLogger:
    """Get a configured logger instance."""
    bound_logger: BoundLogger = structlog.get_logger(name)
    return bound_logger
