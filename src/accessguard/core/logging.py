"""Structured logging.

structlog renders JSON in production and colored console output in
development. Every facade operation runs inside ``operation_context`` so its
log lines share an operation name, actor and correlation id.
"""

import logging
import sys
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from structlog.types import EventDict, Processor

from accessguard.core.config import Settings, get_settings


def add_logger_name(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add the logger name, falling back to ``accessguard``."""
    event_dict["logger"] = getattr(logger, "name", None) or "accessguard"
    return event_dict


def rename_message_field(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Rename 'event' field to 'message'."""
    if "event" in event_dict:
        event_dict["message"] = event_dict.pop("event")
    return event_dict


def configure_logging(settings: Settings | None = None) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        settings: Optional settings instance. If not provided, will load from environment.
    """
    if settings is None:
        settings = get_settings()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        rename_message_field,
    ]

    if settings.is_development or settings.log_format == "console":
        renderer: list[Processor] = [
            structlog.dev.ConsoleRenderer(exception_formatter=structlog.dev.plain_traceback)
        ]
    else:
        renderer = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    level = getattr(logging, settings.log_level)
    structlog.configure(
        processors=shared_processors + renderer,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=not settings.is_testing,
    )

    # SQLAlchemy engine echo goes through stdlib logging
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.store_echo else logging.WARNING
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name or "accessguard")


@contextmanager
def operation_context(operation: str, actor_id: str | None = None) -> Iterator[str]:
    """Bind operation, actor and a fresh correlation id for the enclosed block.

    Yields:
        The correlation id.
    """
    correlation_id = f"op_{uuid.uuid4().hex[:12]}"
    context = {"operation": operation, "correlation_id": correlation_id}
    if actor_id:
        context["actor_id"] = actor_id
    with structlog.contextvars.bound_contextvars(**context):
        yield correlation_id
