"""Logging configuration."""

import logging
import sys
from typing import Any

import structlog

from superintern.settings import settings

# Event keys whose values never reach the log
REDACTED_KEYS = {"token", "authorization", "secret", "signature", "svix_signature"}


def add_app_context(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Tag every event with the application name and environment."""
    event_dict.setdefault("app", settings.app_name)
    event_dict.setdefault("env", settings.env)
    return event_dict


def redact_secrets(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask bearer tokens and webhook signatures."""
    for key in event_dict.keys() & REDACTED_KEYS:
        event_dict[key] = "***"
    return event_dict


def configure_logging() -> None:
    """Configure structured logging."""

    shared = [
        structlog.contextvars.merge_contextvars,
        add_app_context,
        redact_secrets,
        structlog.processors.add_log_level,
    ]

    # Configure processors based on format
    if settings.log_format == "json":
        processors = shared + [
            structlog.processors.TimeStamper(fmt="iso"),
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
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # Also configure standard logging for third-party libraries
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper()),
    )


def bind_request_context(request_id: str, method: str, path: str) -> None:
    """Attach request fields to every event logged while handling it."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, method=method, path=path)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance."""
    return structlog.get_logger(name)
