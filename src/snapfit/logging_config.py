"""
structlog setup for the snapfit API.

Every event carries the service name and version, plus whatever the request
middleware bound into the context (``request_id``, method, path). Development
gets the console renderer; other environments emit one JSON object per line.

Reads the environment with ``os.getenv`` directly because ``config`` logs
through this module.
"""

import logging
import os
import sys
from typing import Any

import structlog

from . import __version__

SERVICE_NAME = "snapfit-api"


def get_log_level() -> int:
    """Level named by ``LOG_LEVEL``; unknown names fall back to INFO."""
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def is_development_environment() -> bool:
    return os.getenv("ENVIRONMENT", "development").lower() in ["development", "dev", "local"]


def add_service_info(logger: Any, method_name: str, event_dict: dict) -> dict:
    """Stamp each event with the emitting service and its version."""
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("version", __version__)
    return event_dict


def configure_structured_logging() -> None:
    """Route stdlib logging through stderr and configure structlog on top of it."""
    log_level = get_log_level()
    is_dev = is_development_environment()

    logging.basicConfig(level=log_level, format="%(message)s", stream=sys.stderr)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        add_service_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]

    if is_dev:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.getLogger().setLevel(log_level)

    # Requests are logged by the API middleware
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    get_logger("snapfit.logging").info(
        "logging_configured",
        log_level=logging.getLevelName(log_level),
        renderer="console" if is_dev else "json",
    )


def get_logger(name: str) -> Any:
    return structlog.get_logger(name)


def bind_request_context(request_id: str, **context: Any) -> None:
    """Start a fresh per-request logging context."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **context)


def log_performance(operation: str, duration: float, **context: Any) -> None:
    """
    Log how long an operation took.

    Args:
        operation: Name of the operation
        duration: Duration in seconds
        **context: Additional fields
    """
    get_logger("snapfit.performance").info(
        "performance_metric", operation=operation, duration_seconds=duration, **context
    )


def log_user_action(user_id: str, action: str, **context: Any) -> None:
    """Audit trail entry for a change made on behalf of a user."""
    get_logger("snapfit.user_actions").info("user_action", user_id=user_id, action=action, **context)


def log_error(error: Exception, context: dict[str, Any] | None = None) -> None:
    """Log an exception along with its traceback."""
    get_logger("snapfit.errors").error(
        "error_occurred",
        error_type=type(error).__name__,
        error_message=str(error),
        **(context or {}),
        exc_info=error,
    )


def log_security_event(event_type: str, user_id: str | None = None, **context: Any) -> None:
    """Log a security-relevant event at warning level."""
    get_logger("snapfit.security").warning("security_event", event_type=event_type, user_id=user_id, **context)
