"""
Structured logging using structlog.

JSON lines in production, colored console in development. Every event
carries the service name, the app version and, inside a request, the
request id and client key bound by the request-context middleware.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from app.core.config import get_settings

SERVICE_NAME = "ai-readability-analyzer"

# Third-party loggers that only matter when debugging outbound traffic
NOISY_LOGGERS = ("asyncio", "httpx", "httpcore", "hpack", "uvicorn.access")

_SEVERITY = {
    "debug": "DEBUG",
    "info": "INFO",
    "warning": "WARNING",
    "error": "ERROR",
    "critical": "CRITICAL",
}


def add_severity(logger: Any, method: str, event_dict: EventDict) -> EventDict:
    """GCP/Datadog style severity next to structlog's level."""
    event_dict["severity"] = _SEVERITY.get(method, "INFO")
    return event_dict


def add_app_context(logger: Any, method: str, event_dict: EventDict) -> EventDict:
    settings = get_settings()
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("version", settings.APP_VERSION)
    event_dict.setdefault("env", settings.ENV)
    return event_dict


def build_processors(log_format: str) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        add_severity,
        add_app_context,
    ]
    if log_format == "json":
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return processors


def configure_logging() -> None:
    settings = get_settings()
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    structlog.configure(
        processors=build_processors(settings.LOG_FORMAT),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # uvicorn and httpx log through stdlib
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    if settings.is_production:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def bind_request_context(request_id: str, client: str) -> None:
    """Attach request-scoped fields to every event logged until the context is cleared."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, client=client)
