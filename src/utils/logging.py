"""Logging config for the integration frontend

## Setup

Logging is configured when this module is imported. It uses structlog for structured logging. Logs are
pretty-printed in the local env (BRIDGE_ENVIRONMENT='local') and JSON-formatted everywhere else.

```
from src.utils.logging import get_logger

logger = get_logger(__name__)
logger.info("Lifecycle event accepted", tenant_host="https://acme.atlassian.net", event="enabled")
```

## Log context

Request-scoped values (tenant host, trust domain) are bound with contextvars so that every log line emitted
while serving a request carries them:

```
from src.utils.logging import LogContext, get_logger

with LogContext(tenant_host=host, trust_domain="tracker_webhook"):
    logger.info("Verifying Connect JWT")
```

Each request runs in its own asyncio task, so context bound inside one request never shows up in another.

### Standard logging integration

Python's standard `logging` module is routed through structlog, so uvicorn and library loggers share the format.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import structlog
import structlog.contextvars

from src.utils.config import get_bridge_environment
from src.utils.newrelic_logging import newrelic_error_processor


def _is_local_environment() -> bool:
    return get_bridge_environment() == "local"


def _get_log_renderer() -> structlog.types.Processor:
    """Pick the final renderer.

    LOG_RENDERER=console|json overrides the environment-based default
    (console locally, JSON in deployed environments).
    """
    log_renderer = os.getenv("LOG_RENDERER", "").lower()
    if log_renderer == "console":
        use_console = True
    elif log_renderer == "json":
        use_console = False
    else:
        use_console = _is_local_environment()

    if use_console:
        return structlog.dev.ConsoleRenderer(
            colors=True,
            pad_event=0,
            force_colors=False,
            repr_native_str=False,
            exception_formatter=structlog.dev.plain_traceback,
            sort_keys=True,
            event_key="message",
        )
    return structlog.processors.JSONRenderer()


def configure_logging() -> None:
    """Configure structlog and route the standard library through it."""
    common_processors: list[structlog.types.Processor] = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.contextvars.merge_contextvars,
        structlog.processors.EventRenamer("message"),
        newrelic_error_processor,
        structlog.stdlib.filter_by_level,  # Must come after add_log_level
    ]

    structlog.configure(
        processors=common_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # filter_by_level expects a structlog logger, stdlib records are filtered by their own logger
    foreign_processors = [p for p in common_processors if p != structlog.stdlib.filter_by_level]
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_get_log_renderer(),
            foreign_pre_chain=foreign_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(stream_handler)

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    numeric_log_level = getattr(logging, log_level, logging.INFO)
    root_logger.setLevel(numeric_log_level)

    if numeric_log_level <= logging.DEBUG:
        for logger_name in ["uvicorn", "uvicorn.access", "uvicorn.error"]:
            uvicorn_logger = logging.getLogger(logger_name)
            if uvicorn_logger.level > numeric_log_level:
                uvicorn_logger.setLevel(numeric_log_level)


configure_logging()


def add_log_context(**kwargs: Any) -> None:
    """Add values to the logging context of the current request."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_log_context() -> None:
    """Clear all values from the logging context."""
    structlog.contextvars.clear_contextvars()


LogContext = structlog.contextvars.bound_contextvars


def get_logger(name: str, **kwargs: Any) -> structlog.BoundLogger:
    """Get a structlog logger, optionally with extra bound values."""
    return structlog.get_logger(name, **kwargs)


def get_uvicorn_log_config() -> dict[str, Any]:
    """Uvicorn logging configuration matching the structlog output format."""
    handler = {
        "handlers": ["default"],
        "level": "INFO",
        "propagate": False,
    }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processor": _get_log_renderer(),
                "foreign_pre_chain": [
                    structlog.stdlib.add_log_level,
                    structlog.stdlib.add_logger_name,
                    structlog.processors.TimeStamper(fmt="iso"),
                    structlog.processors.EventRenamer("message"),
                ],
            },
        },
        "handlers": {
            "default": {
                "formatter": "default",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "": dict(handler),
            "uvicorn": dict(handler),
            "uvicorn.access": dict(handler),
            "uvicorn.error": dict(handler),
        },
    }
