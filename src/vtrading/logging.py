"""Structured logging for the rate history service.

structlog renders through the stdlib logging tree so that uvicorn and
httpx records share one handler and one format. Every event carries the
service name, and Decimal fields (prices, deltas) are rendered as exact
strings rather than floats or reprs.
"""

import logging
from decimal import Decimal
from typing import Any

import structlog

SERVICE_NAME = "vtrading-history"

# Library loggers that are too chatty at INFO for a cache-heavy service
NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def add_service_name(service: str) -> structlog.types.Processor:
    """Build a processor that tags each event with `service` unless already set."""

    def processor(
        logger: Any, method_name: str, event_dict: structlog.types.EventDict
    ) -> structlog.types.EventDict:
        event_dict.setdefault("service", service)
        return event_dict

    return processor


def stringify_decimals(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Render Decimal values as plain strings so JSON output keeps full precision."""
    for name, value in event_dict.items():
        if isinstance(value, Decimal):
            event_dict[name] = str(value)
    return event_dict


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "console",
    service: str = SERVICE_NAME,
) -> None:
    """Configure structlog with JSON or console rendering.

    Uses structlog.contextvars so request-scoped context (the series key
    bound by RateHistoryService) follows the coroutine rather than the thread.

    Args:
        log_level: Root level name; unknown names fall back to INFO.
        log_format: "json" for machine-readable output, anything else for
            the human-readable console renderer.
        service: Value of the `service` field added to every event.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        add_service_name(service),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        stringify_decimals,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format.lower() == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # foreign_pre_chain gives uvicorn/httpx records the same fields
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger with the given name."""
    return structlog.get_logger(name)
