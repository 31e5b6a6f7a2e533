"""Instrumentation sinks for tracing spans and error reporting.

The fetch layer calls these hooks unconditionally; NoopInstrumentation is
the default when no sink is wired.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from vtrading.logging import get_logger

logger = get_logger(__name__)

# Connectivity noise is not worth an error report; it is already retried
IGNORED_ERROR_FRAGMENTS = (
    "network request failed",
    "connection error",
    "service_not_available",
)


@dataclass
class Span:
    """Handle for one instrumented interval."""

    name: str
    started_at: float = field(default_factory=time.monotonic)
    attributes: dict[str, Any] = field(default_factory=dict)
    ended_at: float | None = None

    @property
    def duration(self) -> float | None:
        if self.ended_at is None:
            return None
        return self.ended_at - self.started_at


class Instrumentation(ABC):
    """Tracing and error reporting contract."""

    @abstractmethod
    def start_span(self, name: str) -> Span:
        ...

    @abstractmethod
    def end_span(self, span: Span) -> None:
        ...

    @abstractmethod
    def annotate(self, span: Span, key: str, value: Any) -> None:
        ...

    @abstractmethod
    def report_error(self, error: BaseException, context: dict[str, Any]) -> None:
        ...


class NoopInstrumentation(Instrumentation):
    """Instrumentation that records nothing."""

    def start_span(self, name: str) -> Span:
        return Span(name=name)

    def end_span(self, span: Span) -> None:
        pass

    def annotate(self, span: Span, key: str, value: Any) -> None:
        pass

    def report_error(self, error: BaseException, context: dict[str, Any]) -> None:
        pass


class LoggingInstrumentation(Instrumentation):
    """Instrumentation that emits spans and errors as structlog events."""

    def start_span(self, name: str) -> Span:
        return Span(name=name)

    def end_span(self, span: Span) -> None:
        span.ended_at = time.monotonic()
        logger.debug(
            "span_finished",
            span=span.name,
            duration_ms=round((span.duration or 0.0) * 1000, 1),
            **span.attributes,
        )

    def annotate(self, span: Span, key: str, value: Any) -> None:
        span.attributes[key] = value

    def report_error(self, error: BaseException, context: dict[str, Any]) -> None:
        message = str(error).lower()
        if any(fragment in message for fragment in IGNORED_ERROR_FRAGMENTS):
            logger.debug("error_report_skipped", error=str(error), **context)
            return
        logger.error(
            "error_reported",
            error=str(error),
            error_type=type(error).__name__,
            **context,
        )
