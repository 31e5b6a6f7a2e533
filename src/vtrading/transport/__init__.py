"""Transport layer -- rates backend access via httpx and instrumentation sinks."""

from vtrading.transport.client import Transport
from vtrading.transport.http_client import HttpTransport
from vtrading.transport.instrumentation import (
    Instrumentation,
    LoggingInstrumentation,
    NoopInstrumentation,
    Span,
)

__all__ = [
    "HttpTransport",
    "Instrumentation",
    "LoggingInstrumentation",
    "NoopInstrumentation",
    "Span",
    "Transport",
]
