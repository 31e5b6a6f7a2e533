"""Custom exceptions for the rate history subsystem.

Transport failures form a closed set of variants so retry classification
is exhaustive: anything that is not a TransientTransportError is final.
"""


class RatesError(Exception):
    """Base exception for all rate history errors."""


class TransportError(RatesError):
    """A request to the rates backend did not produce a usable payload."""

    transient: bool = False


class TransientTransportError(TransportError):
    """Network failure, timeout, throttling or server-side error. Retryable."""

    transient = True


class NonTransientRequestError(TransportError):
    """The backend rejected the request itself (bad identifier, bad params)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DecodeError(TransportError):
    """The response body was not valid JSON or not the expected shape."""


class CacheClosedError(RatesError):
    """Raised when a closed cache manager is asked to resolve a key."""


def is_transient(error: BaseException) -> bool:
    """Return True only for failures that may succeed if repeated."""
    return isinstance(error, TransportError) and error.transient
