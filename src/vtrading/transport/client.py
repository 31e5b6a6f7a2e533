"""Abstract transport interface.

Fetch and cache code depends only on this contract, keeping HTTP details
isolated in the concrete implementation. Implementations must raise only
the TransportError variants from vtrading.exceptions so failures can be
classified for retry.
"""

from abc import ABC, abstractmethod


class Transport(ABC):
    """Abstract base class for request/response exchange with the backend."""

    @abstractmethod
    async def request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
    ) -> dict:
        """Perform one exchange and return the decoded JSON body.

        Raises:
            TransientTransportError: network/timeout/5xx/429 failures.
            NonTransientRequestError: the backend rejected the request.
            DecodeError: the body was not valid JSON.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release connection resources."""
        ...
