"""HTTP transport implementation via httpx async.

Maps httpx failures and response statuses onto the closed error taxonomy:
timeouts, connection errors, 408, 425, 429 and 5xx are transient; any other
non-2xx is a rejected request; an unparsable body is a decode failure.
"""

import httpx

from vtrading.config import ApiSettings
from vtrading.exceptions import (
    DecodeError,
    NonTransientRequestError,
    TransientTransportError,
)
from vtrading.logging import get_logger
from vtrading.transport.client import Transport

logger = get_logger(__name__)

TRANSIENT_STATUS_CODES = frozenset({408, 425, 429})


def _is_transient_status(status_code: int) -> bool:
    return status_code >= 500 or status_code in TRANSIENT_STATUS_CODES


def _error_message(response: httpx.Response) -> str:
    """Extract the backend's error message, falling back to the status line."""
    text = response.text
    try:
        body = response.json() if response.content else {}
    except ValueError:
        body = {}
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if message:
            return str(message)
    if text:
        return f"HTTP Error {response.status_code}: {text[:100]}"
    return f"API Error: {response.status_code}"


class HttpTransport(Transport):
    """Concrete transport using a shared httpx.AsyncClient.

    The client is created eagerly and must be closed by the owner
    (the composition root) via close().
    """

    def __init__(
        self,
        settings: ApiSettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        api_key = settings.api_key.get_secret_value()
        if api_key:
            headers["X-API-Key"] = api_key

        self._client = client or httpx.AsyncClient(
            base_url=settings.base_url.rstrip("/"),
            headers=headers,
            timeout=settings.timeout_seconds,
        )
        if client is not None:
            self._client.headers.update(headers)

    async def request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
    ) -> dict:
        """Send one request and decode its JSON body."""
        if not path.startswith("/"):
            path = f"/{path}"
        query = {k: str(v) for k, v in (params or {}).items()}

        try:
            response = await self._client.request(method, path, params=query)
        except httpx.TimeoutException as e:
            raise TransientTransportError(f"timeout: {method} {path}") from e
        except httpx.TransportError as e:
            raise TransientTransportError(f"network request failed: {e}") from e

        logger.debug(
            "http_response",
            method=method,
            path=path,
            status=response.status_code,
        )

        if response.is_error:
            message = _error_message(response)
            if _is_transient_status(response.status_code):
                raise TransientTransportError(message)
            raise NonTransientRequestError(message, status_code=response.status_code)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(f"JSON Parse Error: {e}") from e

    async def close(self) -> None:
        """Close the underlying httpx client. Must be called on shutdown."""
        await self._client.aclose()
        logger.info("http_transport_closed")
