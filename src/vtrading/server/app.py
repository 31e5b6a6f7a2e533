"""FastAPI application factory for the rate history JSON API."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from vtrading.exceptions import (
    CacheClosedError,
    DecodeError,
    NonTransientRequestError,
    TransientTransportError,
)
from vtrading.logging import get_logger
from vtrading.server.routes import cache, history

logger = get_logger(__name__)


async def _transient_error(request: Request, exc: TransientTransportError) -> JSONResponse:
    return JSONResponse(status_code=502, content={"error": "upstream_unavailable", "detail": str(exc)})


async def _rejected_error(request: Request, exc: NonTransientRequestError) -> JSONResponse:
    status = exc.status_code if exc.status_code and 400 <= exc.status_code < 500 else 400
    return JSONResponse(status_code=status, content={"error": "request_rejected", "detail": str(exc)})


async def _decode_error(request: Request, exc: DecodeError) -> JSONResponse:
    return JSONResponse(status_code=502, content={"error": "bad_upstream_payload", "detail": str(exc)})


async def _closed_error(request: Request, exc: CacheClosedError) -> JSONResponse:
    return JSONResponse(status_code=503, content={"error": "shutting_down", "detail": str(exc)})


def create_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to inject startup/shutdown logic.

    Returns:
        Configured FastAPI application. Route handlers expect
        `history_service` and `cache` on app.state.
    """
    app = FastAPI(title="VTrading Rate History API", lifespan=lifespan)

    app.add_exception_handler(TransientTransportError, _transient_error)
    app.add_exception_handler(NonTransientRequestError, _rejected_error)
    app.add_exception_handler(DecodeError, _decode_error)
    app.add_exception_handler(CacheClosedError, _closed_error)

    app.include_router(history.router, prefix="/api")
    app.include_router(cache.router, prefix="/api")

    return app
