"""Cache diagnostics and network lifecycle signals."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter()


@router.get("/cache")
async def get_cache_state(request: Request) -> JSONResponse:
    """Lifecycle state of every tracked cache key."""
    cache = request.app.state.cache
    snapshot = cache.snapshot()
    return JSONResponse(
        content={str(key): state.value for key, state in snapshot.items()}
    )


@router.post("/network/reconnect")
async def network_reconnected(request: Request) -> JSONResponse:
    """Signal that the network link came back; settled entries go stale."""
    cache = request.app.state.cache
    marked = cache.on_reconnect()
    return JSONResponse(content={"marked_stale": marked})
