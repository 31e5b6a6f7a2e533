"""Entry point for the rate history service.

Wires all components together and serves the JSON API with uvicorn. The
cache, transport and sweeper share the single asyncio event loop and are
started and torn down by FastAPI's lifespan context manager.

Component wiring order (in build_components):
1. AppSettings (configuration)
2. Logging setup
3. HttpTransport (httpx client for the rates backend)
4. LoggingInstrumentation (spans and error reports via structlog)
5. HistoryFetchClient (one page per call, no retry)
6. CacheLifecycleManager (freshness, revalidation, retry)
7. RateHistoryService (read-through composition of 5 and 6)
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from vtrading.config import AppSettings
from vtrading.logging import get_logger, setup_logging
from vtrading.market_data.cache import CacheLifecycleManager
from vtrading.market_data.history_client import HistoryFetchClient
from vtrading.market_data.history_service import RateHistoryService
from vtrading.server.app import create_app
from vtrading.transport.http_client import HttpTransport
from vtrading.transport.instrumentation import LoggingInstrumentation


def build_components(settings: AppSettings) -> dict[str, Any]:
    """Build the dependency graph from settings.

    Does NOT start the cache sweeper -- that needs a running loop and
    happens in the lifespan.

    Returns:
        Dict mapping component names to instances.
    """
    transport = HttpTransport(settings.api)
    instrumentation = LoggingInstrumentation()
    client = HistoryFetchClient(transport, instrumentation)
    cache = CacheLifecycleManager(settings.cache)
    history_service = RateHistoryService(client, cache)

    return {
        "transport": transport,
        "instrumentation": instrumentation,
        "client": client,
        "cache": cache,
        "history_service": history_service,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage component lifecycle within the FastAPI application.

    On startup: exposes components on app.state and starts the eviction sweeper.
    On shutdown: closes the cache (cancelling in-flight fetches) and the transport.
    """
    logger = get_logger("vtrading.main")
    components = app.state.components

    app.state.cache = components["cache"]
    app.state.history_service = components["history_service"]

    components["cache"].start()
    logger.info("lifespan_started", base_url=app.state.settings.api.base_url)

    yield

    await components["cache"].close()
    await components["transport"].close()
    logger.info("rate_history_service_stopped")


async def run() -> None:
    """Run the rate history API server."""
    # 1. Load settings
    settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("vtrading.main")

    # 3-7. Build all components
    components = build_components(settings)

    app = create_app(lifespan=lifespan)
    app.state.settings = settings
    app.state.components = components

    logger.info(
        "starting_server",
        host=settings.server.host,
        port=settings.server.port,
        stale_time_ms=settings.cache.stale_time_ms,
        gc_time_ms=settings.cache.gc_time_ms,
    )

    config = uvicorn.Config(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_level="warning",  # Suppress uvicorn access logs
    )
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
