"""Tests for component wiring, logging setup and the application lifespan."""

import logging
from decimal import Decimal

from fastapi.testclient import TestClient

from vtrading.config import AppSettings
from vtrading.logging import (
    SERVICE_NAME,
    add_service_name,
    setup_logging,
    stringify_decimals,
)
from vtrading.main import build_components, lifespan
from vtrading.market_data.cache import CacheLifecycleManager
from vtrading.market_data.history_service import RateHistoryService
from vtrading.server.app import create_app
from vtrading.transport.http_client import HttpTransport


def test_build_components_wires_graph(mock_settings: AppSettings) -> None:
    components = build_components(mock_settings)

    assert isinstance(components["transport"], HttpTransport)
    assert isinstance(components["cache"], CacheLifecycleManager)
    assert isinstance(components["history_service"], RateHistoryService)


def test_lifespan_starts_and_closes_components(mock_settings: AppSettings) -> None:
    components = build_components(mock_settings)
    app = create_app(lifespan=lifespan)
    app.state.settings = mock_settings
    app.state.components = components

    with TestClient(app) as client:
        assert app.state.cache is components["cache"]
        assert client.get("/api/cache").json() == {}

    assert components["cache"]._closed is True


def test_setup_logging_sets_root_level() -> None:
    setup_logging("DEBUG")
    assert logging.getLogger().level == logging.DEBUG
    setup_logging("INFO")


def test_setup_logging_quiets_http_client_loggers() -> None:
    setup_logging("DEBUG", "json")
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("uvicorn.access").level == logging.WARNING
    setup_logging("INFO")


def test_service_name_added_without_overriding() -> None:
    processor = add_service_name(SERVICE_NAME)

    assert processor(None, "info", {"event": "cache_hit"})["service"] == "vtrading-history"
    assert processor(None, "info", {"event": "x", "service": "other"})["service"] == "other"


def test_decimal_fields_rendered_as_exact_strings() -> None:
    event = stringify_decimals(
        None, "info", {"event": "history_summary", "low": Decimal("36.10"), "points": 3}
    )

    assert event == {"event": "history_summary", "low": "36.10", "points": 3}
