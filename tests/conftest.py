"""Shared test fixtures for the rate history service."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from vtrading.config import ApiSettings, AppSettings, CacheSettings
from vtrading.models import HistoryPoint, HistorySeries, Pagination, SeriesKey, SeriesKind


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_point(
    price: str | int,
    day: int = 1,
    hour: int = 12,
    month: int = 1,
) -> HistoryPoint:
    """Build a HistoryPoint dated 2024-<month>-<day> <hour>:00 UTC."""
    ts = datetime(2024, month, day, hour, tzinfo=timezone.utc)
    return HistoryPoint(price=Decimal(str(price)), date=ts, timestamp=ts)


def make_series(
    identifier: str = "USD",
    prices: list[str | int] | None = None,
    page: int = 1,
    limit: int = 30,
    kind: SeriesKind = SeriesKind.CURRENCY,
) -> HistorySeries:
    """Build a HistorySeries with one point per day starting 2024-01-01."""
    prices = prices if prices is not None else ["36.50", "36.80"]
    start = datetime(2024, 1, 1, 12, tzinfo=timezone.utc)
    points = tuple(
        HistoryPoint(
            price=Decimal(str(p)),
            date=start + timedelta(days=i),
            timestamp=start + timedelta(days=i),
        )
        for i, p in enumerate(prices)
    )
    return HistorySeries(
        key=SeriesKey(kind, identifier, page, limit),
        points=points,
        pagination=Pagination(
            page=page,
            limit=limit,
            total=len(points),
            total_pages=1 if points else 0,
        ),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache_settings() -> CacheSettings:
    """Library defaults: 5 min fresh, 30 min eviction, 3 read attempts."""
    return CacheSettings()


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with test defaults (dummy API key, local backend)."""
    return AppSettings(
        log_level="DEBUG",
        api=ApiSettings(
            base_url="https://rates.test",
            api_key="test-api-key",  # type: ignore[arg-type]
        ),
        cache=CacheSettings(),
    )


@pytest.fixture
def series_factory():
    """Expose make_series to tests."""
    return make_series


@pytest.fixture
def point_factory():
    """Expose make_point to tests."""
    return make_point
