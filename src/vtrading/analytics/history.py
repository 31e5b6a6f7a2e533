"""Chart analytics over a resolved history page.

Pure Decimal transformations: bounds_for, project_for_chart, period_change,
trend_of, bucket_by_day, bucket_by_week, summarize. None of these raise on
thin data; results that cannot be computed come back as None.
"""

from dataclasses import dataclass
from datetime import date, timedelta, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Sequence

from vtrading.models import HistoryPoint, HistorySeries

CHART_PADDING = Decimal("0.05")

# es-VE short month names, as the mobile client renders them
MONTH_ABBREVIATIONS = (
    "ene", "feb", "mar", "abr", "may", "jun",
    "jul", "ago", "sept", "oct", "nov", "dic",
)


class Trend(str, Enum):
    """Direction of a change value."""

    UP = "up"
    DOWN = "down"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class ChartBounds:
    """Padded axis range for a price chart."""

    min: Decimal
    max: Decimal


@dataclass(frozen=True)
class ChartPoint:
    """One labelled chart value."""

    label: str
    value: Decimal


@dataclass(frozen=True)
class HistorySummary:
    """Presentation bundle for one history page."""

    bounds: ChartBounds
    change: Decimal | None
    trend: Trend
    points: list[ChartPoint]


def bounds_for(points: Sequence[HistoryPoint]) -> ChartBounds:
    """Compute min/max with 5% headroom of the range on each side.

    The lower bound is clamped at zero; prices are never negative.
    Empty input yields (0, 0).
    """
    if not points:
        return ChartBounds(min=Decimal("0"), max=Decimal("0"))

    prices = [p.price for p in points]
    low = min(prices)
    high = max(prices)
    padding = (high - low) * CHART_PADDING

    return ChartBounds(
        min=max(Decimal("0"), low - padding),
        max=high + padding,
    )


def chart_label(point: HistoryPoint) -> str:
    """Short day/month label, e.g. '15 ene'."""
    d = point.date
    return f"{d.day} {MONTH_ABBREVIATIONS[d.month - 1]}"


def project_for_chart(points: Sequence[HistoryPoint]) -> list[ChartPoint]:
    """Map points to (label, price) pairs, preserving input order."""
    return [ChartPoint(label=chart_label(p), value=p.price) for p in points]


def period_change(points: Sequence[HistoryPoint]) -> Decimal | None:
    """Percentage change from the first to the last point.

    Returns None with fewer than 2 points or a zero first price.
    """
    if len(points) < 2:
        return None

    first = points[0].price
    last = points[-1].price

    if first == 0:
        return None

    return (last - first) / first * Decimal("100")


def trend_of(change: Decimal | int | float | str | None) -> Trend:
    """Classify a change value as up, down or neutral.

    Accepts numbers or strings such as "1,25%" / "-0.5%". Anything that
    cannot be parsed is neutral.
    """
    if change is None:
        return Trend.NEUTRAL

    if isinstance(change, str):
        cleaned = change.replace("%", "").replace(",", ".").strip()
        try:
            value = Decimal(cleaned)
        except InvalidOperation:
            return Trend.NEUTRAL
    else:
        value = Decimal(str(change))

    if value.is_nan() or value == 0:
        return Trend.NEUTRAL
    return Trend.UP if value > 0 else Trend.DOWN


def _utc_day(point: HistoryPoint) -> date:
    return point.timestamp.astimezone(timezone.utc).date()


def bucket_by_day(points: Sequence[HistoryPoint]) -> list[HistoryPoint]:
    """Keep the latest observation of each UTC calendar day, ordered by day."""
    return _bucket(points, _utc_day)


def bucket_by_week(points: Sequence[HistoryPoint]) -> list[HistoryPoint]:
    """Keep the latest observation of each ISO week (Monday start)."""

    def week_start(point: HistoryPoint) -> date:
        day = _utc_day(point)
        return day - timedelta(days=day.weekday())

    return _bucket(points, week_start)


def _bucket(points, bucket_key) -> list[HistoryPoint]:
    latest: dict[date, HistoryPoint] = {}
    for point in points:
        bucket = bucket_key(point)
        current = latest.get(bucket)
        if current is None or point.timestamp >= current.timestamp:
            latest[bucket] = point
    return [latest[bucket] for bucket in sorted(latest)]


def summarize(series: HistorySeries) -> HistorySummary:
    """Bundle bounds, period change, trend and chart points for one page."""
    return summarize_points(series.points)


def summarize_points(points: Sequence[HistoryPoint]) -> HistorySummary:
    """Summarize an already-selected run of points, e.g. after bucketing."""
    points = list(points)
    change = period_change(points)
    return HistorySummary(
        bounds=bounds_for(points),
        change=change,
        trend=trend_of(change),
        points=project_for_chart(points),
    )
