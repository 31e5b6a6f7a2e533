"""Tests for history chart analytics.

Covers normal operation, edge cases, and not-computable guards for:
bounds_for, project_for_chart, period_change, trend_of, bucket_by_day,
bucket_by_week, summarize, summarize_points.
"""

from decimal import Decimal

import pytest

from vtrading.analytics.history import (
    ChartBounds,
    ChartPoint,
    Trend,
    bounds_for,
    bucket_by_day,
    bucket_by_week,
    period_change,
    project_for_chart,
    summarize,
    summarize_points,
    trend_of,
)


# ---------------------------------------------------------------------------
# bounds_for
# ---------------------------------------------------------------------------


class TestBoundsFor:
    def test_empty_is_zero_zero(self) -> None:
        assert bounds_for([]) == ChartBounds(min=Decimal("0"), max=Decimal("0"))

    def test_five_percent_padding(self, point_factory) -> None:
        bounds = bounds_for([point_factory(10), point_factory(20)])
        assert bounds.min == Decimal("9.5")
        assert bounds.max == Decimal("20.5")

    def test_lower_bound_clamped_at_zero(self, point_factory) -> None:
        bounds = bounds_for([point_factory("0.1"), point_factory(100)])
        assert bounds.min == Decimal("0")
        assert bounds.max == Decimal("104.995")

    def test_flat_series_has_no_padding(self, point_factory) -> None:
        bounds = bounds_for([point_factory(36), point_factory(36)])
        assert bounds == ChartBounds(min=Decimal("36"), max=Decimal("36"))

    def test_order_does_not_matter(self, point_factory) -> None:
        forward = bounds_for([point_factory(5), point_factory(1), point_factory(9)])
        backward = bounds_for([point_factory(9), point_factory(1), point_factory(5)])
        assert forward == backward


# ---------------------------------------------------------------------------
# project_for_chart
# ---------------------------------------------------------------------------


class TestProjectForChart:
    def test_labels_and_values_in_input_order(self, point_factory) -> None:
        points = [
            point_factory(37, day=15, month=1),
            point_factory(36, day=2, month=8),
            point_factory(38, day=31, month=12),
        ]

        assert project_for_chart(points) == [
            ChartPoint(label="15 ene", value=Decimal("37")),
            ChartPoint(label="2 ago", value=Decimal("36")),
            ChartPoint(label="31 dic", value=Decimal("38")),
        ]

    def test_empty(self) -> None:
        assert project_for_chart([]) == []


# ---------------------------------------------------------------------------
# period_change
# ---------------------------------------------------------------------------


class TestPeriodChange:
    def test_insufficient_points(self, point_factory) -> None:
        assert period_change([]) is None
        assert period_change([point_factory(5)]) is None

    def test_zero_baseline_not_computable(self, point_factory) -> None:
        assert period_change([point_factory(0), point_factory(10)]) is None

    def test_fifty_percent_rise(self, point_factory) -> None:
        assert period_change([point_factory(100), point_factory(150)]) == Decimal("50")

    def test_uses_first_and_last_only(self, point_factory) -> None:
        points = [point_factory(200), point_factory(999), point_factory(150)]
        assert period_change(points) == Decimal("-25")

    def test_no_change_is_zero_not_none(self, point_factory) -> None:
        assert period_change([point_factory(40), point_factory(40)]) == Decimal("0")


# ---------------------------------------------------------------------------
# trend_of
# ---------------------------------------------------------------------------


class TestTrendOf:
    @pytest.mark.parametrize(
        ("change", "expected"),
        [
            (None, Trend.NEUTRAL),
            (0, Trend.NEUTRAL),
            (Decimal("0.01"), Trend.UP),
            (-3, Trend.DOWN),
            ("1,25%", Trend.UP),
            ("-0.5%", Trend.DOWN),
            ("0,00%", Trend.NEUTRAL),
            ("n/a", Trend.NEUTRAL),
        ],
    )
    def test_classification(self, change, expected: Trend) -> None:
        assert trend_of(change) is expected


# ---------------------------------------------------------------------------
# Time bucketing
# ---------------------------------------------------------------------------


class TestBucketing:
    def test_daily_keeps_latest_point_per_day(self, point_factory) -> None:
        morning = point_factory(10, day=3, hour=9)
        evening = point_factory(11, day=3, hour=18)
        previous = point_factory(9, day=2, hour=12)

        assert bucket_by_day([evening, previous, morning]) == [previous, evening]

    def test_weekly_groups_on_monday(self, point_factory) -> None:
        # 2024-01-01 is a Monday
        monday = point_factory(1, day=1)
        sunday = point_factory(2, day=7)
        next_monday = point_factory(3, day=8)

        assert bucket_by_week([monday, sunday, next_monday]) == [sunday, next_monday]

    def test_empty(self) -> None:
        assert bucket_by_day([]) == []
        assert bucket_by_week([]) == []


# ---------------------------------------------------------------------------
# summarize
# ---------------------------------------------------------------------------


def test_summarize_bundles_analytics(series_factory) -> None:
    summary = summarize(series_factory(prices=[100, 120, 150]))

    assert summary.change == Decimal("50")
    assert summary.trend is Trend.UP
    assert summary.bounds == ChartBounds(min=Decimal("97.5"), max=Decimal("152.5"))
    assert [p.label for p in summary.points] == ["1 ene", "2 ene", "3 ene"]


def test_summarize_empty_series(series_factory) -> None:
    summary = summarize(series_factory(prices=[]))

    assert summary.change is None
    assert summary.trend is Trend.NEUTRAL
    assert summary.points == []


def test_summarize_points_uses_only_given_points(point_factory) -> None:
    intraday = [
        point_factory(90, day=1, hour=8),
        point_factory(100, day=1, hour=20),
        point_factory(200, day=2, hour=8),
        point_factory(110, day=2, hour=20),
    ]

    summary = summarize_points(bucket_by_day(intraday))

    assert summary.change == Decimal("10")
    assert [p.value for p in summary.points] == [Decimal("100"), Decimal("110")]
    assert summary.bounds == ChartBounds(min=Decimal("99.5"), max=Decimal("110.5"))
