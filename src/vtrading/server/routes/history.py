"""JSON endpoints for currency and bank history with chart analytics."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from vtrading.analytics.history import bucket_by_day, summarize_points
from vtrading.logging import get_logger
from vtrading.models import BankHistoryPoint, HistoryPoint, HistorySeries

logger = get_logger(__name__)

router = APIRouter()


def _str_or_none(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


def _point_to_dict(point: HistoryPoint) -> dict[str, Any]:
    data: dict[str, Any] = {
        "price": str(point.price),
        "date": point.date.isoformat(),
        "timestamp": point.timestamp.isoformat(),
        "buy": _str_or_none(point.buy),
        "sell": _str_or_none(point.sell),
        "average": _str_or_none(point.average),
        "spread": _str_or_none(point.spread),
    }
    if isinstance(point, BankHistoryPoint):
        data.update({
            "bank": point.bank,
            "currency": point.currency,
            "currency_name": point.currency_name,
            "spread_percent": _str_or_none(point.spread_percent),
            "change": {
                name: {"value": _str_or_none(c.value), "percent": _str_or_none(c.percent)}
                for name, c in point.change.items()
            },
        })
    return data


def _series_to_dict(series: HistorySeries, daily: bool) -> dict[str, Any]:
    points = bucket_by_day(series.points) if daily else list(series.points)
    summary = summarize_points(points)
    pagination = series.pagination
    return {
        "kind": series.key.kind.value,
        "identifier": series.key.identifier,
        "history": [_point_to_dict(p) for p in points],
        "pagination": {
            "page": pagination.page,
            "limit": pagination.limit,
            "total": pagination.total,
            "total_pages": pagination.total_pages,
        },
        "bounds": {"min": str(summary.bounds.min), "max": str(summary.bounds.max)},
        "period_change": _str_or_none(summary.change),
        "trend": summary.trend.value,
        "chart": [{"label": p.label, "value": str(p.value)} for p in summary.points],
    }


@router.get("/history/currency/{symbol}")
async def get_currency_history(
    request: Request,
    symbol: str,
    page: int = Query(1),
    limit: int = Query(30),
    daily: bool = Query(False),
) -> JSONResponse:
    """One page of currency history with bounds, chart points and period change."""
    service = request.app.state.history_service
    series = await service.get_currency_history(symbol, page=page, limit=limit)
    return JSONResponse(content=_series_to_dict(series, daily))


@router.get("/history/bank/{bank}")
async def get_bank_history(
    request: Request,
    bank: str,
    page: int = Query(1),
    limit: int = Query(30),
    daily: bool = Query(False),
) -> JSONResponse:
    """One page of bank history with bounds, chart points and period change."""
    service = request.app.state.history_service
    series = await service.get_bank_history(bank, page=page, limit=limit)
    return JSONResponse(content=_series_to_dict(series, daily))


@router.post("/history/currency/{symbol}/refresh")
async def refresh_currency_history(request: Request, symbol: str) -> JSONResponse:
    """Fetch page 1 once and drop every cached page of the currency."""
    service = request.app.state.history_service
    series = await service.refresh_currency(symbol)
    logger.info("refresh_requested", kind="currency", identifier=symbol)
    return JSONResponse(content=_series_to_dict(series, daily=False))


@router.post("/history/bank/{bank}/refresh")
async def refresh_bank_history(request: Request, bank: str) -> JSONResponse:
    """Fetch page 1 once and drop every cached page of the bank."""
    service = request.app.state.history_service
    series = await service.refresh_bank(bank)
    logger.info("refresh_requested", kind="bank", identifier=bank)
    return JSONResponse(content=_series_to_dict(series, daily=False))
