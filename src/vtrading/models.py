"""Shared data models for rate history.

All monetary values use Decimal. Series values are immutable: fetching a
new page produces a new HistorySeries, never a mutation of an old one.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from vtrading.exceptions import DecodeError


class SeriesKind(str, Enum):
    """Which backend collection a series belongs to."""

    CURRENCY = "currency"
    BANK = "bank"


@dataclass(frozen=True)
class SeriesKey:
    """Cache identity of one page of history."""

    kind: SeriesKind
    identifier: str  # currency code or bank name
    page: int = 1
    limit: int = 30

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.identifier}:{self.page}:{self.limit}"


@dataclass(frozen=True)
class RateChange:
    """Absolute and percentage delta reported for one bank rate field."""

    value: Decimal | None = None
    percent: Decimal | None = None


@dataclass(frozen=True)
class HistoryPoint:
    """A single priced observation."""

    price: Decimal
    date: datetime
    timestamp: datetime
    buy: Decimal | None = None
    sell: Decimal | None = None
    average: Decimal | None = None
    spread: Decimal | None = None


@dataclass(frozen=True)
class BankHistoryPoint(HistoryPoint):
    """Bank quote with currency metadata. `price` carries the average rate."""

    bank: str = ""
    currency: str = ""
    currency_name: str = ""
    spread_percent: Decimal | None = None
    change: dict[str, RateChange] = field(default_factory=dict)


@dataclass(frozen=True)
class Pagination:
    """Server-reported paging metadata."""

    page: int
    limit: int
    total: int
    total_pages: int

    @property
    def expected_total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return math.ceil(self.total / self.limit)

    @property
    def is_consistent(self) -> bool:
        """True when total_pages == ceil(total / limit)."""
        return self.total_pages == self.expected_total_pages


@dataclass(frozen=True)
class HistorySeries:
    """One resolved page of history for a currency or a bank."""

    key: SeriesKey
    points: tuple[HistoryPoint, ...]
    pagination: Pagination

    @property
    def is_empty(self) -> bool:
        return not self.points

    @classmethod
    def from_payload(cls, key: SeriesKey, payload: Any) -> "HistorySeries":
        """Decode a backend response body.

        Expected shape::

            {"currency"|"bank": str,
             "history": [...],
             "pagination": {"page", "limit", "total", "totalPages"}}

        Raises:
            DecodeError: if the payload is not a mapping or a field is malformed.
        """
        if not isinstance(payload, dict):
            raise DecodeError(f"expected object payload, got {type(payload).__name__}")

        raw_history = payload.get("history")
        if raw_history is None:
            raw_history = []
        if not isinstance(raw_history, list):
            raise DecodeError("'history' must be a list")

        try:
            if key.kind is SeriesKind.BANK:
                points = tuple(_decode_bank_point(item) for item in raw_history)
            else:
                points = tuple(_decode_point(item) for item in raw_history)
            pagination = _decode_pagination(payload.get("pagination"), key, len(points))
        except (KeyError, TypeError, ValueError, InvalidOperation, OverflowError) as e:
            raise DecodeError(f"malformed history payload for {key}: {e}") from e

        return cls(key=key, points=points, pagination=pagination)


# ──────────────────────────────────────────────
# Decoding helpers
# ──────────────────────────────────────────────


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise TypeError("boolean is not a number")
    number = Decimal(str(value))
    if not number.is_finite():
        raise ValueError(f"non-finite number: {value}")
    return number


def _optional_decimal(value: Any) -> Decimal | None:
    return None if value is None else _to_decimal(value)


def parse_datetime(value: Any) -> datetime:
    """Parse an ISO-8601 string (or epoch milliseconds) into an aware datetime."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if not isinstance(value, str):
        raise TypeError(f"expected ISO date string, got {type(value).__name__}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _decode_point(item: dict) -> HistoryPoint:
    timestamp = parse_datetime(item["timestamp"])
    return HistoryPoint(
        price=_to_decimal(item["price"]),
        date=parse_datetime(item.get("date") or item["timestamp"]),
        timestamp=timestamp,
        buy=_optional_decimal(item.get("buy")),
        sell=_optional_decimal(item.get("sell")),
        average=_optional_decimal(item.get("average")),
        spread=_optional_decimal(item.get("spread")),
    )


def _decode_change(raw: Any) -> dict[str, RateChange]:
    if not raw:
        return {}
    if not isinstance(raw, dict):
        raise TypeError(f"'change' must be an object, got {type(raw).__name__}")
    changes = {}
    for field_name in ("buy", "sell", "average"):
        entry = raw.get(field_name)
        if entry is None:
            continue
        if not isinstance(entry, dict):
            raise TypeError(f"'change.{field_name}' must be an object")
        changes[field_name] = RateChange(
            value=_optional_decimal(entry.get("value")),
            percent=_optional_decimal(entry.get("percent")),
        )
    return changes


def _decode_bank_point(item: dict) -> BankHistoryPoint:
    timestamp = parse_datetime(item["timestamp"])
    average = _to_decimal(item["average"])
    return BankHistoryPoint(
        price=average,
        date=parse_datetime(item.get("indicatorDate") or item["timestamp"]),
        timestamp=timestamp,
        buy=_optional_decimal(item.get("buy")),
        sell=_optional_decimal(item.get("sell")),
        average=average,
        spread=_optional_decimal(item.get("spread")),
        bank=str(item.get("bank", "")),
        currency=str(item.get("currency", "")),
        currency_name=str(item.get("currencyName", "")),
        spread_percent=_optional_decimal(item.get("spreadPercent")),
        change=_decode_change(item.get("change")),
    )


def _decode_pagination(raw: Any, key: SeriesKey, point_count: int) -> Pagination:
    # Some endpoints omit pagination on single-page results
    if raw is None:
        total_pages = 1 if point_count else 0
        return Pagination(
            page=key.page, limit=key.limit, total=point_count, total_pages=total_pages
        )
    values = {
        "page": int(raw["page"]),
        "limit": int(raw["limit"]),
        "total": int(raw["total"]),
        "total_pages": int(raw["totalPages"]),
    }
    for name, number in values.items():
        if number < 0:
            raise ValueError(f"pagination.{name} must be non-negative")
    return Pagination(**values)
