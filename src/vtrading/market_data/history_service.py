"""Read-through access to rate history: cache in front of the fetch client."""

import structlog

from vtrading.logging import get_logger
from vtrading.market_data.cache import CacheLifecycleManager
from vtrading.market_data.history_client import HistoryFetchClient
from vtrading.models import HistorySeries, SeriesKey, SeriesKind

logger = get_logger(__name__)


class RateHistoryService:
    """Serves history pages through the cache lifecycle.

    Each (kind, identifier, page, limit) is cached independently; there
    are no joins across currencies or banks.
    """

    def __init__(self, client: HistoryFetchClient, cache: CacheLifecycleManager) -> None:
        self._client = client
        self._cache = cache

    async def get_currency_history(
        self, symbol: str, page: int = 1, limit: int = 30
    ) -> HistorySeries:
        return await self.get(SeriesKey(SeriesKind.CURRENCY, symbol, page, limit))

    async def get_bank_history(
        self, bank: str, page: int = 1, limit: int = 30
    ) -> HistorySeries:
        return await self.get(SeriesKey(SeriesKind.BANK, bank, page, limit))

    async def get(self, key: SeriesKey) -> HistorySeries:
        with structlog.contextvars.bound_contextvars(series=str(key)):
            return await self._cache.query(key, lambda: self._client.fetch(key))

    async def refresh_currency(self, symbol: str, limit: int = 30) -> HistorySeries:
        """Pull-to-refresh: fetch page 1 once, then drop every cached page."""
        return await self._refresh(SeriesKey(SeriesKind.CURRENCY, symbol, 1, limit))

    async def refresh_bank(self, bank: str, limit: int = 30) -> HistorySeries:
        return await self._refresh(SeriesKey(SeriesKind.BANK, bank, 1, limit))

    def invalidate_identifier(self, kind: SeriesKind, identifier: str) -> int:
        """Drop all cached pages of one currency or bank."""
        return self._cache.invalidate_where(_same_identifier(kind, identifier))

    async def _refresh(self, key: SeriesKey) -> HistorySeries:
        series = await self._cache.mutate(
            key,
            lambda: self._client.fetch(key),
            match=_same_identifier(key.kind, key.identifier),
        )
        logger.info("history_refreshed", key=str(key), points=len(series.points))
        return series


def _same_identifier(kind: SeriesKind, identifier: str):
    def match(key) -> bool:
        return (
            isinstance(key, SeriesKey)
            and key.kind is kind
            and key.identifier == identifier
        )

    return match
