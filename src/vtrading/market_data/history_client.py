"""Paginated rate history fetch for currencies and banks.

Each call resolves exactly one page. The client is stateless per call: it
never retries and never swallows a failure. Every failure is reported to
the instrumentation sink with its context and re-raised; retry belongs to
the cache layer.
"""

from vtrading.logging import get_logger
from vtrading.models import HistorySeries, SeriesKey, SeriesKind
from vtrading.transport.client import Transport
from vtrading.transport.instrumentation import Instrumentation, NoopInstrumentation

logger = get_logger(__name__)

CURRENCY_HISTORY_PATH = "/api/rates/history/{identifier}"
BANK_HISTORY_PATH = "/api/rates/banks/history/{identifier}"


class HistoryFetchClient:
    """Resolves one page of currency or bank history.

    Usage:
        client = HistoryFetchClient(transport, instrumentation)
        series = await client.fetch_currency_history("USD", page=2)

    page and limit are forwarded verbatim; validation is the backend's job.
    """

    def __init__(
        self,
        transport: Transport,
        instrumentation: Instrumentation | None = None,
    ) -> None:
        self._transport = transport
        self._instrumentation = instrumentation or NoopInstrumentation()

    async def fetch_currency_history(
        self, symbol: str, page: int = 1, limit: int = 30
    ) -> HistorySeries:
        """Fetch one page of history for a currency code (e.g. 'USD', 'USDT')."""
        key = SeriesKey(SeriesKind.CURRENCY, symbol, page, limit)
        return await self._fetch(
            key,
            span_name="rate_history_fetch",
            operation="HistoryFetchClient.fetch_currency_history",
        )

    async def fetch_bank_history(
        self, bank: str, page: int = 1, limit: int = 30
    ) -> HistorySeries:
        """Fetch one page of history for a bank (e.g. 'Banesco', 'BNC')."""
        key = SeriesKey(SeriesKind.BANK, bank, page, limit)
        return await self._fetch(
            key,
            span_name="bank_rate_history_fetch",
            operation="HistoryFetchClient.fetch_bank_history",
        )

    async def fetch(self, key: SeriesKey) -> HistorySeries:
        """Fetch the page described by a SeriesKey."""
        if key.kind is SeriesKind.BANK:
            return await self.fetch_bank_history(key.identifier, key.page, key.limit)
        return await self.fetch_currency_history(key.identifier, key.page, key.limit)

    async def _fetch(
        self, key: SeriesKey, span_name: str, operation: str
    ) -> HistorySeries:
        instrumentation = self._instrumentation
        span = instrumentation.start_span(span_name)
        template = BANK_HISTORY_PATH if key.kind is SeriesKind.BANK else CURRENCY_HISTORY_PATH
        path = template.format(identifier=key.identifier)

        try:
            payload = await self._transport.request(
                "GET", path, {"page": key.page, "limit": key.limit}
            )
            series = HistorySeries.from_payload(key, payload)

            instrumentation.annotate(span, "history_points", len(series.points))
            instrumentation.annotate(span, key.kind.value, key.identifier)
            instrumentation.annotate(span, "page", str(key.page))

            pagination = series.pagination
            if not pagination.is_consistent:
                # Tolerated: server totals are passed through uncorrected
                logger.warning(
                    "pagination_mismatch",
                    key=str(key),
                    total=pagination.total,
                    limit=pagination.limit,
                    total_pages=pagination.total_pages,
                    expected_total_pages=pagination.expected_total_pages,
                )
            return series
        except Exception as e:
            logger.warning(
                "history_fetch_failed",
                key=str(key),
                operation=operation,
                error_type=type(e).__name__,
                error=str(e),
            )
            instrumentation.report_error(
                e,
                {
                    "context": operation,
                    key.kind.value: key.identifier,
                    "page": key.page,
                    "limit": key.limit,
                },
            )
            raise
        finally:
            instrumentation.end_span(span)
