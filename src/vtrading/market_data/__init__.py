"""Market data layer -- history fetching, retry policy and cache lifecycle."""

from vtrading.market_data.cache import CacheEntry, CacheLifecycleManager, CacheState
from vtrading.market_data.history_client import HistoryFetchClient
from vtrading.market_data.history_service import RateHistoryService
from vtrading.market_data.retry import RetryPolicy, RetryState

__all__ = [
    "CacheEntry",
    "CacheLifecycleManager",
    "CacheState",
    "HistoryFetchClient",
    "RateHistoryService",
    "RetryPolicy",
    "RetryState",
]
