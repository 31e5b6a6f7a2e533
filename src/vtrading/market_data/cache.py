"""Per-key cache lifecycle: freshness, stale-while-revalidate, eviction, retry.

Each key moves through EMPTY -> FETCHING -> FRESH -> STALE -> EXPIRED -> EMPTY.
FRESH entries are served without network activity, STALE entries are
served immediately while one background revalidation runs, and EXPIRED
entries are purged so the next read waits on a fresh fetch.

Concurrency rules:
- At most one flight (fetch task) per key is shared by all readers.
  Waiters await it through asyncio.shield, so a cancelled waiter never
  aborts a fetch other waiters still need. A foreground flight is cancelled
  only when its last waiter leaves.
- Every flight carries a monotonic sequence number. A result is applied
  only if its sequence is >= the key's floor (the last applied sequence,
  raised past every outstanding flight on invalidate/purge), so a slow,
  superseded fetch cannot overwrite newer data.
- invalidate/purge cancel background revalidations for the key.

The manager is constructed explicitly by the composition root and torn
down with close(); there is no module-level instance.
"""

import asyncio
import enum
import time
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from vtrading.config import CacheSettings
from vtrading.exceptions import CacheClosedError
from vtrading.logging import get_logger
from vtrading.market_data.retry import RetryPolicy, RetryState

logger = get_logger(__name__)

T = TypeVar("T")
FetchFn = Callable[[], Awaitable[Any]]


class CacheState(str, enum.Enum):
    """Observable lifecycle state of one key."""

    EMPTY = "empty"
    FETCHING = "fetching"
    FRESH = "fresh"
    STALE = "stale"
    REVALIDATING = "revalidating"


@dataclass
class CacheEntry(Generic[T]):
    """Last successfully resolved value for a key."""

    value: T
    fetched_at: float
    stale_after: float
    evict_after: float
    seq: int
    marked_stale: bool = False

    def age(self, now: float) -> float:
        return now - self.fetched_at

    def is_stale(self, now: float) -> bool:
        return self.marked_stale or self.age(now) >= self.stale_after

    def is_expired(self, now: float) -> bool:
        return self.age(now) >= self.evict_after


@dataclass
class _Flight:
    """One in-flight fetch shared by every reader of a key."""

    task: asyncio.Task
    seq: int
    background: bool
    waiters: int = 0


@dataclass
class _KeyState:
    entry: CacheEntry | None = None
    flight: _Flight | None = None
    next_seq: int = 0
    floor_seq: int = 0
    detached: set[asyncio.Task] = field(default_factory=set)


class CacheLifecycleManager:
    """Decides whether to serve, revalidate or fetch, and applies retry.

    Args:
        settings: Freshness windows, retry limits and reconnect behaviour.
        clock: Monotonic time source in seconds (injectable for tests).
        sleep: Coroutine used for backoff delays (injectable for tests).
    """

    def __init__(
        self,
        settings: CacheSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._settings = settings or CacheSettings()
        self._query_policy = RetryPolicy.for_queries(self._settings)
        self._mutation_policy = RetryPolicy.for_mutations(self._settings)
        self._clock = clock
        self._sleep = sleep
        self._keys: dict[Hashable, _KeyState] = {}
        self._sweeper: asyncio.Task | None = None
        self._closed = False

    # ──────────────────────────────────────────────
    # Reads
    # ──────────────────────────────────────────────

    async def query(self, key: Hashable, fetch_fn: FetchFn) -> Any:
        """Resolve `key`, serving cached data when the lifecycle allows it.

        FRESH: cached value, no fetch (unless refetch_on_mount).
        STALE: cached value now, one background revalidation scheduled.
        EMPTY/EXPIRED: waits on a (possibly shared) foreground fetch.

        Raises:
            The final fetch failure when no usable cached value exists.
        """
        self._ensure_open()
        state = self._state_for(key)
        now = self._clock()
        entry = state.entry

        if entry is not None and entry.is_expired(now):
            logger.debug("cache_entry_expired", key=str(key), age=round(entry.age(now), 3))
            if state.flight is not None and not state.flight.background:
                # A foreground fetch is already replacing this entry; join it below
                state.entry = None
            else:
                self._purge(key, state)
            entry = None

        if entry is not None:
            if entry.is_stale(now):
                if state.flight is None:
                    self._launch(key, state, fetch_fn, background=True)
                    logger.info("cache_revalidate_scheduled", key=str(key))
                else:
                    logger.debug("cache_revalidate_in_flight", key=str(key))
            else:
                if self._settings.refetch_on_mount and state.flight is None:
                    self._launch(key, state, fetch_fn, background=True)
                logger.debug("cache_hit", key=str(key))
            return entry.value

        if state.flight is not None:
            logger.debug("cache_join_flight", key=str(key))
            return await self._wait(key, state.flight, originator=False)

        logger.debug("cache_miss", key=str(key))
        flight = self._launch(key, state, fetch_fn, background=False)
        return await self._wait(key, flight, originator=True)

    async def refetch(self, key: Hashable, fetch_fn: FetchFn) -> Any:
        """Force a foreground fetch regardless of freshness.

        Joins an existing flight if one is running. On failure the caller
        gets the error while any non-expired cached value stays in place
        for other readers.
        """
        self._ensure_open()
        state = self._state_for(key)
        flight = state.flight
        if flight is not None:
            return await self._wait(key, flight, originator=False)
        flight = self._launch(key, state, fetch_fn, background=False)
        return await self._wait(key, flight, originator=True)

    def get_cached(self, key: Hashable) -> Any | None:
        """Return the cached value if present and not expired, else None."""
        state = self._keys.get(key)
        if state is None or state.entry is None:
            return None
        if state.entry.is_expired(self._clock()):
            self._purge(key, state)
            return None
        return state.entry.value

    def state_of(self, key: Hashable) -> CacheState:
        """Report the lifecycle state of a key without side effects on fresh data."""
        state = self._keys.get(key)
        if state is None:
            return CacheState.EMPTY
        now = self._clock()
        entry = state.entry
        if entry is not None and entry.is_expired(now):
            entry = None
        if entry is None:
            return CacheState.FETCHING if state.flight is not None else CacheState.EMPTY
        if entry.is_stale(now):
            return CacheState.REVALIDATING if state.flight is not None else CacheState.STALE
        return CacheState.FRESH

    def snapshot(self) -> dict[Hashable, CacheState]:
        """Lifecycle state of every tracked key."""
        return {key: self.state_of(key) for key in list(self._keys)}

    # ──────────────────────────────────────────────
    # Writes and invalidation
    # ──────────────────────────────────────────────

    async def mutate(
        self,
        key: Hashable | None,
        mutate_fn: FetchFn,
        match: Callable[[Hashable], bool] | None = None,
    ) -> Any:
        """Run a write operation and invalidate affected keys on success.

        Uses the mutation retry budget (one attempt by default). On success
        `key` and every tracked key accepted by `match` go back to EMPTY.
        """
        self._ensure_open()
        result = await self._run_with_retry(
            key, mutate_fn, self._mutation_policy, operation="mutation"
        )
        if key is not None:
            self.invalidate(key)
        if match is not None:
            self.invalidate_where(match)
        return result

    def invalidate(self, key: Hashable) -> bool:
        """Drop a key's entry. Returns True if anything was cached."""
        state = self._keys.get(key)
        if state is None:
            return False
        had_entry = state.entry is not None
        self._purge(key, state)
        logger.info("cache_invalidated", key=str(key), had_entry=had_entry)
        return had_entry

    def invalidate_where(self, match: Callable[[Hashable], bool]) -> int:
        """Invalidate every tracked key accepted by `match`. Returns the count."""
        count = 0
        for key in [k for k in self._keys if match(k)]:
            if self.invalidate(key):
                count += 1
        return count

    def on_reconnect(self) -> int:
        """Network link restored: mark every settled entry stale.

        Entries are not discarded, they revalidate on next access. Keys
        with a fetch already in flight are left alone. Returns the number
        of entries marked.
        """
        if not self._settings.refetch_on_reconnect:
            return 0
        now = self._clock()
        marked = 0
        for state in self._keys.values():
            entry = state.entry
            if entry is None or state.flight is not None or entry.is_expired(now):
                continue
            entry.marked_stale = True
            marked += 1
        logger.info("cache_reconnect_marked_stale", entries=marked)
        return marked

    def sweep(self) -> int:
        """Purge every expired entry. Returns the number purged."""
        now = self._clock()
        purged = 0
        for key, state in list(self._keys.items()):
            if state.entry is not None and state.entry.is_expired(now):
                self._purge(key, state)
                purged += 1
            elif state.entry is None and state.flight is None and not state.detached:
                del self._keys[key]
        if purged:
            logger.info("cache_sweep", purged=purged, remaining=len(self._keys))
        return purged

    # ──────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────

    def start(self) -> None:
        """Start the periodic eviction sweeper. Requires a running loop."""
        if self._sweeper is None:
            self._sweeper = asyncio.create_task(self._sweep_loop())

    async def close(self) -> None:
        """Cancel the sweeper and every in-flight fetch, then drop all entries."""
        self._closed = True
        tasks: list[asyncio.Task] = []
        if self._sweeper is not None:
            self._sweeper.cancel()
            tasks.append(self._sweeper)
            self._sweeper = None
        for state in self._keys.values():
            if state.flight is not None:
                state.flight.task.cancel()
                tasks.append(state.flight.task)
            for task in state.detached:
                task.cancel()
                tasks.append(task)
        self._keys.clear()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("cache_closed", cancelled_tasks=len(tasks))

    async def _sweep_loop(self) -> None:
        interval = self._settings.sweep_interval_seconds
        while True:
            await asyncio.sleep(interval)
            self.sweep()

    # ──────────────────────────────────────────────
    # Flight management
    # ──────────────────────────────────────────────

    def _ensure_open(self) -> None:
        if self._closed:
            raise CacheClosedError("cache manager is closed")

    def _state_for(self, key: Hashable) -> _KeyState:
        state = self._keys.get(key)
        if state is None:
            state = self._keys[key] = _KeyState()
        return state

    def _launch(
        self,
        key: Hashable,
        state: _KeyState,
        fetch_fn: FetchFn,
        background: bool,
    ) -> _Flight:
        seq = state.next_seq
        state.next_seq += 1
        task = asyncio.create_task(
            self._run_flight(key, state, fetch_fn, seq)
        )
        flight = _Flight(task=task, seq=seq, background=background)
        state.flight = flight
        task.add_done_callback(lambda t: self._flight_done(key, state, flight, t))
        return flight

    async def _run_flight(
        self,
        key: Hashable,
        state: _KeyState,
        fetch_fn: FetchFn,
        seq: int,
    ) -> Any:
        value = await self._run_with_retry(
            key, fetch_fn, self._query_policy, operation="query"
        )
        self._apply(key, state, value, seq)
        return value

    def _apply(self, key: Hashable, state: _KeyState, value: Any, seq: int) -> bool:
        """Store a fetch result unless a newer result or a purge superseded it."""
        if seq < state.floor_seq:
            logger.info(
                "cache_result_discarded",
                key=str(key),
                seq=seq,
                floor_seq=state.floor_seq,
            )
            return False
        state.floor_seq = seq
        state.entry = CacheEntry(
            value=value,
            fetched_at=self._clock(),
            stale_after=self._settings.stale_after,
            evict_after=self._settings.evict_after,
            seq=seq,
        )
        logger.debug("cache_stored", key=str(key), seq=seq)
        return True

    def _flight_done(
        self, key: Hashable, state: _KeyState, flight: _Flight, task: asyncio.Task
    ) -> None:
        if state.flight is flight:
            state.flight = None
        state.detached.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None and flight.background and flight.waiters == 0:
            # Failed revalidation: the stale value keeps being served
            logger.warning(
                "cache_revalidate_failed",
                key=str(key),
                error=str(error),
                error_type=type(error).__name__,
            )

    async def _wait(
        self, key: Hashable, flight: _Flight, originator: bool
    ) -> Any:
        """Await a shared flight with reference-counted cancellation."""
        flight.waiters += 1
        try:
            return await asyncio.shield(flight.task)
        except asyncio.CancelledError:
            raise
        except Exception:
            if not originator:
                fallback = self.get_cached(key)
                if fallback is not None:
                    logger.info("cache_fallback_served", key=str(key))
                    return fallback
            raise
        finally:
            flight.waiters -= 1
            if (
                flight.waiters == 0
                and not flight.background
                and not flight.task.done()
            ):
                logger.debug("cache_flight_abandoned", key=str(key))
                flight.task.cancel()

    def _purge(self, key: Hashable, state: _KeyState) -> None:
        """Return a key to EMPTY and detach anything still running for it."""
        state.entry = None
        state.floor_seq = state.next_seq
        flight = state.flight
        if flight is None:
            return
        state.flight = None
        if flight.background and flight.waiters == 0:
            flight.task.cancel()
        else:
            # Waiters still get their result; it just won't be stored
            state.detached.add(flight.task)

    async def _run_with_retry(
        self,
        key: Hashable | None,
        fn: FetchFn,
        policy: RetryPolicy,
        operation: str,
    ) -> Any:
        """Execute fn with bounded exponential backoff.

        max_attempts counts total calls. Re-raises the last failure once the
        budget is spent or the failure is not transient.
        """
        retry = RetryState()
        while True:
            try:
                return await fn()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                retry.record_failure(e)
                if not policy.should_retry(retry.attempt, e):
                    logger.error(
                        "fetch_failed_permanently",
                        key=str(key),
                        operation=operation,
                        attempts=retry.attempt,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    raise

                delay = policy.delay_for(retry.attempt - 1)
                logger.warning(
                    "fetch_retry",
                    key=str(key),
                    operation=operation,
                    attempt=retry.attempt,
                    max_attempts=policy.max_attempts,
                    delay=delay,
                    error=str(e),
                )
                await self._sleep(delay)
