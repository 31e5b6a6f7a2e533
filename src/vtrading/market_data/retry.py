"""Bounded exponential backoff shared by the fetch path and the cache.

delay_for(attempt) = min(base * 2**attempt, cap), so with the defaults the
spacing runs 1s, 2s, 4s, 8s, 16s, then holds at 30s.
"""

import random
from dataclasses import dataclass

from vtrading.config import CacheSettings
from vtrading.exceptions import is_transient


@dataclass(frozen=True)
class RetryPolicy:
    """Pure retry eligibility and backoff computation.

    Delays are in seconds. Jitter is off by default so the schedule is
    deterministic; when enabled it draws uniformly from [0, delay].
    """

    base_delay: float = 1.0
    cap_delay: float = 30.0
    max_attempts: int = 3
    jitter: bool = False

    @classmethod
    def for_queries(cls, settings: CacheSettings) -> "RetryPolicy":
        return cls(
            base_delay=settings.retry_base_delay_ms / 1000,
            cap_delay=settings.retry_cap_delay_ms / 1000,
            max_attempts=settings.retry_max,
            jitter=settings.retry_jitter,
        )

    @classmethod
    def for_mutations(cls, settings: CacheSettings) -> "RetryPolicy":
        return cls(
            base_delay=settings.retry_base_delay_ms / 1000,
            cap_delay=settings.retry_cap_delay_ms / 1000,
            max_attempts=settings.mutation_retry_max,
            jitter=settings.retry_jitter,
        )

    def should_retry(
        self,
        attempt: int,
        error: BaseException,
        max_attempts: int | None = None,
    ) -> bool:
        """Return True if another attempt is allowed after `attempt` failures.

        Non-transient failures (rejected requests, decode failures, anything
        outside the transport taxonomy) are never retried.
        """
        limit = self.max_attempts if max_attempts is None else max_attempts
        return attempt < limit and is_transient(error)

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number `attempt` (zero-based), in seconds."""
        if attempt < 0:
            raise ValueError("attempt must be non-negative")
        # Clamp the exponent so huge attempt counts cannot overflow the float
        exponent = min(attempt, 64)
        delay = min(self.base_delay * (2**exponent), self.cap_delay)
        if self.jitter:
            return random.uniform(0, delay)
        return delay


@dataclass
class RetryState:
    """Bookkeeping for one in-flight operation."""

    attempt: int = 0
    last_error: BaseException | None = None

    def record_failure(self, error: BaseException) -> None:
        self.attempt += 1
        self.last_error = error
