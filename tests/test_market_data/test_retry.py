"""Tests for RetryPolicy backoff schedule and transient-error classification."""

import pytest

from vtrading.config import CacheSettings
from vtrading.exceptions import (
    DecodeError,
    NonTransientRequestError,
    TransientTransportError,
)
from vtrading.market_data.retry import RetryPolicy, RetryState


class TestDelayFor:
    @pytest.mark.parametrize("attempt", range(7))
    def test_matches_capped_doubling(self, attempt: int) -> None:
        policy = RetryPolicy()
        assert policy.delay_for(attempt) == min(1.0 * 2**attempt, 30.0)

    def test_known_points(self) -> None:
        policy = RetryPolicy()
        assert policy.delay_for(0) == 1.0
        assert policy.delay_for(4) == 16.0
        assert policy.delay_for(6) == 30.0

    def test_cap_holds_for_large_attempts(self) -> None:
        policy = RetryPolicy()
        assert policy.delay_for(10) == 30.0
        assert policy.delay_for(1000) == 30.0

    def test_negative_attempt_rejected(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy().delay_for(-1)

    def test_jitter_stays_within_delay(self) -> None:
        policy = RetryPolicy(jitter=True)
        for attempt in range(8):
            delay = policy.delay_for(attempt)
            assert 0 <= delay <= min(2**attempt, 30)


class TestShouldRetry:
    def test_transient_retried_below_limit(self) -> None:
        policy = RetryPolicy(max_attempts=3)
        error = TransientTransportError("timeout")
        assert policy.should_retry(1, error) is True
        assert policy.should_retry(2, error) is True
        assert policy.should_retry(3, error) is False

    def test_explicit_max_attempts_overrides_default(self) -> None:
        policy = RetryPolicy(max_attempts=3)
        assert policy.should_retry(1, TransientTransportError("x"), max_attempts=1) is False

    def test_non_transient_never_retried(self) -> None:
        policy = RetryPolicy(max_attempts=5)
        assert policy.should_retry(0, NonTransientRequestError("bad symbol", 404)) is False
        assert policy.should_retry(0, DecodeError("not json")) is False

    def test_unknown_exception_is_final(self) -> None:
        assert RetryPolicy().should_retry(0, RuntimeError("boom")) is False


class TestFromSettings:
    def test_query_and_mutation_budgets(self) -> None:
        settings = CacheSettings()
        queries = RetryPolicy.for_queries(settings)
        mutations = RetryPolicy.for_mutations(settings)

        assert queries.max_attempts == 3
        assert mutations.max_attempts == 1
        assert queries.base_delay == 1.0
        assert queries.cap_delay == 30.0
        assert queries.jitter is False


def test_retry_state_counts_failures() -> None:
    state = RetryState()
    error = TransientTransportError("reset")
    state.record_failure(error)
    state.record_failure(error)
    assert state.attempt == 2
    assert state.last_error is error
