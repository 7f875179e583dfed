"""Tests for error classification and the retry policy."""

import random

import pytest

from business_case_ai.core.errors import (
    ConfigurationError,
    HTTPStatusError,
    ParseError,
    RateLimitError,
    TransportError,
    TransportTimeoutError,
)
from business_case_ai.core.llm import ErrorType, RetryPolicy, classify_error
from business_case_ai.core.llm.retry import RETRY_HARD_CAP


class TestClassifyError:
    """Which failures are retried."""

    @pytest.mark.parametrize("status", [500, 502, 503, 504])
    def test_server_errors_retryable(self, status):
        """5xx responses are retried."""
        result = classify_error(HTTPStatusError("boom", status_code=status))
        assert result.retryable is True
        assert result.error_type is ErrorType.SERVER_ERROR

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 422])
    def test_client_errors_fatal(self, status):
        """4xx responses other than 429 are fatal."""
        result = classify_error(HTTPStatusError("bad", status_code=status))
        assert result.retryable is False
        assert result.error_type is ErrorType.CLIENT_ERROR

    def test_rate_limit_carries_retry_after(self):
        """429 is retryable and keeps the Retry-After hint."""
        result = classify_error(RateLimitError(provider="openai", retry_after=7.0))
        assert result.retryable is True
        assert result.error_type is ErrorType.RATE_LIMIT
        assert result.backoff_seconds == 7.0

    def test_timeout_and_network_retryable(self):
        """Timeouts and connection failures are retried."""
        assert classify_error(TransportTimeoutError("slow", provider="openai", timeout=5)).error_type is ErrorType.TIMEOUT
        assert classify_error(TransportError("reset")).error_type is ErrorType.NETWORK

    @pytest.mark.parametrize(
        "error",
        [ConfigurationError("no key"), ParseError("garbage"), ValueError("other"), KeyError("x")],
    )
    def test_everything_else_fatal(self, error):
        """Unknown errors are not retried."""
        assert classify_error(error).retryable is False


class TestRetryPolicy:
    """Token, timeout and backoff shaping across attempts."""

    def test_attempts_capped(self):
        """Attempt counts never exceed three."""
        policy = RetryPolicy(max_retries=10)
        assert policy.attempts() == RETRY_HARD_CAP
        assert policy.attempts(2) == 2
        assert policy.attempts(0) == RETRY_HARD_CAP

    def test_tokens_shrink_monotonically_to_floor(self):
        """Tokens never increase and never drop below the floor."""
        policy = RetryPolicy(min_tokens=500)
        tokens = [8000]
        for _ in range(40):
            tokens.append(policy.next_tokens(tokens[-1]))
        assert all(b <= a for a, b in zip(tokens, tokens[1:]))
        assert min(tokens) == 500
        assert tokens[1] == 7200

    def test_tokens_below_floor_not_raised(self):
        """Shrinking never raises a ceiling already under the floor."""
        policy = RetryPolicy(min_tokens=500)
        assert policy.next_tokens(300) == 300

    def test_timeout_grows_monotonically_to_budget(self):
        """Timeout never decreases and never exceeds the budget."""
        policy = RetryPolicy(base_timeout=30, retry_time=100, timeout_increment=30)
        timeouts = [30.0]
        for _ in range(10):
            timeouts.append(policy.next_timeout(timeouts[-1]))
        assert all(b >= a for a, b in zip(timeouts, timeouts[1:]))
        assert max(timeouts) == 100
        assert timeouts[:4] == [30, 60, 90, 100]

    def test_budget_is_larger_of_timeout_and_retry_time(self):
        """The budget covers at least one full timeout."""
        assert RetryPolicy(base_timeout=300, retry_time=60).max_retry_time == 300
        assert RetryPolicy(base_timeout=30, retry_time=60).max_retry_time == 60

    def test_backoff_exponential_with_jitter(self):
        """Delays double per attempt plus jitter below one second."""
        policy = RetryPolicy()
        rng = random.Random(1)
        for attempt in (1, 2, 3):
            delay = policy.backoff_delay(attempt, 1000, rng)
            assert 2 ** (attempt - 1) <= delay < 2 ** (attempt - 1) + 1

    def test_backoff_capped_by_remaining_budget(self):
        """The delay never exceeds the remaining budget."""
        policy = RetryPolicy()
        assert policy.backoff_delay(3, 0.5, random.Random(0)) <= 0.5
        assert policy.backoff_delay(1, 0, random.Random(0)) == 0.0

    def test_retry_after_raises_delay(self):
        """Retry-After acts as a floor on the delay."""
        policy = RetryPolicy()
        assert policy.backoff_delay(1, 100, random.Random(0), retry_after=20) == 20
        assert policy.backoff_delay(1, 10, random.Random(0), retry_after=20) == 10
