"""Retry policy and error classification for LLM calls.

Classification decides whether a failed attempt is retried; the policy
decides how the next attempt is shaped (fewer tokens, longer timeout) and how
long to wait. Both are pure so they can be tested without HTTP.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from business_case_ai.config.provider import ConfigProvider
from business_case_ai.core.errors import (
    BusinessCaseError,
    HTTPStatusError,
    RateLimitError,
    TransportError,
    TransportTimeoutError,
)

# Attempts per logical call, regardless of configuration
RETRY_HARD_CAP = 3

SleepFunc = Callable[[float], None]


class ErrorType(str, Enum):
    """Classification of error types for retry decisions."""

    RATE_LIMIT = "rate_limit"
    SERVER_ERROR = "server_error"
    TIMEOUT = "timeout"
    NETWORK = "network"
    CLIENT_ERROR = "client_error"
    UNKNOWN = "unknown"


@dataclass
class ErrorClassification:
    """Classification result for a failed attempt."""

    retryable: bool
    error_type: ErrorType = ErrorType.UNKNOWN
    backoff_seconds: Optional[float] = None


def classify_error(error: Exception) -> ErrorClassification:
    """Classify a failed attempt.

    - 4xx other than 429: fatal
    - timeouts, connection failures, 5xx and 429: retryable
    - anything else: fatal
    """
    if isinstance(error, RateLimitError):
        return ErrorClassification(
            retryable=True,
            error_type=ErrorType.RATE_LIMIT,
            backoff_seconds=error.retry_after,
        )
    if isinstance(error, HTTPStatusError):
        if error.status_code >= 500:
            return ErrorClassification(retryable=True, error_type=ErrorType.SERVER_ERROR)
        if error.status_code == 429:
            return ErrorClassification(retryable=True, error_type=ErrorType.RATE_LIMIT)
        return ErrorClassification(retryable=False, error_type=ErrorType.CLIENT_ERROR)
    if isinstance(error, TransportTimeoutError):
        return ErrorClassification(retryable=True, error_type=ErrorType.TIMEOUT)
    if isinstance(error, TransportError):
        return ErrorClassification(retryable=True, error_type=ErrorType.NETWORK)
    if isinstance(error, BusinessCaseError):
        return ErrorClassification(retryable=False, error_type=ErrorType.UNKNOWN)
    return ErrorClassification(retryable=False)


@dataclass
class RetryPolicy:
    """Shape of successive attempts for one logical call.

    Attributes:
        max_retries: Attempts per call (capped at ``RETRY_HARD_CAP``)
        base_timeout: First attempt's timeout in seconds
        retry_time: Configured wall-clock budget in seconds
        timeout_increment: Seconds added to the timeout after each failure
        min_tokens: Floor for output-token shrinking
        shrink_factor: Multiplier applied to the token ceiling per retry
    """

    max_retries: int = RETRY_HARD_CAP
    base_timeout: float = 300.0
    retry_time: float = 300.0
    timeout_increment: float = 30.0
    min_tokens: int = 1
    shrink_factor: float = 0.9

    @classmethod
    def from_config(cls, config: ConfigProvider) -> "RetryPolicy":
        return cls(
            max_retries=int(config.get("max_retries", RETRY_HARD_CAP)),
            base_timeout=float(config.get("timeout", 300)),
            retry_time=float(config.get("max_retry_time", 300)),
            timeout_increment=float(config.get("timeout_increment", 30)),
            min_tokens=max(1, int(config.get("min_output_tokens", 1))),
        )

    @property
    def max_retry_time(self) -> float:
        return max(self.base_timeout, self.retry_time)

    def attempts(self, override: Optional[int] = None) -> int:
        requested = override if override else self.max_retries
        return max(1, min(RETRY_HARD_CAP, int(requested)))

    def next_tokens(self, current: int) -> int:
        """Shrink the token ceiling by 10%, never below the floor or above *current*."""
        return min(current, max(self.min_tokens, int(current * self.shrink_factor)))

    def next_timeout(self, current: float) -> float:
        """Grow the timeout by the increment, never beyond the budget or below *current*."""
        return max(current, min(current + self.timeout_increment, self.max_retry_time))

    def backoff_delay(
        self,
        attempt: int,
        remaining: float,
        rng: random.Random,
        retry_after: Optional[float] = None,
    ) -> float:
        """Seconds to sleep after failed *attempt* (1-based).

        ``2 ** (attempt - 1)`` plus 0-1s jitter, raised to ``retry_after`` when
        the provider asked for longer, and never past the remaining budget.
        """
        if remaining <= 0:
            return 0.0
        delay = min(2 ** (attempt - 1), remaining) + rng.random()
        if retry_after is not None:
            delay = max(delay, retry_after)
        return min(delay, remaining)
