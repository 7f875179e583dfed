"""LLM transport and parsing error classes."""

from typing import Optional

from business_case_ai.core.errors.common import BusinessCaseError


class TransportError(BusinessCaseError):
    """Connection-level failure talking to the LLM provider.

    Attributes:
        provider: Name of the provider that raised the error
    """

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        code: str = "transport_error",
    ):
        super().__init__(message, code=code, retryable=True)
        self.provider = provider


class TransportTimeoutError(TransportError):
    """The provider did not answer within the attempt timeout.

    Attributes:
        timeout: Timeout applied to the attempt, in seconds
    """

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        super().__init__(message, provider=provider, code="timeout")
        self.timeout = timeout


class HTTPStatusError(BusinessCaseError):
    """Non-2xx response from the provider.

    429 and 5xx are retryable; every other status is fatal.

    Attributes:
        status_code: HTTP status code of the response
        provider: Name of the provider that raised the error
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        provider: Optional[str] = None,
    ):
        retryable = status_code == 429 or status_code >= 500
        super().__init__(message, code=f"http_{status_code}", retryable=retryable)
        self.status_code = status_code
        self.provider = provider


class RateLimitError(HTTPStatusError):
    """HTTP 429 from the provider.

    Attributes:
        retry_after: Seconds the provider asked us to wait, if given
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        provider: Optional[str] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, status_code=429, provider=provider)
        self.retry_after = retry_after


class ParseError(BusinessCaseError):
    """No extraction strategy produced usable content from a response body."""

    def __init__(self, message: str, *, code: str = "parse_error"):
        super().__init__(message, code=code, retryable=False)
