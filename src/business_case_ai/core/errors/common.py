"""Base error classes shared across business-case-ai.

Every error raised by the pipeline derives from ``BusinessCaseError`` so that
boundaries (CLI, background jobs, the orchestrator) can catch one type and
still inspect ``code`` and ``retryable``.
"""

from typing import Optional


class BusinessCaseError(Exception):
    """Base exception for business-case-ai.

    Attributes:
        message: Human-readable error description
        code: Short machine-readable error code (e.g. ``"no_api_key"``)
        retryable: Whether the operation can be retried
        user_message: Message that is safe to show an end user
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        retryable: bool = False,
        user_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.retryable = retryable
        self.user_message = user_message or message


class ConfigurationError(BusinessCaseError):
    """Missing credential, disabled AI features or a misconfigured model.

    Never retried.
    """

    def __init__(self, message: str, *, code: str = "configuration_error"):
        super().__init__(message, code=code, retryable=False)


class ValidationError(BusinessCaseError):
    """Empty prompt or otherwise unusable input. Never retried."""

    def __init__(self, message: str, *, code: str = "validation_error"):
        super().__init__(message, code=code, retryable=False)
