"""Error-to-ErrorCode mapping registry.

Provides a centralized mapping from exception types to (ErrorCode, user message)
tuples so the CLI and the background job runner report failures consistently.

Usage:
    from business_case_ai.core.errors.base import error_to_response

    try:
        do_something()
    except Exception as e:
        result = error_to_response(e)
        if result is not None:
            return result
        raise  # Unknown error, re-raise
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type

from business_case_ai.core.errors.common import (
    BusinessCaseError,
    ConfigurationError,
    ValidationError,
)
from business_case_ai.core.errors.llm import (
    HTTPStatusError,
    ParseError,
    RateLimitError,
    TransportError,
    TransportTimeoutError,
)
from business_case_ai.core.errors.workflow import JobNotFoundError, StepStateError

GENERIC_FAILURE_MESSAGE = "An error occurred while generating your business case. Please try again."


class ErrorCode(str, Enum):
    """Machine-readable error codes surfaced at process boundaries."""

    CONFIGURATION = "CONFIGURATION_ERROR"
    VALIDATION = "VALIDATION_ERROR"
    TIMEOUT = "AI_PROVIDER_TIMEOUT"
    UNAVAILABLE = "AI_PROVIDER_UNAVAILABLE"
    RATE_LIMITED = "RATE_LIMIT_EXCEEDED"
    PROVIDER_ERROR = "AI_PROVIDER_ERROR"
    PARSE_ERROR = "PARSE_ERROR"
    STATE_ERROR = "STATE_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL = "INTERNAL_ERROR"


ERROR_MAPPINGS: Dict[Type[Exception], Tuple[ErrorCode, Optional[str]]] = {
    # --- Configuration / input ---
    ConfigurationError: (ErrorCode.CONFIGURATION, None),
    ValidationError: (ErrorCode.VALIDATION, None),
    # --- Transport ---
    TransportTimeoutError: (ErrorCode.TIMEOUT, "The AI service timed out. Please try again."),
    TransportError: (ErrorCode.UNAVAILABLE, "The AI service is unavailable. Please try again."),
    RateLimitError: (ErrorCode.RATE_LIMITED, "The AI service is busy. Please try again shortly."),
    HTTPStatusError: (ErrorCode.PROVIDER_ERROR, "The AI service returned an error."),
    ParseError: (ErrorCode.PARSE_ERROR, "The AI response could not be understood."),
    # --- Workflow ---
    StepStateError: (ErrorCode.STATE_ERROR, GENERIC_FAILURE_MESSAGE),
    JobNotFoundError: (ErrorCode.NOT_FOUND, None),
}


def error_to_response(error: Exception) -> Optional[Dict[str, Any]]:
    """Convert a known exception into a response envelope.

    Walks the exception's MRO so subclasses resolve to the most specific
    registered mapping (``RateLimitError`` before ``HTTPStatusError``).

    Args:
        error: The exception to convert

    Returns:
        ``{"success": False, "error_code": ..., "error": ...}`` for registered
        types, or None if the error type is unknown.
    """
    for klass in type(error).__mro__:
        mapping = ERROR_MAPPINGS.get(klass)
        if mapping is None:
            continue
        code, message = mapping
        if message is None:
            message = error.user_message if isinstance(error, BusinessCaseError) else str(error)
        return {"success": False, "error_code": code.value, "error": message}
    return None
