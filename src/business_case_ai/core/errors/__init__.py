"""Unified error hierarchy for business-case-ai.

All custom exception classes are defined in domain-specific modules within
this package. This __init__.py re-exports everything for convenient access.

Usage:
    from business_case_ai.core.errors import ParseError, error_to_response
"""

# --- Base / Registry ---
from business_case_ai.core.errors.base import (
    ERROR_MAPPINGS,
    GENERIC_FAILURE_MESSAGE,
    ErrorCode,
    error_to_response,
)

# --- Common errors ---
from business_case_ai.core.errors.common import (
    BusinessCaseError,
    ConfigurationError,
    ValidationError,
)

# --- LLM errors ---
from business_case_ai.core.errors.llm import (
    HTTPStatusError,
    ParseError,
    RateLimitError,
    TransportError,
    TransportTimeoutError,
)

# --- Workflow errors ---
from business_case_ai.core.errors.workflow import JobNotFoundError, StepStateError

__all__ = [
    # Base / Registry
    "ERROR_MAPPINGS",
    "GENERIC_FAILURE_MESSAGE",
    "ErrorCode",
    "error_to_response",
    # Common
    "BusinessCaseError",
    "ConfigurationError",
    "ValidationError",
    # LLM
    "HTTPStatusError",
    "ParseError",
    "RateLimitError",
    "TransportError",
    "TransportTimeoutError",
    # Workflow
    "JobNotFoundError",
    "StepStateError",
]
