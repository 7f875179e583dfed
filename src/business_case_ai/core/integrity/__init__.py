"""Audit log persistence and offline corruption checks."""

from business_case_ai.core.integrity.guard import CorruptionGuard, CorruptionIssue, CorruptionReport
from business_case_ai.core.integrity.log_store import (
    REQUEST_SIZE_LIMIT,
    RESPONSE_SIZE_LIMIT,
    ApiLogRecord,
    ApiLogStore,
    encode_capped,
)

__all__ = [
    "ApiLogRecord",
    "ApiLogStore",
    "CorruptionGuard",
    "CorruptionIssue",
    "CorruptionReport",
    "REQUEST_SIZE_LIMIT",
    "RESPONSE_SIZE_LIMIT",
    "encode_capped",
]
