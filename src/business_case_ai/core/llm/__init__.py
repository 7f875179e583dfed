"""LLM communication: request building, transport, streaming and parsing."""

from business_case_ai.core.llm.capabilities import (
    clamp_tokens,
    estimate_tokens,
    supports_reasoning,
    supports_temperature,
    tokens_for_report,
)
from business_case_ai.core.llm.hooks import TransportEvent, TransportHooks
from business_case_ai.core.llm.models import (
    LLMRequest,
    Message,
    ResponseEnvelope,
    StreamEvent,
    StreamEventKind,
)
from business_case_ai.core.llm.parser import (
    ResponseParser,
    extract_content,
    extract_json,
    parse_business_case,
    process_response,
)
from business_case_ai.core.llm.request_builder import DEFAULT_SYSTEM_PROMPT, RequestBuilder
from business_case_ai.core.llm.retry import (
    ErrorClassification,
    ErrorType,
    RetryPolicy,
    classify_error,
)
from business_case_ai.core.llm.stream import StreamAssembler
from business_case_ai.core.llm.transport import AttemptRecord, TransportClient

__all__ = [
    "AttemptRecord",
    "DEFAULT_SYSTEM_PROMPT",
    "ErrorClassification",
    "ErrorType",
    "LLMRequest",
    "Message",
    "RequestBuilder",
    "ResponseEnvelope",
    "ResponseParser",
    "RetryPolicy",
    "StreamAssembler",
    "StreamEvent",
    "StreamEventKind",
    "TransportClient",
    "TransportEvent",
    "TransportHooks",
    "clamp_tokens",
    "classify_error",
    "estimate_tokens",
    "extract_content",
    "extract_json",
    "parse_business_case",
    "process_response",
    "supports_reasoning",
    "supports_temperature",
    "tokens_for_report",
]
