"""Extraction of model output from provider response bodies.

``ResponseParser.parse`` turns an already-decoded Responses API body into a
``ResponseEnvelope``. The module-level helpers handle bodies that are not
cleanly structured: JSON wrapped in prose or Markdown fences, server-sent
event transcripts, and chat-completion envelopes.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from business_case_ai.config.provider import ConfigProvider
from business_case_ai.core.errors import ParseError
from business_case_ai.core.llm.models import ResponseEnvelope

logger = logging.getLogger(__name__)

DEFAULT_TRIVIAL_PHRASES = ("pong", "how can i help")
DEFAULT_MIN_LENGTH = 20

BUSINESS_CASE_SECTIONS = (
    "executive_summary",
    "company_intelligence",
    "operational_insights",
    "risk_analysis",
    "action_plan",
    "industry_insights",
    "technology_strategy",
    "financial_analysis",
)

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)
_OUTERMOST_OBJECT = re.compile(r"\{.*\}", re.DOTALL)
_SSE_SYNTAX = re.compile(r"^\s*(?:for\s*\(\s*;;\s*\);\s*)?(?:data|event):\s", re.MULTILINE)
_NUMERIC = re.compile(r"^-?\d+(?:\.\d+)?$")


class ResponseParser:
    """Extracts output text, reasoning and tool calls from response bodies.

    The trivial-response filter rejects text shorter than ``min_length`` or
    containing one of ``trivial_phrases`` (case-insensitive). Such replies mean
    the provider answered some other, smaller request.

    Attributes:
        trivial_phrases: Lower-cased phrases that mark a reply as trivial
        min_length: Minimum stripped length of non-trivial text
        max_output_tokens: Default ceiling for truncation detection
        store_raw: Keep the decoded body on the envelope
    """

    def __init__(
        self,
        trivial_phrases: Optional[Iterable[str]] = None,
        min_length: int = DEFAULT_MIN_LENGTH,
        max_output_tokens: int = 8000,
        store_raw: bool = True,
    ) -> None:
        phrases = DEFAULT_TRIVIAL_PHRASES if trivial_phrases is None else trivial_phrases
        self.trivial_phrases: Tuple[str, ...] = tuple(p.strip().lower() for p in phrases if p and p.strip())
        self.min_length = min_length
        self.max_output_tokens = max_output_tokens
        self.store_raw = store_raw

    @classmethod
    def from_config(cls, config: ConfigProvider) -> "ResponseParser":
        return cls(
            trivial_phrases=config.get("trivial_phrases", DEFAULT_TRIVIAL_PHRASES),
            min_length=int(config.get("trivial_min_length", DEFAULT_MIN_LENGTH)),
            max_output_tokens=int(config.get("max_output_tokens", 8000)),
        )

    # ------------------------------------------------------------------
    # Trivial-response filter
    # ------------------------------------------------------------------

    def is_trivial(self, text: Optional[str]) -> bool:
        stripped = (text or "").strip()
        if len(stripped) < self.min_length:
            return True
        lowered = stripped.lower()
        return any(phrase in lowered for phrase in self.trivial_phrases)

    def filter_text(self, text: Optional[str]) -> str:
        """Return stripped *text*, or "" when it is trivial."""
        if not isinstance(text, str) or self.is_trivial(text):
            return ""
        return text.strip()

    def screen(self, envelope: ResponseEnvelope) -> ResponseEnvelope:
        """Blank out trivial ``output_text`` on an envelope assembled elsewhere."""
        if envelope.output_text and self.is_trivial(envelope.output_text):
            logger.info("Discarding trivial response text (%d chars)", len(envelope.output_text))
            envelope.output_text = ""
        return envelope

    # ------------------------------------------------------------------
    # Structured parsing
    # ------------------------------------------------------------------

    def parse(self, body: Any, max_output_tokens: Optional[int] = None) -> ResponseEnvelope:
        """Parse a decoded response body.

        Priority:
            1. ``output_text`` convenience field (filtered)
            2. First non-trivial ``message`` chunk in ``output``
            3. Chat-completions ``choices[0].message.content``
        Reasoning and function-call chunks are collected alongside.

        Args:
            body: Decoded JSON body; anything other than a dict yields an
                empty envelope
            max_output_tokens: Ceiling used for truncation detection
                (default: ``self.max_output_tokens``)

        Returns:
            ResponseEnvelope, possibly with empty ``output_text``
        """
        if not isinstance(body, dict):
            return ResponseEnvelope()

        output = body.get("output")
        chunks = [c for c in output if isinstance(c, dict)] if isinstance(output, list) else []

        text = self.filter_text(_convenience_text(body))
        if not text:
            text = self._first_message_text(chunks)
        if not text:
            text = self.filter_text(_chat_completion_text(body))

        reasoning, function_calls = _collect_auxiliary(chunks)

        return ResponseEnvelope(
            output_text=text,
            reasoning=reasoning,
            function_calls=function_calls,
            raw=body if self.store_raw else {},
            truncated=self._is_truncated(body, max_output_tokens),
        )

    def _first_message_text(self, chunks: List[Dict[str, Any]]) -> str:
        for chunk in chunks:
            if chunk.get("type") != "message":
                continue
            for text in _content_texts(chunk.get("content")):
                candidate = self.filter_text(text)
                if candidate:
                    return candidate
        return ""

    def _is_truncated(self, body: Dict[str, Any], max_output_tokens: Optional[int]) -> bool:
        if body.get("status") == "incomplete":
            return True
        ceiling = max_output_tokens or self.max_output_tokens
        usage = body.get("usage")
        if isinstance(usage, dict) and ceiling:
            try:
                return int(usage.get("output_tokens") or 0) >= ceiling
            except (TypeError, ValueError):
                return False
        return False


def _convenience_text(body: Dict[str, Any]) -> str:
    value = body.get("output_text")
    if isinstance(value, list):
        return "".join(v for v in value if isinstance(v, str))
    return value if isinstance(value, str) else ""


def _chat_completion_text(body: Dict[str, Any]) -> str:
    choices = body.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message")
    if isinstance(message, dict) and isinstance(message.get("content"), str):
        return message["content"]
    return ""


def _content_texts(content: Any) -> List[str]:
    if isinstance(content, str):
        return [content]
    if not isinstance(content, list):
        return []
    return [item["text"] for item in content if isinstance(item, dict) and isinstance(item.get("text"), str)]


def _collect_auxiliary(chunks: List[Dict[str, Any]]) -> Tuple[List[str], List[Dict[str, Any]]]:
    reasoning: List[str] = []
    function_calls: List[Dict[str, Any]] = []
    for chunk in chunks:
        kind = chunk.get("type")
        if kind == "reasoning":
            reasoning.extend(_content_texts(chunk.get("summary")))
            reasoning.extend(_content_texts(chunk.get("content")))
            if isinstance(chunk.get("text"), str):
                reasoning.append(chunk["text"])
        elif kind == "function_call":
            function_calls.append(
                {key: chunk.get(key) for key in ("id", "call_id", "name", "arguments") if key in chunk}
            )
    return reasoning, function_calls


# ----------------------------------------------------------------------
# Multi-format extraction
# ----------------------------------------------------------------------


def looks_like_sse(text: str) -> bool:
    return bool(_SSE_SYNTAX.search(text or ""))


def _try_json(text: str) -> Tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return False, None


def extract_json(body: str, parser: Optional[ResponseParser] = None) -> Any:
    """Decode a response body that may not be clean JSON.

    Strategies, in order:
        1. The whole body as JSON
        2. A fenced ```json block
        3. A server-sent event transcript, assembled into a ResponseEnvelope
        4. The greedy outermost ``{...}`` span

    Args:
        body: Raw response text
        parser: Parser used to finalize SSE transcripts

    Returns:
        The decoded JSON value, or a ResponseEnvelope for SSE bodies

    Raises:
        ParseError: If no strategy succeeds
    """
    text = (body or "").strip().lstrip("\ufeff").strip()
    if not text:
        raise ParseError("Empty response body")

    ok, decoded = _try_json(text)
    if ok:
        return decoded

    fenced = _FENCED_BLOCK.search(text)
    if fenced:
        ok, decoded = _try_json(fenced.group(1))
        if ok:
            return decoded

    # An event transcript holds JSON objects too; assemble it before the
    # greedy span can pick out a single event
    if looks_like_sse(text):
        from business_case_ai.core.llm.stream import StreamAssembler

        assembler = StreamAssembler(parser=parser)
        assembler.consume(text.encode("utf-8"))
        try:
            return assembler.finalize()
        except ParseError:
            logger.debug("Event-stream syntax carried no content; trying the outermost object")

    span = _OUTERMOST_OBJECT.search(text)
    if span:
        ok, decoded = _try_json(span.group(0))
        if ok:
            return decoded

    logger.debug("No JSON found in response body (%d chars)", len(text))
    raise ParseError("Response body is not JSON, fenced JSON, or an event stream")


def extract_content(decoded: Dict[str, Any]) -> Optional[str]:
    """Pull the model's text out of a provider envelope.

    Tries ``choices[0].message.content``, then the first ``output`` message
    text, then ``output_text``. Returns None if the body has none of these.
    """
    text = _chat_completion_text(decoded)
    if text:
        return text
    output = decoded.get("output")
    if isinstance(output, list):
        for chunk in output:
            if isinstance(chunk, dict) and chunk.get("type") == "message":
                texts = _content_texts(chunk.get("content"))
                if texts:
                    return texts[0]
    text = _convenience_text(decoded)
    return text or None


def process_response(raw: str, parser: Optional[ResponseParser] = None) -> Dict[str, Any]:
    """Decode a raw response into the JSON object the model produced.

    Provider envelopes are unwrapped and JSON-looking content strings are
    decoded with the same multi-format chain.

    Raises:
        ParseError: If the result is not a JSON object
    """
    decoded = extract_json(raw, parser)

    if isinstance(decoded, ResponseEnvelope):
        content: Any = decoded.output_text
    elif isinstance(decoded, dict):
        content = extract_content(decoded)
        if content is None:
            return decoded
    else:
        raise ParseError(f"Expected a JSON object, got {type(decoded).__name__}")

    if isinstance(content, str):
        if not content.strip():
            raise ParseError("Response contained no content")
        content = extract_json(content, parser)
    if not isinstance(content, dict):
        raise ParseError(f"Expected a JSON object, got {type(content).__name__}")
    return content


def _sanitize_numbers(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _sanitize_numbers(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_sanitize_numbers(v) for v in value]
    if isinstance(value, str) and _NUMERIC.match(value.strip().replace(",", "")):
        return float(value.strip().replace(",", ""))
    return value


def parse_business_case(content: Any, parser: Optional[ResponseParser] = None) -> Dict[str, Any]:
    """Validate a comprehensive business-case analysis.

    Args:
        content: Decoded analysis dict, or raw text to run through
            ``process_response``

    Returns:
        The analysis with numeric strings in ``financial_analysis`` cast to float

    Raises:
        ParseError: If the payload is not an object or sections are missing
    """
    if isinstance(content, str):
        content = process_response(content, parser)
    if not isinstance(content, dict):
        raise ParseError("Business case analysis must be a JSON object")

    missing = [section for section in BUSINESS_CASE_SECTIONS if section not in content]
    if missing:
        raise ParseError(f"Business case analysis missing sections: {', '.join(missing)}")

    result = dict(content)
    result["financial_analysis"] = _sanitize_numbers(result["financial_analysis"])
    return result
