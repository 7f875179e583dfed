"""Data models for LLM requests, responses and stream events.

Requests and envelopes are created per call and discarded; nothing here
persists itself.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Message:
    """A single chat-history entry."""

    role: str
    content: str

    @classmethod
    def from_dict(cls, data: Any) -> Optional["Message"]:
        """Build a message from a mapping, or return None if it is malformed."""
        if isinstance(data, Message):
            return data
        if not isinstance(data, dict):
            return None
        role = data.get("role")
        content = data.get("content")
        if not isinstance(role, str) or not isinstance(content, str):
            return None
        return cls(role=role.strip().lower(), content=content)


@dataclass(frozen=True)
class LLMRequest:
    """Provider-agnostic request for the Responses API.

    Attributes:
        model: Model identifier
        instructions: System prompt
        input: User input text (non-empty once sanitized)
        max_output_tokens: Output token ceiling, already clamped
        temperature: Sampling temperature, None when the model rejects it
        stream: Whether to request a server-sent event stream
        reasoning_effort: Reasoning hint for reasoning-capable models
        text_verbosity: Verbosity hint for reasoning-capable models
    """

    model: str
    instructions: str
    input: str
    max_output_tokens: int
    temperature: Optional[float] = None
    stream: bool = True
    reasoning_effort: Optional[str] = None
    text_verbosity: Optional[str] = None

    def with_overrides(self, **changes: Any) -> "LLMRequest":
        return replace(self, **changes)

    def to_payload(self) -> Dict[str, Any]:
        """Render the outbound JSON body."""
        payload: Dict[str, Any] = {
            "model": self.model,
            "input": self.input,
            "max_output_tokens": self.max_output_tokens,
            "stream": self.stream,
        }
        if self.instructions:
            payload["instructions"] = self.instructions
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.reasoning_effort:
            payload["reasoning"] = {"effort": self.reasoning_effort}
        if self.text_verbosity:
            payload["text"] = {"verbosity": self.text_verbosity}
        return payload


@dataclass
class ResponseEnvelope:
    """Normalized result of one LLM call.

    ``output_text`` is empty when the provider returned nothing usable.
    ``truncated`` is a signal, not an error: partial text may still be used.
    """

    output_text: str = ""
    reasoning: List[str] = field(default_factory=list)
    function_calls: List[Dict[str, Any]] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)
    truncated: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.output_text

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class StreamEventKind(str, Enum):
    """Kinds of events produced while reading a streamed body."""

    TEXT_DELTA = "text_delta"
    REASONING_DELTA = "reasoning_delta"
    USAGE = "usage"
    DONE = "done"


@dataclass(frozen=True)
class StreamEvent:
    """One decoded stream event (a tagged union keyed on ``kind``)."""

    kind: StreamEventKind
    text: Optional[str] = None
    tokens: Optional[Dict[str, Any]] = None
    response: Optional[Dict[str, Any]] = None

    @classmethod
    def text_delta(cls, text: str) -> "StreamEvent":
        return cls(kind=StreamEventKind.TEXT_DELTA, text=text)

    @classmethod
    def reasoning_delta(cls, text: str) -> "StreamEvent":
        return cls(kind=StreamEventKind.REASONING_DELTA, text=text)

    @classmethod
    def usage(cls, tokens: Dict[str, Any]) -> "StreamEvent":
        return cls(kind=StreamEventKind.USAGE, tokens=tokens)

    @classmethod
    def done(cls, response: Dict[str, Any]) -> "StreamEvent":
        return cls(kind=StreamEventKind.DONE, response=response)
