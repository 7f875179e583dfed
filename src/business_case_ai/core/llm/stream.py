"""Reassembly of server-sent event streams into a single response.

Chunk boundaries from the HTTP layer need not align with line or UTF-8
boundaries, so bytes are buffered until a full line is available. Feeding the
same bytes in any chunking produces the same envelope.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from business_case_ai.core.errors import ParseError
from business_case_ai.core.llm.models import ResponseEnvelope, StreamEvent, StreamEventKind
from business_case_ai.core.llm.parser import ResponseParser

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"

_GUARD_PREFIX = re.compile(r"^\s*for\s*\(\s*;;\s*\);\s*")

_TERMINAL_TYPES = frozenset({"response.done", "response.completed"})
_TERMINAL_SUFFIXES = (".content_part.done", ".output_text.done")
_TEXT_DELTA_SUFFIXES = (".output_text.delta", ".content_part.delta")
_REASONING_DELTA_TYPES = frozenset(
    {
        "response.reasoning.delta",
        "response.reasoning_text.delta",
        "response.reasoning_summary_text.delta",
    }
)


class StreamAssembler:
    """Accumulates a streamed response chunk by chunk.

    Call ``consume`` for every chunk received, then ``finalize`` once the
    connection closes. Delta text is returned verbatim; the transport applies
    the trivial-response filter afterwards.

    Attributes:
        events: Decoded events in arrival order
    """

    def __init__(
        self,
        parser: Optional[ResponseParser] = None,
        max_output_tokens: Optional[int] = None,
    ) -> None:
        self._parser = parser or ResponseParser()
        self._max_output_tokens = max_output_tokens
        self._buffer = bytearray()
        self._body = bytearray()
        self._first_line = True
        self._event_type: Optional[str] = None
        self._text_parts: List[str] = []
        self._reasoning: List[str] = []
        self._final: Optional[Dict[str, Any]] = None
        self._final_is_response = False
        self._done = False
        self._usage: Optional[Dict[str, Any]] = None
        self.events: List[StreamEvent] = []

    @property
    def done(self) -> bool:
        """True once the ``[DONE]`` sentinel has been seen."""
        return self._done

    def consume(self, chunk: bytes) -> None:
        """Feed one chunk of the response body."""
        if not chunk:
            return
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        self._body.extend(chunk)
        self._buffer.extend(chunk)
        while True:
            newline = self._buffer.find(b"\n")
            if newline < 0:
                break
            line = bytes(self._buffer[:newline])
            del self._buffer[: newline + 1]
            self._process_line(line)

    def finalize(self) -> ResponseEnvelope:
        """Build the envelope from everything consumed so far.

        Prefers the terminal response object, filling in accumulated text and
        reasoning it lacks; otherwise builds from deltas; otherwise parses the
        whole body as JSON.

        Raises:
            ParseError: If the stream carried no usable content
        """
        if self._buffer:
            line = bytes(self._buffer)
            self._buffer.clear()
            self._process_line(line)

        text = "".join(self._text_parts)
        reasoning = list(self._reasoning)

        if self._final is not None:
            envelope = self._parser.parse(self._final, self._max_output_tokens)
            if not envelope.output_text and text:
                envelope.output_text = text
            if not envelope.reasoning and reasoning:
                envelope.reasoning = reasoning
            return envelope

        if text or reasoning:
            return ResponseEnvelope(
                output_text=text,
                reasoning=reasoning,
                raw={"output_text": text} if self._parser.store_raw else {},
                truncated=self._usage_at_ceiling(),
            )

        body = bytes(self._body).decode("utf-8", errors="replace").strip()
        try:
            decoded = json.loads(body)
        except json.JSONDecodeError as exc:
            raise ParseError("Stream ended without any content") from exc
        if not isinstance(decoded, dict):
            raise ParseError("Stream ended without any content")
        return self._parser.parse(decoded, self._max_output_tokens)

    # ------------------------------------------------------------------
    # Line handling
    # ------------------------------------------------------------------

    def _process_line(self, raw: bytes) -> None:
        line = raw.decode("utf-8", errors="replace").rstrip("\r")
        if self._first_line:
            self._first_line = False
            line = _GUARD_PREFIX.sub("", line, count=1)

        if self._done:
            return
        if not line.strip():
            # Blank line ends the current frame
            self._event_type = None
            return
        if line.startswith(":"):
            return
        if line.startswith("event:"):
            self._event_type = line[len("event:") :].strip()
            return
        if not line.startswith("data:"):
            return

        data = line[len("data:") :].strip()
        if data == DONE_SENTINEL:
            self._done = True
            return
        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            logger.debug("Skipping undecodable stream line (%d chars)", len(data))
            return
        if isinstance(payload, dict):
            self._dispatch(payload)

    def _dispatch(self, payload: Dict[str, Any]) -> None:
        event_type = payload.get("type") or self._event_type or ""

        if event_type in _TERMINAL_TYPES or event_type.endswith(_TERMINAL_SUFFIXES):
            self._capture_final(payload)
        elif event_type in _REASONING_DELTA_TYPES:
            text = _delta_text(payload)
            if text:
                self._reasoning.append(text)
                self._record(StreamEvent.reasoning_delta(text))
        elif event_type.endswith(_TEXT_DELTA_SUFFIXES):
            text = _delta_text(payload)
            if text:
                self._text_parts.append(text)
                self._record(StreamEvent.text_delta(text))
        elif isinstance(payload.get("choices"), list):
            self._dispatch_legacy(payload)

        usage = payload.get("usage")
        if not isinstance(usage, dict) and isinstance(payload.get("response"), dict):
            usage = payload["response"].get("usage")
        if isinstance(usage, dict):
            self._usage = usage
            self._record(StreamEvent.usage(usage))

    def _dispatch_legacy(self, payload: Dict[str, Any]) -> None:
        choices = payload["choices"]
        if not choices or not isinstance(choices[0], dict):
            return
        choice = choices[0]
        delta = choice.get("delta")
        if isinstance(delta, dict) and isinstance(delta.get("content"), str) and delta["content"]:
            self._text_parts.append(delta["content"])
            self._record(StreamEvent.text_delta(delta["content"]))
        if isinstance(choice.get("message"), dict):
            self._final = payload
            self._final_is_response = True
            self._record(StreamEvent.done(payload))

    def _capture_final(self, payload: Dict[str, Any]) -> None:
        response = payload.get("response")
        if isinstance(response, dict):
            self._final = response
            self._final_is_response = True
        elif not self._final_is_response:
            # Part-level terminal events carry no full response
            self._final = payload
        self._record(StreamEvent.done(self._final or payload))

    def _usage_at_ceiling(self) -> bool:
        ceiling = self._max_output_tokens or self._parser.max_output_tokens
        if self._usage is None or not ceiling:
            return False
        try:
            return int(self._usage.get("output_tokens") or 0) >= ceiling
        except (TypeError, ValueError):
            return False

    def _record(self, event: StreamEvent) -> None:
        self.events.append(event)
        if event.kind is not StreamEventKind.USAGE:
            logger.debug("Stream event %s", event.kind.value)


def _delta_text(payload: Dict[str, Any]) -> str:
    delta = payload.get("delta")
    if isinstance(delta, str):
        return delta
    if isinstance(delta, dict) and isinstance(delta.get("text"), str):
        return delta["text"]
    return ""
