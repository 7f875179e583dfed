"""Assembles provider-agnostic requests from chat history."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from business_case_ai.config.provider import ConfigProvider
from business_case_ai.core.llm.capabilities import (
    clamp_tokens,
    supports_reasoning,
    supports_temperature,
    tokens_for_report,
)
from business_case_ai.core.llm.models import LLMRequest, Message

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a senior treasury technology consultant. Provide detailed, research-driven "
    "analysis in the exact JSON format requested. Do not include any text outside the "
    "JSON structure."
)


class RequestBuilder:
    """Builds ``LLMRequest`` objects using configured model defaults.

    Example:
        builder = RequestBuilder(settings)
        request = builder.build([{"role": "user", "content": "Analyze ACME"}])
    """

    def __init__(self, config: ConfigProvider) -> None:
        self._config = config

    def build(
        self,
        history: Iterable[Any],
        system_prompt: Optional[str] = None,
        *,
        model: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
        stream: bool = True,
    ) -> LLMRequest:
        """Build a request from chat history.

        All ``user`` messages are joined one per line into ``input``.
        Malformed entries are skipped; this never raises.

        Args:
            history: Sequence of ``{"role", "content"}`` mappings or ``Message``
            system_prompt: Instructions; defaults to the consultant prompt
            model: Model override (default: configured model)
            max_output_tokens: Token ceiling override (default: configured)
            stream: Request a server-sent event stream

        Returns:
            A fully populated ``LLMRequest``
        """
        lines = []
        skipped = 0
        for entry in history or []:
            message = Message.from_dict(entry)
            if message is None:
                skipped += 1
                continue
            if message.role == "user":
                lines.append(message.content)
        if skipped:
            logger.debug("Skipped %d malformed history entries", skipped)

        model_name = model or self._config.get("model", "gpt-5-mini")
        min_tokens = int(self._config.get("min_output_tokens", 1))
        tokens = max_output_tokens or int(self._config.get("max_output_tokens", 8000))

        temperature = None
        if supports_temperature(model_name):
            temperature = self._config.get("temperature")

        reasoning_effort = None
        text_verbosity = None
        if supports_reasoning(model_name):
            reasoning_effort = self._config.get("reasoning_effort")
            text_verbosity = self._config.get("text_verbosity")

        return LLMRequest(
            model=model_name,
            instructions=(system_prompt or DEFAULT_SYSTEM_PROMPT).strip(),
            input="\n".join(lines).strip(),
            max_output_tokens=clamp_tokens(tokens, min_tokens),
            temperature=temperature,
            stream=stream,
            reasoning_effort=reasoning_effort,
            text_verbosity=text_verbosity,
        )

    def build_for_report(
        self,
        prompt: str,
        report_type: str,
        system_prompt: Optional[str] = None,
        **kwargs: Any,
    ) -> LLMRequest:
        """Build a single-prompt request sized for a report section.

        The word-target estimate never exceeds the configured
        ``max_output_tokens``.
        """
        min_tokens = int(self._config.get("min_output_tokens", 1))
        max_tokens = self._config.get("max_output_tokens")
        return self.build(
            [{"role": "user", "content": prompt}],
            system_prompt,
            max_output_tokens=tokens_for_report(
                report_type, min_tokens, int(max_tokens) if max_tokens else None
            ),
            **kwargs,
        )
