"""HTTP transport for the Responses API with retry, backoff and budgets.

One logical call makes up to three attempts. Every attempt runs inside a
wall-clock budget of ``max(timeout, max_retry_time)``. A retried attempt asks
for 10% fewer output tokens and gets a longer timeout than the previous one.
Streamed bodies are consumed incrementally through ``StreamAssembler``.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import httpx

from business_case_ai.config.decorators import log_call
from business_case_ai.config.parsing import _parse_bool
from business_case_ai.config.provider import ConfigProvider
from business_case_ai.core.errors import (
    BusinessCaseError,
    ConfigurationError,
    HTTPStatusError,
    RateLimitError,
    TransportError,
    TransportTimeoutError,
    ValidationError,
)
from business_case_ai.core.llm.capabilities import clamp_tokens
from business_case_ai.core.llm.hooks import TransportHooks
from business_case_ai.core.llm.models import LLMRequest, ResponseEnvelope
from business_case_ai.core.llm.parser import ResponseParser, extract_json
from business_case_ai.core.llm.retry import RetryPolicy, SleepFunc, classify_error
from business_case_ai.core.llm.shared import extract_error_message, parse_retry_after, redact_secrets
from business_case_ai.core.llm.stream import StreamAssembler

logger = logging.getLogger(__name__)

PROVIDER_NAME = "openai"
DEFAULT_BASE_URL = "https://api.openai.com/v1"


@dataclass
class AttemptRecord:
    """Diagnostics for one HTTP attempt."""

    attempt: int
    max_output_tokens: int
    timeout: float
    outcome: str
    status_code: Optional[int] = None
    error: Optional[str] = None
    duration: float = 0.0


class TransportClient:
    """Sends ``LLMRequest`` objects to the provider.

    Collaborators are injected so tests can run without a network or real
    sleeping:

        client = TransportClient(
            settings,
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
            sleep_func=sleeps.append,
            rng=random.Random(0),
        )

    Attributes:
        parser: Parser used for buffered bodies and stream finalization
        hooks: Event bus notified of requests, responses and retries
        last_request: Request sent by the most recent attempt
        last_envelope: Envelope returned by the most recent successful call
        attempt_log: One ``AttemptRecord`` per attempt of the latest call
        sleeps: Backoff delays scheduled during the latest call
    """

    def __init__(
        self,
        config: ConfigProvider,
        *,
        http_client: Optional[httpx.Client] = None,
        parser: Optional[ResponseParser] = None,
        hooks: Optional[TransportHooks] = None,
        sleep_func: Optional[SleepFunc] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._config = config
        self._http_client = http_client
        self._owns_client = http_client is None
        self.parser = parser or ResponseParser.from_config(config)
        self.hooks = hooks or TransportHooks()
        self._sleep: SleepFunc = sleep_func or time.sleep
        self._rng = rng or random.Random()
        self._clock = clock or time.monotonic

        self.last_request: Optional[LLMRequest] = None
        self.last_envelope: Optional[ResponseEnvelope] = None
        self.attempt_log: List[AttemptRecord] = []
        self.sleeps: List[float] = []

    @property
    def endpoint(self) -> str:
        base_url = str(self._config.get("base_url") or DEFAULT_BASE_URL)
        return f"{base_url.rstrip('/')}/responses"

    def close(self) -> None:
        if self._owns_client and self._http_client is not None:
            self._http_client.close()
            self._http_client = None

    def __enter__(self) -> "TransportClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _client(self) -> httpx.Client:
        if self._http_client is None:
            self._http_client = httpx.Client()
        return self._http_client

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @log_call()
    def call_with_retry(
        self,
        model: Optional[str],
        request: LLMRequest,
        max_output_tokens: Optional[int] = None,
        max_retries: Optional[int] = None,
    ) -> ResponseEnvelope:
        """Send *request*, retrying transient failures within the budget.

        Args:
            model: Model override (default: the request's model)
            request: Request to send
            max_output_tokens: Token ceiling override for the first attempt
            max_retries: Attempt count override (capped at 3)

        Returns:
            ResponseEnvelope from the first successful attempt. Its
            ``output_text`` is empty when the reply was trivial.

        Raises:
            ConfigurationError: AI disabled or no credentials (never retried)
            ValidationError: Empty input (never retried)
            HTTPStatusError: Fatal 4xx, or the last retryable status
            TransportError: Last connection failure or timeout
            ParseError: The body held no usable content
        """
        self._check_preconditions(request)

        policy = RetryPolicy.from_config(self._config)
        attempts = policy.attempts(max_retries)
        budget = policy.max_retry_time
        current_tokens = clamp_tokens(max_output_tokens or request.max_output_tokens, policy.min_tokens)
        current_timeout = min(policy.base_timeout, budget)
        request = request.with_overrides(model=model or request.model)

        self.attempt_log = []
        self.sleeps = []
        last_error: Optional[BusinessCaseError] = None
        start = self._clock()

        for attempt in range(1, attempts + 1):
            remaining = budget - (self._clock() - start)
            if remaining <= 0:
                logger.warning("Retry budget of %.1fs exhausted before attempt %d", budget, attempt)
                break

            attempt_timeout = min(current_timeout, remaining)
            attempt_request = request.with_overrides(max_output_tokens=current_tokens)
            self.last_request = attempt_request
            self.hooks.emit_request_sent(attempt_request, attempt)

            attempt_start = self._clock()
            try:
                envelope = self._send(attempt_request, attempt_timeout)
            except BusinessCaseError as exc:
                last_error = exc
                self.attempt_log.append(
                    AttemptRecord(
                        attempt=attempt,
                        max_output_tokens=current_tokens,
                        timeout=attempt_timeout,
                        outcome="error",
                        status_code=getattr(exc, "status_code", None),
                        error=str(exc),
                        duration=self._clock() - attempt_start,
                    )
                )
                classification = classify_error(exc)
                if not classification.retryable:
                    logger.error("Attempt %d failed with non-retryable error: %s", attempt, exc)
                    raise
                if attempt == attempts:
                    break

                remaining = budget - (self._clock() - start)
                if remaining <= 0:
                    break
                delay = policy.backoff_delay(attempt, remaining, self._rng, classification.backoff_seconds)
                current_tokens = policy.next_tokens(current_tokens)
                current_timeout = policy.next_timeout(current_timeout)
                logger.warning(
                    "Attempt %d/%d failed (%s); retrying in %.2fs with %d tokens and %.0fs timeout",
                    attempt,
                    attempts,
                    classification.error_type.value,
                    delay,
                    current_tokens,
                    current_timeout,
                )
                self.hooks.emit_retry_scheduled(attempt, delay, exc)
                self.sleeps.append(delay)
                self._sleep(delay)
                continue

            self.attempt_log.append(
                AttemptRecord(
                    attempt=attempt,
                    max_output_tokens=current_tokens,
                    timeout=attempt_timeout,
                    outcome="success",
                    status_code=200,
                    duration=self._clock() - attempt_start,
                )
            )
            self.last_envelope = envelope
            self.hooks.emit_response_received(envelope, attempt)
            return envelope

        if last_error is None:
            last_error = TransportTimeoutError(
                f"Retry budget of {budget:.1f}s exhausted", provider=PROVIDER_NAME, timeout=budget
            )
        raise last_error

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_preconditions(self, request: LLMRequest) -> None:
        if not _parse_bool(self._config.get("ai_enabled", True)):
            raise ConfigurationError("AI features are disabled", code="ai_disabled")
        if not self._config.get("api_key"):
            raise ConfigurationError("LLM API key not configured", code="no_api_key")
        if not (request.input or "").strip():
            raise ValidationError("Prompt cannot be empty", code="empty_prompt")

    def _headers(self, stream: bool) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._config.get('api_key')}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream" if stream else "application/json",
        }

    def _send(self, request: LLMRequest, timeout: float) -> ResponseEnvelope:
        try:
            with self._client().stream(
                "POST",
                self.endpoint,
                json=request.to_payload(),
                headers=self._headers(request.stream),
                timeout=timeout,
            ) as response:
                if response.status_code >= 400:
                    response.read()
                    raise self._status_error(response)

                content_type = response.headers.get("content-type", "")
                if request.stream or "text/event-stream" in content_type:
                    assembler = StreamAssembler(self.parser, request.max_output_tokens)
                    for chunk in response.iter_bytes():
                        assembler.consume(chunk)
                    envelope = assembler.finalize()
                else:
                    response.read()
                    envelope = self._parse_buffered(response.text, request.max_output_tokens)
        except httpx.TimeoutException as exc:
            raise TransportTimeoutError(
                f"Request timed out after {timeout:.1f}s",
                provider=PROVIDER_NAME,
                timeout=timeout,
            ) from exc
        except httpx.TransportError as exc:
            raise TransportError(
                f"Connection to provider failed: {redact_secrets(str(exc))}",
                provider=PROVIDER_NAME,
            ) from exc

        return self.parser.screen(envelope)

    def _parse_buffered(self, body: str, max_output_tokens: int) -> ResponseEnvelope:
        decoded = extract_json(body, self.parser)
        if isinstance(decoded, ResponseEnvelope):
            return decoded
        return self.parser.parse(decoded, max_output_tokens)

    def _status_error(self, response: httpx.Response) -> HTTPStatusError:
        message = extract_error_message(response)
        if response.status_code == 429:
            return RateLimitError(
                message,
                provider=PROVIDER_NAME,
                retry_after=parse_retry_after(response),
            )
        return HTTPStatusError(message, status_code=response.status_code, provider=PROVIDER_NAME)
