"""Tests for TransportClient.call_with_retry against a mocked HTTP layer."""

import json

import httpx
import pytest

from conftest import TEST_API_KEY, FakeClock, text_stream

from business_case_ai.config import DictConfigProvider
from business_case_ai.core.errors import (
    ConfigurationError,
    HTTPStatusError,
    ParseError,
    RateLimitError,
    TransportError,
    TransportTimeoutError,
    ValidationError,
)
from business_case_ai.core.llm import LLMRequest

LONG_TEXT = "Automating reconciliation frees about 500 treasury hours a year."
SSE_HEADERS = {"content-type": "text/event-stream"}


@pytest.fixture
def request_obj():
    return LLMRequest(
        model="gpt-5-mini",
        instructions="You are a treasury consultant.",
        input="Analyze Acme Corp",
        max_output_tokens=8000,
    )


def _ok(request):
    return httpx.Response(200, content=text_stream(LONG_TEXT), headers=SSE_HEADERS)


class TestSuccess:
    """Single-attempt calls."""

    def test_streamed_response(self, make_transport, request_obj):
        """A streamed body is assembled into the envelope."""
        seen = []

        def handler(request):
            seen.append(request)
            return _ok(request)

        client = make_transport(handler)
        envelope = client.call_with_retry(None, request_obj)

        assert envelope.output_text == LONG_TEXT
        assert len(seen) == 1
        assert seen[0].url == "https://api.openai.com/v1/responses"
        assert seen[0].headers["Authorization"] == f"Bearer {TEST_API_KEY}"
        body = json.loads(seen[0].content)
        assert body["input"] == "Analyze Acme Corp"
        assert body["stream"] is True
        assert client.sleeps == []
        assert client.last_envelope is envelope

    def test_buffered_json_response(self, make_transport, request_obj):
        """A plain JSON body is parsed without streaming."""
        def handler(request):
            return httpx.Response(200, json={"output_text": LONG_TEXT, "status": "completed"})

        client = make_transport(handler)
        envelope = client.call_with_retry(None, request_obj.with_overrides(stream=False))
        assert envelope.output_text == LONG_TEXT

    def test_buffered_single_event_transcript(self, make_transport, request_obj):
        """An event transcript served as plain text yields the completed response's text."""
        body = (
            'data: {"type":"response.completed","response":{"output_text":"' + LONG_TEXT + '"}}\n\n'
            "data: [DONE]\n\n"
        )

        def handler(request):
            return httpx.Response(200, content=body.encode("utf-8"), headers={"content-type": "text/plain"})

        client = make_transport(handler)
        envelope = client.call_with_retry(None, request_obj.with_overrides(stream=False))
        assert envelope.output_text == LONG_TEXT

    def test_model_and_token_overrides(self, make_transport, request_obj):
        """Explicit model and token arguments override the request."""
        payloads = []

        def handler(request):
            payloads.append(json.loads(request.content))
            return _ok(request)

        client = make_transport(handler)
        client.call_with_retry("gpt-5", request_obj, max_output_tokens=1000)
        assert payloads[0]["model"] == "gpt-5"
        assert payloads[0]["max_output_tokens"] == 1000

    def test_trivial_reply_returns_empty_envelope(self, make_transport, request_obj):
        """A 'pong' stream is not an error; the envelope is just empty."""

        def handler(request):
            return httpx.Response(200, content=text_stream("pong"), headers=SSE_HEADERS)

        envelope = make_transport(handler).call_with_retry(None, request_obj)
        assert envelope.is_empty

    def test_hooks_notified(self, make_transport, request_obj):
        """request_sent and response_received fire once per successful call."""
        client = make_transport(_ok)
        sent, received = [], []
        client.hooks.on_request_sent(lambda req, attempt: sent.append((req.model, attempt)))
        client.hooks.on_response_received(lambda env, attempt: received.append(attempt))

        client.call_with_retry(None, request_obj)
        assert sent == [("gpt-5-mini", 1)]
        assert received == [1]


class TestRetries:
    """Retry classification and request shaping."""

    def test_rate_limit_then_success(self, make_transport, request_obj):
        """A 429 followed by a 200 returns the second envelope after one sleep."""
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(429, json={"error": {"message": "Rate limit reached"}}, headers={"Retry-After": "1"})
            return _ok(request)

        client = make_transport(handler)
        envelope = client.call_with_retry(None, request_obj)

        assert envelope.output_text == LONG_TEXT
        assert len(calls) == 2
        assert len(client.sleeps) == 1
        assert client.sleeps[0] >= 1
        assert [record.outcome for record in client.attempt_log] == ["error", "success"]

    def test_server_errors_shrink_tokens_and_grow_timeout(self, make_transport, request_obj):
        """Each retry asks for fewer tokens with a longer timeout."""
        payloads = []

        def handler(request):
            payloads.append(json.loads(request.content))
            return httpx.Response(503, json={"error": {"message": "overloaded"}})

        client = make_transport(handler)
        with pytest.raises(HTTPStatusError) as exc_info:
            client.call_with_retry(None, request_obj)

        assert exc_info.value.status_code == 503
        tokens = [p["max_output_tokens"] for p in payloads]
        assert tokens == [8000, 7200, 6480]
        assert len(client.sleeps) == 2

    def test_client_error_not_retried(self, make_transport, request_obj):
        """A 400 is raised after one attempt."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(400, json={"error": {"message": "Unsupported parameter"}})

        client = make_transport(handler)
        with pytest.raises(HTTPStatusError) as exc_info:
            client.call_with_retry(None, request_obj)
        assert exc_info.value.status_code == 400
        assert not exc_info.value.retryable
        assert len(calls) == 1
        assert client.sleeps == []

    def test_connection_errors_exhaust_attempts(self, make_transport, request_obj):
        """Connection failures are retried until attempts run out."""
        def handler(request):
            raise httpx.ConnectError(f"refused while sending api_key={TEST_API_KEY}", request=request)

        client = make_transport(handler)
        with pytest.raises(TransportError) as exc_info:
            client.call_with_retry(None, request_obj)
        assert TEST_API_KEY not in str(exc_info.value)
        assert len(client.attempt_log) == 3

    def test_max_retries_override(self, make_transport, request_obj):
        """max_retries limits the attempt count."""
        def handler(request):
            return httpx.Response(500, text="internal")

        client = make_transport(handler)
        with pytest.raises(HTTPStatusError):
            client.call_with_retry(None, request_obj, max_retries=1)
        assert len(client.attempt_log) == 1

    def test_rate_limit_error_type(self, make_transport, request_obj):
        """A final 429 is raised as RateLimitError."""
        def handler(request):
            return httpx.Response(429, json={"error": "slow down"}, headers={"Retry-After": "2"})

        client = make_transport(handler)
        with pytest.raises(RateLimitError) as exc_info:
            client.call_with_retry(None, request_obj)
        assert exc_info.value.retry_after == 2.0

    def test_error_message_redacted(self, make_transport, request_obj):
        """Secrets in error bodies are redacted."""
        def handler(request):
            return httpx.Response(401, json={"error": {"message": f"Incorrect API key provided: {TEST_API_KEY}"}})

        with pytest.raises(HTTPStatusError) as exc_info:
            make_transport(handler).call_with_retry(None, request_obj)
        assert TEST_API_KEY not in exc_info.value.message

    def test_unparseable_body_not_retried(self, make_transport, request_obj):
        """A body with no usable content fails without retrying."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, text="pong")

        with pytest.raises(ParseError):
            make_transport(handler).call_with_retry(None, request_obj)
        assert len(calls) == 1


class TestBudget:
    """Wall-clock budget enforcement with a controlled clock."""

    def test_attempts_fit_remaining_budget(self, make_transport, request_obj):
        """No attempt's timeout reaches past the budget."""
        clock = FakeClock()
        starts = []

        def handler(request):
            clock.advance(25)
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_transport(handler, clock=clock, sleep_func=clock.advance)
        client.hooks.on_request_sent(lambda req, attempt: starts.append(clock.now))

        with pytest.raises(TransportTimeoutError):
            client.call_with_retry(None, request_obj)

        budget = 60
        assert len(starts) == 3
        for start, record in zip(starts, client.attempt_log):
            assert start + record.timeout <= budget + 1e-6
        # Overrun is bounded by the single in-flight attempt
        assert clock.now <= budget + 25
        tokens = [record.max_output_tokens for record in client.attempt_log]
        assert tokens == sorted(tokens, reverse=True)

    def test_exhausted_budget_stops_retrying(self, make_transport, request_obj):
        """No attempt starts once the budget is spent."""
        clock = FakeClock()

        def handler(request):
            clock.advance(70)
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_transport(handler, clock=clock, sleep_func=clock.advance)
        with pytest.raises(TransportTimeoutError):
            client.call_with_retry(None, request_obj)
        assert len(client.attempt_log) == 1
        assert client.sleeps == []


class TestPreconditions:
    """Configuration and input failures are raised before any HTTP call."""

    def _never(self, request):
        raise AssertionError("HTTP must not be called")

    def test_ai_disabled(self, make_transport, settings, request_obj):
        """Disabled AI is rejected before any request."""
        config = DictConfigProvider({"ai_enabled": False}, fallback=settings)
        with pytest.raises(ConfigurationError) as exc_info:
            make_transport(self._never, config=config).call_with_retry(None, request_obj)
        assert exc_info.value.code == "ai_disabled"

    def test_missing_api_key(self, make_transport, settings, request_obj):
        """A missing API key is rejected before any request."""
        config = DictConfigProvider({"api_key": ""}, fallback=settings)
        with pytest.raises(ConfigurationError) as exc_info:
            make_transport(self._never, config=config).call_with_retry(None, request_obj)
        assert exc_info.value.code == "no_api_key"

    def test_empty_prompt(self, make_transport, request_obj):
        """A blank prompt is rejected before any request."""
        with pytest.raises(ValidationError):
            make_transport(self._never).call_with_retry(None, request_obj.with_overrides(input="   "))
