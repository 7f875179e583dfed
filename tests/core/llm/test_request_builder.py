"""Tests for RequestBuilder and model capabilities."""

import pytest

from business_case_ai.config import DictConfigProvider
from business_case_ai.core.llm import (
    DEFAULT_SYSTEM_PROMPT,
    Message,
    RequestBuilder,
    estimate_tokens,
    supports_reasoning,
    supports_temperature,
    tokens_for_report,
)
from business_case_ai.core.llm.capabilities import MAX_OUTPUT_TOKENS_CEILING, clamp_tokens


@pytest.fixture
def config():
    return DictConfigProvider(
        {
            "model": "gpt-4o",
            "max_output_tokens": 4000,
            "min_output_tokens": 256,
            "temperature": 0.4,
            "reasoning_effort": "low",
            "text_verbosity": "high",
        }
    )


class TestBuild:
    """Request assembly from chat history."""

    def test_user_messages_joined(self, config):
        """Only user contents are kept, one per line."""
        history = [
            {"role": "system", "content": "ignored"},
            {"role": "user", "content": "Analyze Acme"},
            {"role": "assistant", "content": "ok"},
            {"role": "User", "content": "Focus on cash"},
        ]
        request = RequestBuilder(config).build(history)
        assert request.input == "Analyze Acme\nFocus on cash"
        assert request.instructions == DEFAULT_SYSTEM_PROMPT.strip()
        assert request.model == "gpt-4o"
        assert request.stream is True

    def test_malformed_entries_skipped(self, config):
        """Malformed history never raises."""
        history = [
            None,
            "text",
            {"role": "user"},
            {"content": "x"},
            {"role": "user", "content": 5},
            {"role": "user", "content": "kept"},
        ]
        assert RequestBuilder(config).build(history).input == "kept"

    def test_empty_history(self, config):
        """An empty history yields an empty input."""
        assert RequestBuilder(config).build(None).input == ""

    def test_temperature_only_for_supported_models(self, config):
        """temperature is dropped for families that reject it."""
        builder = RequestBuilder(config)
        assert builder.build([], model="gpt-4o").temperature == 0.4
        assert builder.build([], model="gpt-5-mini").temperature is None

    def test_reasoning_options_only_for_reasoning_models(self, config):
        """reasoning and text options appear only for reasoning models."""
        builder = RequestBuilder(config)
        payload = builder.build([{"role": "user", "content": "x"}], model="gpt-5-mini").to_payload()
        assert payload["reasoning"] == {"effort": "low"}
        assert payload["text"] == {"verbosity": "high"}
        assert "reasoning" not in builder.build([], model="gpt-4o").to_payload()

    def test_tokens_clamped(self, config):
        """Token overrides are clamped between the floor and the model ceiling."""
        builder = RequestBuilder(config)
        assert builder.build([], max_output_tokens=10).max_output_tokens == 256
        assert builder.build([], max_output_tokens=10**7).max_output_tokens == MAX_OUTPUT_TOKENS_CEILING

    def test_build_for_report_sizes_tokens(self, config):
        """Report requests get a token ceiling from the word target."""
        request = RequestBuilder(config).build_for_report("Describe Acme", "company_overview", "Be brief")
        assert request.input == "Describe Acme"
        assert request.instructions == "Be brief"
        assert request.max_output_tokens == estimate_tokens(400, 256)

    def test_build_for_report_respects_configured_ceiling(self):
        """A configured max_output_tokens below the word estimate caps report requests."""
        config = DictConfigProvider({"model": "gpt-4o", "max_output_tokens": 1000, "min_output_tokens": 256})
        request = RequestBuilder(config).build_for_report("Write the case", "comprehensive_business_case")
        assert request.max_output_tokens == 1000

    def test_payload_shape(self, config):
        """to_payload omits unset optional fields."""
        payload = RequestBuilder(config).build([{"role": "user", "content": "hi"}], "sys").to_payload()
        assert payload == {
            "model": "gpt-4o",
            "input": "hi",
            "max_output_tokens": 4000,
            "stream": True,
            "instructions": "sys",
            "temperature": 0.4,
        }


class TestCapabilities:
    @pytest.mark.parametrize(
        "model,expected",
        [("gpt-5-mini", False), ("gpt-5-mini-2025-08-07", False), ("gpt-4.1", False), ("gpt-4o", True), ("gpt-4o-mini", True)],
    )
    def test_supports_temperature(self, model, expected):
        """Dated variants inherit their family's temperature rule."""
        assert supports_temperature(model) is expected

    @pytest.mark.parametrize(
        "model,expected",
        [("gpt-5", True), ("o4-mini", True), ("gpt-5-chat-latest", False), ("gpt-4o", False)],
    )
    def test_supports_reasoning(self, model, expected):
        """gpt-5 and o-series models are reasoning models; chat variants are not."""
        assert supports_reasoning(model) is expected

    def test_clamp_and_estimate(self):
        """Word estimates use 1.5 tokens per word with an 800-word default."""
        assert clamp_tokens(0, 100) == 100
        assert estimate_tokens(1000, 1) == 1500
        assert tokens_for_report("unknown_report", 1) == estimate_tokens(800, 1)

    def test_estimate_capped_by_max_tokens(self):
        """An explicit ceiling caps the estimate but never undercuts the floor."""
        assert estimate_tokens(2000, 1, 1000) == 1000
        assert estimate_tokens(100, 1, 1000) == 150
        assert tokens_for_report("comprehensive_business_case", 256, 2000) == 2000
        assert clamp_tokens(5000, 600, 500) == 600

    def test_message_from_dict(self):
        """Roles are normalized and non-dict messages rejected."""
        assert Message.from_dict({"role": " USER ", "content": "x"}) == Message(role="user", content="x")
        assert Message.from_dict(["user", "x"]) is None
