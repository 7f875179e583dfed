"""Tests for ResponseParser and the multi-format extraction helpers."""

import json

import pytest

from business_case_ai.core.errors import ParseError
from business_case_ai.core.llm import (
    ResponseEnvelope,
    ResponseParser,
    extract_content,
    extract_json,
    parse_business_case,
    process_response,
)
from business_case_ai.core.llm.parser import BUSINESS_CASE_SECTIONS

LONG_TEXT = "Treasury automation would save roughly 900 hours per year."


@pytest.fixture
def parser():
    return ResponseParser()


class TestTrivialFilter:
    """Short or canned replies are never passed through."""

    @pytest.mark.parametrize(
        "text",
        [
            "pong",
            "  PONG  ",
            "",
            "short reply",
            "Hello! How can I help you with your treasury today?",
            "Sure thing. pong pong pong pong pong pong",
        ],
    )
    def test_trivial_texts_rejected(self, parser, text):
        """Trivial text yields an empty string."""
        assert parser.filter_text(text) == ""
        assert parser.is_trivial(text) is True

    def test_substantive_text_kept(self, parser):
        """Text above the length floor without trivial phrases passes through."""
        assert parser.filter_text(f"  {LONG_TEXT}  ") == LONG_TEXT

    def test_custom_phrases(self):
        """Configured phrases replace the defaults."""
        custom = ResponseParser(trivial_phrases=["as an ai"], min_length=5)
        assert custom.is_trivial("As an AI model I cannot do that") is True
        assert custom.is_trivial("pong and more words") is False

    def test_screen_blanks_trivial_envelope(self, parser):
        """screen() empties output_text when it is trivial."""
        envelope = parser.screen(ResponseEnvelope(output_text="pong"))
        assert envelope.is_empty

    def test_non_string_rejected(self, parser):
        """Non-string values filter to an empty string."""
        assert parser.filter_text(None) == ""
        assert parser.filter_text(42) == ""


class TestParse:
    """Extraction priority over decoded bodies."""

    def test_convenience_field_first(self, parser):
        """output_text wins over message chunks in output[]."""
        body = {
            "output_text": LONG_TEXT,
            "output": [{"type": "message", "content": [{"type": "output_text", "text": "Other message text here."}]}],
        }
        assert parser.parse(body).output_text == LONG_TEXT

    def test_trivial_convenience_falls_through_to_messages(self, parser):
        """A trivial output_text does not block a real message chunk."""
        body = {
            "output_text": "pong",
            "output": [
                {"type": "message", "content": [{"type": "output_text", "text": "pong"}]},
                {"type": "message", "content": [{"type": "output_text", "text": LONG_TEXT}]},
            ],
        }
        assert parser.parse(body).output_text == LONG_TEXT

    def test_pong_body_is_empty(self, parser):
        """A 'pong' reply parses to an empty envelope."""
        assert parser.parse({"output_text": "pong"}).is_empty
        assert parser.parse("pong").is_empty

    def test_reasoning_and_function_calls_collected(self, parser):
        """Reasoning texts and function calls are gathered from output[]."""
        body = {
            "output": [
                {"type": "reasoning", "summary": [{"type": "summary_text", "text": "Weighing options"}]},
                {"type": "function_call", "id": "fc_1", "name": "lookup", "arguments": "{}"},
                {"type": "message", "content": [{"type": "output_text", "text": LONG_TEXT}]},
            ]
        }
        envelope = parser.parse(body)
        assert envelope.reasoning == ["Weighing options"]
        assert envelope.function_calls == [{"id": "fc_1", "name": "lookup", "arguments": "{}"}]
        assert envelope.output_text == LONG_TEXT

    def test_chat_completion_shape(self, parser):
        """choices[0].message.content is used when no Responses fields exist."""
        body = {"choices": [{"message": {"role": "assistant", "content": LONG_TEXT}}]}
        assert parser.parse(body).output_text == LONG_TEXT

    def test_incomplete_status_flags_truncation(self, parser):
        """status=incomplete marks the envelope truncated."""
        envelope = parser.parse({"status": "incomplete", "output_text": LONG_TEXT})
        assert envelope.truncated is True
        assert envelope.output_text == LONG_TEXT

    def test_usage_at_ceiling_flags_truncation(self, parser):
        """Output tokens reaching the ceiling mark the envelope truncated."""
        body = {"output_text": LONG_TEXT, "usage": {"output_tokens": 500}}
        assert parser.parse(body, max_output_tokens=500).truncated is True
        assert parser.parse(body, max_output_tokens=501).truncated is False

    def test_store_raw_disabled(self):
        """raw is left empty when store_raw is off."""
        envelope = ResponseParser(store_raw=False).parse({"output_text": LONG_TEXT})
        assert envelope.raw == {}


class TestExtractJson:
    """The fallback chain for bodies that are not clean JSON."""

    def test_plain_json(self):
        """A clean JSON body decodes directly."""
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_byte_order_mark(self):
        """A leading BOM is ignored."""
        assert extract_json('\ufeff{"a": 1}') == {"a": 1}

    def test_fenced_block(self):
        """A fenced json block inside prose is decoded."""
        body = 'Here is the result:\n```json\n{"a": [1, 2]}\n```\nThanks.'
        assert extract_json(body) == {"a": [1, 2]}

    def test_outermost_object(self):
        """The outermost braces are decoded when surrounded by prose."""
        body = 'The analysis follows {"a": {"b": 2}} as requested.'
        assert extract_json(body) == {"a": {"b": 2}}

    def test_event_stream(self):
        """An SSE transcript is assembled into an envelope."""
        body = 'data: {"type":"response.output_text.delta","delta":"' + LONG_TEXT + '"}\n\ndata: [DONE]\n\n'
        result = extract_json(body)
        assert isinstance(result, ResponseEnvelope)
        assert result.output_text == LONG_TEXT

    def test_single_completed_event(self):
        """A one-event transcript is assembled rather than returned as the raw event."""
        body = (
            'data: {"type":"response.completed","response":{"output_text":"' + LONG_TEXT + '"}}\n\n'
            "data: [DONE]\n\n"
        )
        result = extract_json(body)
        assert isinstance(result, ResponseEnvelope)
        assert result.output_text == LONG_TEXT

    @pytest.mark.parametrize("body", ["", "   ", "no json here", "{broken"])
    def test_failure_raises(self, body):
        """Bodies matching no strategy raise ParseError."""
        with pytest.raises(ParseError):
            extract_json(body)


class TestProcessResponse:
    """Unwrapping provider envelopes into the model's JSON object."""

    def test_chat_envelope_with_fenced_content(self):
        """Fenced JSON inside a chat completion is unwrapped."""
        raw = json.dumps({"choices": [{"message": {"content": '```json\n{"company_profile": {}}\n```'}}]})
        assert process_response(raw) == {"company_profile": {}}

    def test_responses_envelope(self):
        """Message text from output[] is decoded into the model's object."""
        raw = json.dumps(
            {"output": [{"type": "message", "content": [{"type": "output_text", "text": '{"score": 3}'}]}]}
        )
        assert process_response(raw) == {"score": 3}

    def test_bare_object_returned(self):
        """An object that is not a provider envelope is returned as is."""
        assert process_response('{"company_profile": {"name": "Acme"}}') == {"company_profile": {"name": "Acme"}}

    def test_non_object_rejected(self):
        """A JSON array raises ParseError."""
        with pytest.raises(ParseError):
            process_response("[1, 2, 3]")

    def test_extract_content_none_for_plain_object(self):
        """extract_content returns None without provider fields."""
        assert extract_content({"company_profile": {}}) is None


class TestParseBusinessCase:
    """Section validation for the comprehensive analysis."""

    def _analysis(self, **overrides):
        analysis = {section: {} for section in BUSINESS_CASE_SECTIONS}
        analysis.update(overrides)
        return analysis

    def test_numeric_strings_cast(self):
        """Numeric strings in financial_analysis become floats."""
        analysis = self._analysis(financial_analysis={"npv": "1,250,000", "payback_months": "14.5", "note": "n/a"})
        result = parse_business_case(analysis)
        assert result["financial_analysis"] == {"npv": 1250000.0, "payback_months": 14.5, "note": "n/a"}

    def test_missing_sections_rejected(self):
        """Missing sections are named in the ParseError."""
        analysis = self._analysis()
        del analysis["risk_analysis"]
        with pytest.raises(ParseError, match="risk_analysis"):
            parse_business_case(analysis)

    def test_raw_text_accepted(self):
        """Raw response text is decoded before validation."""
        text = "```json\n" + json.dumps(self._analysis()) + "\n```"
        assert set(BUSINESS_CASE_SECTIONS) <= set(parse_business_case(text))
