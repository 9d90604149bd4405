"""Tests for the response interpreter."""

import json

import pytest

from conftest import make_response
from genplan.ai_providers.base import FinishReason, SafetyFeedback, SafetyRating
from genplan.execution.errors import ErrorKind, GenerationError
from genplan.execution.interpreter import (
    JSONExtractionError,
    check_safety,
    extract_json,
    interpret,
    interpret_text,
    locate_json,
)

SAMPLE_DOCUMENTS = [
    {"title": "Launch", "steps": [1, 2, 3], "nested": {"ok": True, "none": None}},
    [{"day": 1, "subject": "Welcome"}, {"day": 3, "subject": "Chapter one"}],
    {"text": "Braces } and ] inside strings", "unicode": "café ✓"},
    [],
    {},
]


class TestLocateJson:
    def test_fenced_block_wins_over_surrounding_brackets(self):
        text = 'Note {not json}\n```json\n{"a": 1}\n```\ntrailing ]'
        assert locate_json(text) == '{"a": 1}'

    def test_fence_without_language_tag(self):
        assert locate_json('```\n[1, 2]\n```') == "[1, 2]"

    def test_bracket_scan_uses_first_opening_and_last_closing(self):
        text = 'Here you go: {"a": {"b": 2}} hope that helps'
        assert locate_json(text) == '{"a": {"b": 2}}'

    def test_array_before_object(self):
        text = 'Result: [{"a": 1}] done'
        assert locate_json(text) == '[{"a": 1}]'

    def test_missing_closer_returns_remainder(self):
        assert locate_json('prefix {"a": [1, 2') == '{"a": [1, 2'

    def test_no_candidate(self):
        assert locate_json("just prose, nothing structured") is None


class TestExtractJson:
    @pytest.mark.parametrize("document", SAMPLE_DOCUMENTS)
    def test_fenced_document_round_trips(self, document):
        text = f"```json\n{json.dumps(document, ensure_ascii=False)}\n```"
        assert extract_json(text) == document

    @pytest.mark.parametrize("document", SAMPLE_DOCUMENTS)
    def test_document_with_surrounding_prose(self, document):
        text = f"Sure! Here is the plan:\n{json.dumps(document)}\nLet me know if you need more."
        assert extract_json(text) == document

    def test_prose_without_json_is_malformed(self):
        with pytest.raises(JSONExtractionError) as exc_info:
            extract_json("I cannot help with that.")
        assert exc_info.value.kind is ErrorKind.MALFORMED_OUTPUT
        assert "I cannot help with that." in str(exc_info.value)

    def test_excerpt_is_truncated(self):
        text = "x" * 1000
        with pytest.raises(JSONExtractionError) as exc_info:
            extract_json(text)
        assert "x" * 300 + "..." in str(exc_info.value)
        assert "x" * 301 not in str(exc_info.value)

    @pytest.mark.parametrize(
        "text,expected",
        [
            ('{"title": "X"}\nHope this helps :}', {"title": "X"}),
            ('Here: {"title": "X"} hope this helps :}', {"title": "X"}),
            ('[1, 2] (items 1] and 2])', [1, 2]),
        ],
    )
    def test_trailing_prose_with_closing_bracket(self, text, expected):
        assert extract_json(text) == expected

    def test_unparsable_candidate(self):
        with pytest.raises(JSONExtractionError) as exc_info:
            extract_json('{"a": 1,, }')
        assert str(exc_info.value).startswith("Failed to parse JSON string")


class TestCheckSafety:
    def test_no_feedback(self):
        assert check_safety(make_response("{}")) is None

    def test_feedback_without_block(self):
        response = make_response(
            "{}", safety=SafetyFeedback(ratings=(SafetyRating("HARM_CATEGORY_HARASSMENT", "MEDIUM"),))
        )
        assert check_safety(response) is None

    def test_block_lists_only_ratings_above_low(self):
        feedback = SafetyFeedback(
            block_reason="SAFETY",
            ratings=(
                SafetyRating("HARM_CATEGORY_HARASSMENT", "NEGLIGIBLE"),
                SafetyRating("HARM_CATEGORY_HATE_SPEECH", "LOW"),
                SafetyRating("HARM_CATEGORY_DANGEROUS_CONTENT", "HIGH"),
                SafetyRating("HARM_CATEGORY_SEXUALLY_EXPLICIT", "MEDIUM"),
            ),
        )
        error = check_safety(make_response(None, safety=feedback, candidate_count=0))

        assert error.kind is ErrorKind.SAFETY_BLOCKED
        assert error.categories == (
            "HARM_CATEGORY_DANGEROUS_CONTENT",
            "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        )
        assert "Reason: SAFETY" in error.message
        assert "HARM_CATEGORY_DANGEROUS_CONTENT was rated HIGH" in error.message
        assert "HARM_CATEGORY_HATE_SPEECH" not in error.message


class TestInterpret:
    def test_success(self):
        result = interpret(make_response('{"ok": true}'))
        assert result.ok
        assert result.value == {"ok": True}

    def test_safety_block_never_reaches_extractor(self, monkeypatch):
        def _fail(text):
            raise AssertionError("extractor must not run for blocked responses")

        monkeypatch.setattr("genplan.execution.interpreter.extract_json", _fail)
        feedback = SafetyFeedback(
            block_reason="PROHIBITED_CONTENT",
            ratings=(SafetyRating("HARM_CATEGORY_HARASSMENT", "HIGH"),),
        )
        result = interpret(make_response('{"a": 1}', safety=feedback))

        assert not result.ok
        assert result.kind is ErrorKind.SAFETY_BLOCKED
        assert result.error.categories == ("HARM_CATEGORY_HARASSMENT",)

    def test_no_candidates(self):
        result = interpret(make_response(None, finish_reason=None, candidate_count=0))
        assert result.kind is ErrorKind.EMPTY_RESPONSE
        assert "no candidates" in result.error.message

    def test_empty_text_reports_finish_reason(self):
        result = interpret(make_response("", finish_reason=FinishReason.OTHER))
        assert result.kind is ErrorKind.EMPTY_RESPONSE
        assert "OTHER" in result.error.message

    def test_prose_is_malformed_not_empty_object(self):
        result = interpret(make_response("Sorry, I can't do that."))
        assert not result.ok
        assert result.kind is ErrorKind.MALFORMED_OUTPUT

    def test_max_tokens_with_fragment_is_truncated(self):
        result = interpret(
            make_response('{"plan": {"steps": ["one", "tw', finish_reason=FinishReason.MAX_TOKENS)
        )
        assert result.kind is ErrorKind.TRUNCATED
        assert "too long" in result.error.message

    def test_same_fragment_with_complete_finish_is_malformed(self):
        result = interpret(
            make_response('{"plan": {"steps": ["one", "tw', finish_reason=FinishReason.COMPLETE)
        )
        assert result.kind is ErrorKind.MALFORMED_OUTPUT

    def test_trailing_smiley_does_not_break_extraction(self):
        result = interpret(make_response('{"title": "X"}\nHope this helps :}'))
        assert result.ok
        assert result.value == {"title": "X"}

    def test_max_tokens_with_valid_json_still_succeeds(self):
        result = interpret(make_response('{"a": 1}', finish_reason=FinishReason.MAX_TOKENS))
        assert result.ok
        assert result.value == {"a": 1}

    def test_unwrap_failure_raises_generation_error(self):
        result = interpret(make_response("no json"))
        with pytest.raises(GenerationError) as exc_info:
            result.unwrap()
        assert exc_info.value.kind is ErrorKind.MALFORMED_OUTPUT


class TestInterpretText:
    def test_returns_text(self):
        result = interpret_text(make_response("Try a newsletter swap."))
        assert result.ok
        assert result.value == "Try a newsletter swap."

    def test_empty_text(self):
        result = interpret_text(make_response(None))
        assert result.kind is ErrorKind.EMPTY_RESPONSE
