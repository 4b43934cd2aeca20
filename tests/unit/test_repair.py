"""Unit tests for JSON payload extraction and truncation repair."""

import json

import pytest

from cra_assistant.gateway.repair import (
    EXCERPT_LIMIT,
    extract_json_payload,
    parse_json_response,
    repair_json,
)
from cra_assistant.schemas.errors import ErrorCode, ErrorSeverity
from cra_assistant.schemas.result import Err, Ok


class TestRepairJson:
    @pytest.mark.parametrize("text", [
        '{"a": 1}',
        '{"a": [1, 2, {"b": null}], "c": "x, ]"}',
        '  {"nested": {"deep": [true, false]}}  ',
        "[]",
    ])
    def test_valid_json_is_returned_unchanged(self, text):
        assert repair_json(text) == text

    def test_truncated_array_inside_object(self):
        repaired = repair_json('{"a": 1, "b": [1, 2,')
        assert json.loads(repaired) == {"a": 1, "b": [1, 2]}

    def test_trailing_comma_before_brace(self):
        assert json.loads(repair_json('{"a": 1, "b": 2,}')) == {"a": 1, "b": 2}

    def test_trailing_comma_before_bracket(self):
        assert json.loads(repair_json('{"a": [1, 2, ]}')) == {"a": [1, 2]}

    def test_missing_braces(self):
        assert json.loads(repair_json('{"a": {"b": {"c": 1')) == {"a": {"b": {"c": 1}}}

    def test_missing_brackets(self):
        assert json.loads(repair_json('{"a": [[1, 2], [3')) == {"a": [[1, 2], [3]]}

    def test_mixed_nesting_closes_innermost_first(self):
        repaired = repair_json('{"items": [{"name": "x", "tags": ["a"')
        assert repaired.endswith("]}]}")
        assert json.loads(repaired) == {"items": [{"name": "x", "tags": ["a"]}]}

    def test_unterminated_value_string_is_emptied(self):
        assert json.loads(repair_json('{"a": 1, "b": "hel')) == {"a": 1, "b": ""}

    def test_unterminated_key_is_dropped(self):
        assert json.loads(repair_json('{"a": 1, "ke')) == {"a": 1}

    def test_dangling_colon(self):
        assert json.loads(repair_json('{"a": 1, "b":')) == {"a": 1}

    def test_dangling_key(self):
        assert json.loads(repair_json('{"a": 1, "b"')) == {"a": 1}

    def test_partial_literal(self):
        assert json.loads(repair_json('{"a": 1, "b": tru')) == {"a": 1}

    def test_partial_number(self):
        assert json.loads(repair_json('{"a": 1.')) == {"a": 1}

    def test_commas_inside_strings_are_kept(self):
        repaired = repair_json('{"a": "x, ]", "b": [1')
        assert json.loads(repaired) == {"a": "x, ]", "b": [1]}

    def test_trailing_comma_after_string_with_comma(self):
        assert json.loads(repair_json('{"a": "1, 2", "b": [3, ],')) == {"a": "1, 2", "b": [3]}

    def test_brackets_inside_strings_are_ignored(self):
        repaired = repair_json('{"a": "x]}", "b": [1')
        assert json.loads(repaired) == {"a": "x]}", "b": [1]}

    def test_escaped_quote_inside_truncated_string(self):
        assert json.loads(repair_json(r'{"a": "say \"hi')) == {"a": ""}

    def test_repair_is_idempotent(self):
        once = repair_json('{"a": [{"b": 1}, {"c": "tex')
        assert repair_json(once) == once

    def test_mid_payload_damage_is_not_fixed(self):
        # only truncation is repaired; a missing comma stays broken
        with pytest.raises(json.JSONDecodeError):
            json.loads(repair_json('{"a": 1 "b": 2}'))


class TestExtractJsonPayload:
    def test_json_fence(self):
        raw = 'Here you go:\n```json\n{"a": 1}\n```\nAnything else?'
        assert extract_json_payload(raw) == '{"a": 1}'

    def test_plain_fence(self):
        assert extract_json_payload('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_unterminated_fence(self):
        raw = '```json\n{"inclusionCriteria": [{"number": "1"'
        assert extract_json_payload(raw) == '{"inclusionCriteria": [{"number": "1"'

    def test_prose_wrapped_object(self):
        assert extract_json_payload('Result: {"a": {"b": 2}} done.') == '{"a": {"b": 2}}'

    def test_unclosed_object_after_prose(self):
        assert extract_json_payload('Sure. {"a": [1') == '{"a": [1'

    def test_truncated_object_keeps_fields_after_nested_close(self):
        raw = '{"visitSchedule": [{"visitNumber": "1"}, {"visitNumber": "2"}], "notes": "x", "extra": [1, 2'
        assert extract_json_payload(raw) == raw

    def test_invalid_span_after_prose_falls_back_to_rest_of_text(self):
        assert extract_json_payload('Sure: {"a": {"b": 1}, "c": "d') == '{"a": {"b": 1}, "c": "d'

    def test_no_object_returns_stripped_text(self):
        assert extract_json_payload("  no json here \n") == "no json here"


class TestParseJsonResponse:
    def test_valid_fenced_response(self):
        result = parse_json_response('```json\n{"subjectNumber": "S-001"}\n```')
        assert isinstance(result, Ok)
        assert result.value == {"subjectNumber": "S-001"}

    def test_truncated_response_is_repaired(self):
        raw = (
            '```json\n{"inclusionCriteria": [{"number": "1", "description": "Age >= 18"}, '
            '{"number": "2", "description": "Signed inf'
        )
        result = parse_json_response(raw)
        assert isinstance(result, Ok)
        first, second = result.value["inclusionCriteria"]
        assert first == {"number": "1", "description": "Age >= 18"}
        assert second == {"number": "2", "description": ""}

    def test_unfenced_truncation_keeps_complete_fields(self):
        raw = '{"visitSchedule": [{"visitNumber": "1"}, {"visitNumber": "2"}], "notes": "x", "extra": [1, 2'
        result = parse_json_response(raw)
        assert result.value == {
            "visitSchedule": [{"visitNumber": "1"}, {"visitNumber": "2"}],
            "notes": "x",
            "extra": [1, 2],
        }

    def test_fenced_and_unfenced_truncation_agree(self):
        body = '{"medications": [{"medicationName": "A"}, {"medicationName": "B", "dosage": "5 m'
        unfenced = parse_json_response(body)
        fenced = parse_json_response("```json\n" + body)
        assert unfenced.value == fenced.value
        assert unfenced.value["medications"] == [
            {"medicationName": "A"},
            {"medicationName": "B", "dosage": ""},
        ]

    def test_unparseable_response_is_parse_failed(self):
        raw = "I cannot help with that. " * 100
        result = parse_json_response(raw)

        assert isinstance(result, Err)
        assert result.error.code == ErrorCode.PARSE_FAILED
        assert result.error.severity == ErrorSeverity.WARNING
        assert not result.error.is_fatal
        assert result.error.context["response"] == raw[:EXCERPT_LIMIT]
        assert len(result.error.context["response"]) == EXCERPT_LIMIT

    def test_top_level_array_is_rejected(self):
        result = parse_json_response("[1, 2, 3]")
        assert isinstance(result, Err)
        assert result.error.code == ErrorCode.PARSE_FAILED

    def test_parse_failure_message_is_localized(self):
        result = parse_json_response("nope", language="zh-CN")
        assert isinstance(result, Err)
        assert result.error.user_message == "AI响应解析失败，返回的JSON格式不完整或有错误"
