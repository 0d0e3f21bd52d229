"""Tests for text tool-call extraction."""

from __future__ import annotations

from generable.parsing.tool_calls import (
    contains_invocation_markers,
    extract_invocations,
    parse_arg_pair_invocation,
    parse_invocation_json,
)
from generable.parsing.types import Invocation


class TestExtractInvocations:
    def test_json_tool_call_with_residual(self):
        result = extract_invocations(
            '<tool_call>{"name":"f","arguments":{"x":1}}</tool_call> done'
        )
        assert result.found
        assert result.invocations == [Invocation(name="f", arguments={"x": 1})]
        assert result.residual == "done"

    def test_multiple_tool_calls(self):
        text = (
            '<tool_call>{"name": "a", "arguments": {}}</tool_call>\n'
            '<tool_call>{"name": "b", "arguments": {"k": "v"}}</tool_call>'
        )
        result = extract_invocations(text)
        assert [inv.name for inv in result.invocations] == ["a", "b"]
        assert result.residual == ""

    def test_arg_pair_form(self):
        text = (
            "<tool_call>get_weather"
            "<arg_key>city</arg_key><arg_value>Paris</arg_value>"
            "<arg_key>days</arg_key><arg_value>3</arg_value>"
            "</tool_call>"
        )
        result = extract_invocations(text)
        assert result.invocations == [
            Invocation(name="get_weather", arguments={"city": "Paris", "days": "3"}),
        ]

    def test_function_call_form_with_string_arguments(self):
        text = r'<function_call>{"function": {"name": "g", "arguments": "{\"y\": 2}"}}</function_call> ok'
        result = extract_invocations(text)
        assert result.invocations == [Invocation(name="g", arguments={"y": 2})]
        assert result.residual == "ok"

    def test_tool_call_short_circuits_function_call(self):
        text = (
            '<tool_call>{"name": "a", "arguments": {}}</tool_call> '
            '<function_call>{"name": "b", "arguments": {}}</function_call>'
        )
        result = extract_invocations(text)
        assert [inv.name for inv in result.invocations] == ["a"]
        assert "<function_call>" in result.residual

    def test_no_markers_returns_input_unchanged(self):
        text = '  {"a": 1}  '
        result = extract_invocations(text)
        assert not result.found
        assert result.residual == text

    def test_unparseable_tag_is_not_an_invocation(self):
        text = "<tool_call>garbage</tool_call>"
        result = extract_invocations(text)
        assert not result.found
        assert result.residual == text


class TestParsers:
    def test_typed_function_wrapper(self):
        invocation = parse_invocation_json(
            '{"type": "function", "function": {"name": "f", "arguments": {"a": true}}}'
        )
        assert invocation == Invocation(name="f", arguments={"a": True})

    def test_missing_arguments_defaults_to_empty(self):
        assert parse_invocation_json('{"name": "f"}') == Invocation(name="f", arguments={})

    def test_non_object_rejected(self):
        assert parse_invocation_json("[1, 2]") is None
        assert parse_invocation_json('{"arguments": {}}') is None

    def test_arg_pair_requires_name(self):
        assert parse_arg_pair_invocation("<arg_key>k</arg_key><arg_value>v</arg_value>") is None


class TestMarkers:
    def test_detects_both_conventions(self):
        assert contains_invocation_markers("x <tool_call> y")
        assert contains_invocation_markers("<function_call>")

    def test_plain_text(self):
        assert not contains_invocation_markers('{"tool_call": 1}')
