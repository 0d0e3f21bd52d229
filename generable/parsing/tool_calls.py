"""
Generable — Text Tool-Call Extraction

Some local models emit tool invocations as tagged text instead of using
Ollama's native `tool_calls` field. This module recognises two conventions:

  <tool_call>{"name": "f", "arguments": {...}}</tool_call>
  <tool_call>f<arg_key>k</arg_key><arg_value>v</arg_value>...</tool_call>
  <function_call>{"name": "f", "arguments": {...}}</function_call>

`<tool_call>` is tried first; whichever convention yields an invocation
wins and the other is not consulted. Matched tag spans are removed from the
residual text.
"""

from __future__ import annotations

import json
import re
from typing import Any

import structlog

from generable.parsing.types import Invocation, ToolCallExtraction

logger = structlog.get_logger()

_TOOL_CALL_TAG = re.compile(r"<tool_call>\s*([\s\S]*?)\s*</tool_call>")
_FUNCTION_CALL_TAG = re.compile(r"<function_call>\s*([\s\S]*?)\s*</function_call>")
_ARG_PAIR = re.compile(
    r"<arg_key>\s*(.*?)\s*</arg_key>\s*<arg_value>\s*([\s\S]*?)\s*</arg_value>"
)
_MARKERS = ("<tool_call>", "<function_call>")


def contains_invocation_markers(text: str) -> bool:
    """Cheap probe so streamed fragments can skip the full extractor."""
    return any(marker in text for marker in _MARKERS)


def extract_invocations(text: str) -> ToolCallExtraction:
    if not text:
        return ToolCallExtraction(invocations=[], residual="")

    result = _extract_tagged(text, _TOOL_CALL_TAG, allow_arg_pairs=True)
    if result.found:
        return result

    result = _extract_tagged(text, _FUNCTION_CALL_TAG, allow_arg_pairs=False)
    if result.found:
        return result

    return ToolCallExtraction(invocations=[], residual=text)


def _extract_tagged(
    text: str,
    pattern: re.Pattern[str],
    *,
    allow_arg_pairs: bool,
) -> ToolCallExtraction:
    invocations: list[Invocation] = []
    for match in pattern.finditer(text):
        inner = match.group(1)
        invocation = parse_invocation_json(inner)
        if invocation is None and allow_arg_pairs:
            invocation = parse_arg_pair_invocation(inner)
        if invocation is None:
            logger.debug("tool_call_tag_unparseable", preview=inner[:80])
            continue
        invocations.append(invocation)

    if not invocations:
        return ToolCallExtraction(invocations=[], residual=text)

    residual = pattern.sub("", text).strip()
    return ToolCallExtraction(invocations=invocations, residual=residual)


def parse_invocation_json(text: str) -> Invocation | None:
    """
    Accepts:
      {"name": "f", "arguments": {...}}
      {"function": {"name": "f", "arguments": {...}}}
      {"type": "function", "function": {"name": "f", "arguments": {...}}}
    """
    try:
        payload = json.loads(text.strip())
    except (json.JSONDecodeError, ValueError):
        return None
    if not isinstance(payload, dict):
        return None

    name = payload.get("name")
    if isinstance(name, str):
        return Invocation(name=name, arguments=_arguments(payload.get("arguments")))

    function = payload.get("function")
    if isinstance(function, dict) and isinstance(function.get("name"), str):
        return Invocation(
            name=function["name"],
            arguments=_arguments(function.get("arguments")),
        )

    return None


def parse_arg_pair_invocation(text: str) -> Invocation | None:
    """`Name<arg_key>k</arg_key><arg_value>v</arg_value>...` with string values."""
    trimmed = text.strip()
    first_key = trimmed.find("<arg_key>")
    if first_key < 0 or "<arg_value>" not in trimmed:
        return None

    name = trimmed[:first_key].strip()
    if not name:
        return None

    arguments: dict[str, Any] = {}
    for match in _ARG_PAIR.finditer(trimmed):
        arguments[match.group(1).strip()] = match.group(2).strip()

    if not arguments:
        return None
    return Invocation(name=name, arguments=arguments)


def _arguments(raw: Any) -> dict[str, Any]:
    # Some models double-encode arguments as a JSON string.
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, ValueError):
            return {}
    return dict(raw) if isinstance(raw, dict) else {}
