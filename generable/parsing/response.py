"""
Generable — Response Processing

Normalises a model message into one of: tool calls, content, or nothing.

Priority:
  1. Native tool_calls on the message
  2. Text tool calls in content
  3. Text tool calls in the thinking field
  4. Content with reasoning tags stripped, JSON extracted if present
  5. Thinking as a fallback for models that only fill that field
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field

import structlog

from generable.clients.types import ChatMessage
from generable.parsing.extractor import extract
from generable.parsing.tool_calls import contains_invocation_markers, extract_invocations
from generable.parsing.types import Invocation

logger = structlog.get_logger()

_THINK_BLOCK = re.compile(r"<think>[\s\S]*?</think>|<think>[\s\S]*$", re.IGNORECASE)
_ORPHANED_THINK_CLOSE = re.compile(r"^[\s\S]*</think>", re.IGNORECASE)
_CONTENT_BLOCK = re.compile(r"<content>[\s\S]*?</content>", re.IGNORECASE)


class ProcessedKind(enum.StrEnum):
    TOOL_CALLS = "tool_calls"
    CONTENT = "content"
    EMPTY = "empty"


@dataclass(frozen=True)
class ProcessedResponse:
    kind: ProcessedKind
    content: str = ""
    invocations: list[Invocation] = field(default_factory=list)


def process_message(message: ChatMessage) -> ProcessedResponse:
    if message.tool_calls:
        return ProcessedResponse(
            kind=ProcessedKind.TOOL_CALLS,
            invocations=[
                Invocation(name=call.function.name, arguments=dict(call.function.arguments))
                for call in message.tool_calls
            ],
        )

    for source in (message.content, message.thinking or ""):
        if contains_invocation_markers(source):
            extraction = extract_invocations(source)
            if extraction.found:
                return ProcessedResponse(
                    kind=ProcessedKind.TOOL_CALLS,
                    invocations=extraction.invocations,
                    content=extraction.residual,
                )

    content = process_content(message.content)
    if content:
        return ProcessedResponse(kind=ProcessedKind.CONTENT, content=content)

    if message.thinking:
        thinking = process_content(message.thinking)
        return ProcessedResponse(kind=ProcessedKind.CONTENT, content=thinking or message.thinking)

    return ProcessedResponse(kind=ProcessedKind.EMPTY)


def normalize_text(text: str) -> tuple[str, list[Invocation]]:
    """
    Prepare free-form generated text for decoding.

    Tool-call islands are removed (and returned), reasoning tags stripped
    and the embedded JSON payload extracted when there is one.
    """
    invocations: list[Invocation] = []
    if contains_invocation_markers(text):
        extraction = extract_invocations(text)
        if extraction.found:
            invocations = extraction.invocations
            text = extraction.residual
            logger.debug("text_tool_calls_removed", count=len(invocations))
    return process_content(text), invocations


def process_content(content: str) -> str:
    if not content:
        return ""

    stripped = strip_think_tags(content)

    json_text = extract(stripped)
    if json_text is not None:
        return json_text

    json_text = extract(content)
    if json_text is not None:
        return json_text

    return stripped.strip()


def strip_think_tags(content: str) -> str:
    processed = content
    if "<content>" in processed:
        processed = _CONTENT_BLOCK.sub("", processed)
    if "</think>" in processed and "<think" not in processed:
        processed = _ORPHANED_THINK_CLOSE.sub("", processed)
    if "<think" in processed:
        processed = _THINK_BLOCK.sub("", processed)
    return processed
