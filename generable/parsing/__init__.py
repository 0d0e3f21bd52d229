"""
Generable — Text Normalisation Pipeline

Pure functions that take raw model text to a decoded value or a classified
ParseError: tool-call extraction, JSON extraction, auto-correction, partial
completion and schema decoding.
"""

from generable.parsing.corrector import complete_partial, correct
from generable.parsing.decoder import decode, decode_partial, validate
from generable.parsing.extractor import extract
from generable.parsing.response import ProcessedResponse, normalize_text, process_message
from generable.parsing.tool_calls import extract_invocations
from generable.parsing.types import (
    Invocation,
    ParseError,
    ParseErrorKind,
    ParseOutcome,
    ToolCallExtraction,
    ValidationIssue,
)

__all__ = [
    "correct",
    "complete_partial",
    "decode",
    "decode_partial",
    "validate",
    "extract",
    "extract_invocations",
    "normalize_text",
    "process_message",
    "ProcessedResponse",
    "Invocation",
    "ParseError",
    "ParseErrorKind",
    "ParseOutcome",
    "ToolCallExtraction",
    "ValidationIssue",
]
