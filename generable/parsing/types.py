"""
Generable — Parsing Types

Outcome and error values produced by the decode pipeline. These are plain
values: decoding never raises, it returns a ParseOutcome.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from generable.generation.types import GenerableError

T = TypeVar("T")


class ParseErrorKind(enum.StrEnum):
    EMPTY_CONTENT = "empty_content"
    ENCODING_ERROR = "encoding_error"
    INVALID_JSON = "invalid_json"
    MISSING_REQUIRED_FIELD = "missing_required_field"
    TYPE_MISMATCH = "type_mismatch"
    NULL_VALUE = "null_value"
    DATA_CORRUPTED = "data_corrupted"
    DECODING_FAILED = "decoding_failed"


@dataclass(frozen=True)
class ParseError:
    """
    A single classified decode failure.

    Only the fields relevant to `kind` are populated:
      INVALID_JSON            content, message (parser diagnostic)
      MISSING_REQUIRED_FIELD  path, message (context)
      TYPE_MISMATCH           path, expected, actual
      NULL_VALUE              path, expected
      DATA_CORRUPTED          message
      DECODING_FAILED         message
    """

    kind: ParseErrorKind
    path: str = ""
    message: str = ""
    content: str = ""
    expected: str = ""
    actual: str = ""

    # ─── Constructors ─────────────────────────────────────────────

    @classmethod
    def empty_content(cls) -> ParseError:
        return cls(ParseErrorKind.EMPTY_CONTENT)

    @classmethod
    def encoding_error(cls) -> ParseError:
        return cls(ParseErrorKind.ENCODING_ERROR)

    @classmethod
    def invalid_json(cls, content: str, diagnostic: str) -> ParseError:
        return cls(ParseErrorKind.INVALID_JSON, content=content, message=diagnostic)

    @classmethod
    def missing_required_field(cls, path: str, context: str = "") -> ParseError:
        return cls(ParseErrorKind.MISSING_REQUIRED_FIELD, path=path, message=context)

    @classmethod
    def type_mismatch(cls, path: str, expected: str, actual: str) -> ParseError:
        return cls(ParseErrorKind.TYPE_MISMATCH, path=path, expected=expected, actual=actual)

    @classmethod
    def null_value(cls, path: str, expected: str) -> ParseError:
        return cls(ParseErrorKind.NULL_VALUE, path=path, expected=expected)

    @classmethod
    def data_corrupted(cls, message: str) -> ParseError:
        return cls(ParseErrorKind.DATA_CORRUPTED, message=message)

    @classmethod
    def decoding_failed(cls, message: str) -> ParseError:
        return cls(ParseErrorKind.DECODING_FAILED, message=message)

    # ─── Rendering ────────────────────────────────────────────────

    @property
    def description(self) -> str:
        match self.kind:
            case ParseErrorKind.EMPTY_CONTENT:
                return "Content is empty"
            case ParseErrorKind.ENCODING_ERROR:
                return "Failed to encode content as UTF-8"
            case ParseErrorKind.INVALID_JSON:
                return f"Invalid JSON: {self.message}"
            case ParseErrorKind.MISSING_REQUIRED_FIELD:
                return f"Missing required field '{self.path}': {self.message}"
            case ParseErrorKind.TYPE_MISMATCH:
                return (
                    f"Type mismatch at '{self.path}': "
                    f"expected {self.expected}, got {self.actual}"
                )
            case ParseErrorKind.NULL_VALUE:
                return f"Null value at '{self.path}': expected {self.expected}"
            case ParseErrorKind.DATA_CORRUPTED:
                return f"Data corrupted: {self.message}"
            case ParseErrorKind.DECODING_FAILED:
                return f"Decoding failed: {self.message}"

    def __str__(self) -> str:
        return self.description

    def to_generable_error(self) -> GenerableError:
        """Map onto the smaller retry-relevant taxonomy."""
        from generable.generation.types import GenerableError

        match self.kind:
            case ParseErrorKind.EMPTY_CONTENT:
                return GenerableError.empty_response()
            case ParseErrorKind.ENCODING_ERROR:
                return GenerableError.json_parse_failed("", "UTF-8 encoding error")
            case ParseErrorKind.INVALID_JSON:
                return GenerableError.json_parse_failed(self.content, self.message)
            case ParseErrorKind.MISSING_REQUIRED_FIELD:
                return GenerableError.schema_validation_failed(self.path, self.message)
            case ParseErrorKind.TYPE_MISMATCH:
                return GenerableError.schema_validation_failed(
                    self.path, f"Expected {self.expected}, got {self.actual}",
                )
            case ParseErrorKind.NULL_VALUE:
                return GenerableError.schema_validation_failed(
                    self.path, f"Null value, expected {self.expected}",
                )
            case ParseErrorKind.DATA_CORRUPTED:
                return GenerableError.json_parse_failed("", self.message)
            case ParseErrorKind.DECODING_FAILED:
                return GenerableError.unknown(self.message)


@dataclass(frozen=True)
class ParseOutcome(Generic[T]):
    """Result of one decode attempt: exactly one of `value` or `error`."""

    value: T | None = None
    error: ParseError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_generable_error(self) -> GenerableError | None:
        return self.error.to_generable_error() if self.error is not None else None


def Success(value: T) -> ParseOutcome[T]:  # noqa: N802
    return ParseOutcome(value=value)


def Failure(error: ParseError) -> ParseOutcome[Any]:  # noqa: N802
    return ParseOutcome(error=error)


@dataclass(frozen=True)
class ValidationIssue:
    """A single shallow schema-check finding. Does not halt other checks."""

    field: str
    message: str


@dataclass(frozen=True)
class Invocation:
    """A function call the model expressed as text instead of a native field."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolCallExtraction:
    invocations: list[Invocation]
    residual: str

    @property
    def found(self) -> bool:
        return len(self.invocations) > 0
