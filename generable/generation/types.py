"""
Generable — Generation Type Definitions

Retry policy, retry context, the retry-relevant error taxonomy, and the
values a streaming session emits.

Every ParseError is mapped to a GenerableError before it reaches the retry
controller, so retry decisions only ever classify against this smaller set.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from generable.config import GenerableConfig

T = TypeVar("T")


# ─── Errors ───────────────────────────────────────────────────────


class GenerableErrorKind(enum.StrEnum):
    JSON_PARSE_FAILED = "json_parse_failed"
    SCHEMA_VALIDATION_FAILED = "schema_validation_failed"
    STREAM_INTERRUPTED = "stream_interrupted"
    MAX_RETRIES_EXCEEDED = "max_retries_exceeded"
    CONNECTION_ERROR = "connection_error"
    EMPTY_RESPONSE = "empty_response"
    UNKNOWN = "unknown"


_RETRYABLE = frozenset({
    GenerableErrorKind.JSON_PARSE_FAILED,
    GenerableErrorKind.SCHEMA_VALIDATION_FAILED,
    GenerableErrorKind.EMPTY_RESPONSE,
    GenerableErrorKind.STREAM_INTERRUPTED,
    GenerableErrorKind.CONNECTION_ERROR,
})


class GenerableError(Exception):
    """
    A generation failure, tagged by `kind`.

    Payload by kind:
      JSON_PARSE_FAILED         content, detail (parser error)
      SCHEMA_VALIDATION_FAILED  field, detail
      STREAM_INTERRUPTED        detail (reason)
      MAX_RETRIES_EXCEEDED      attempts, detail (last error description)
      CONNECTION_ERROR          detail (message)
      UNKNOWN                   detail (message)
    """

    def __init__(
        self,
        kind: GenerableErrorKind,
        *,
        detail: str = "",
        content: str = "",
        field: str = "",
        attempts: int = 0,
    ) -> None:
        self.kind = kind
        self.detail = detail
        self.content = content
        self.field = field
        self.attempts = attempts
        super().__init__(self.description)

    @classmethod
    def json_parse_failed(cls, content: str, underlying: str) -> GenerableError:
        return cls(GenerableErrorKind.JSON_PARSE_FAILED, content=content, detail=underlying)

    @classmethod
    def schema_validation_failed(cls, field: str, details: str) -> GenerableError:
        return cls(GenerableErrorKind.SCHEMA_VALIDATION_FAILED, field=field, detail=details)

    @classmethod
    def stream_interrupted(cls, reason: str) -> GenerableError:
        return cls(GenerableErrorKind.STREAM_INTERRUPTED, detail=reason)

    @classmethod
    def max_retries_exceeded(cls, attempts: int, last_error: str) -> GenerableError:
        return cls(GenerableErrorKind.MAX_RETRIES_EXCEEDED, attempts=attempts, detail=last_error)

    @classmethod
    def connection_error(cls, message: str) -> GenerableError:
        return cls(GenerableErrorKind.CONNECTION_ERROR, detail=message)

    @classmethod
    def empty_response(cls) -> GenerableError:
        return cls(GenerableErrorKind.EMPTY_RESPONSE)

    @classmethod
    def unknown(cls, message: str) -> GenerableError:
        return cls(GenerableErrorKind.UNKNOWN, detail=message)

    @property
    def is_retryable(self) -> bool:
        return self.kind in _RETRYABLE

    @property
    def description(self) -> str:
        match self.kind:
            case GenerableErrorKind.JSON_PARSE_FAILED:
                return f"JSON parsing failed: {self.detail}. Content: {self.content[:100]}..."
            case GenerableErrorKind.SCHEMA_VALIDATION_FAILED:
                return f"Schema validation failed for field '{self.field}': {self.detail}"
            case GenerableErrorKind.STREAM_INTERRUPTED:
                return f"Stream interrupted: {self.detail}"
            case GenerableErrorKind.MAX_RETRIES_EXCEEDED:
                return (
                    f"Maximum retries exceeded ({self.attempts} attempts). "
                    f"Last error: {self.detail}"
                )
            case GenerableErrorKind.CONNECTION_ERROR:
                return f"Connection error: {self.detail}"
            case GenerableErrorKind.EMPTY_RESPONSE:
                return "Model returned empty response"
            case GenerableErrorKind.UNKNOWN:
                return f"Unknown error: {self.detail}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GenerableError):
            return NotImplemented
        return (
            self.kind == other.kind
            and self.detail == other.detail
            and self.content == other.content
            and self.field == other.field
            and self.attempts == other.attempts
        )

    def __hash__(self) -> int:
        return hash((self.kind, self.detail, self.content, self.field, self.attempts))

    def __repr__(self) -> str:
        return f"GenerableError({self.kind.value}: {self.description})"


# ─── Retry ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int
    include_error_context: bool = True
    base_delay_s: float = 0.5

    def __post_init__(self) -> None:
        if self.max_attempts < 0:
            raise ValueError(f"max_attempts must be >= 0, got {self.max_attempts}")
        if self.base_delay_s < 0:
            raise ValueError(f"base_delay_s must be >= 0, got {self.base_delay_s}")

    @classmethod
    def none(cls) -> RetryPolicy:
        """Fail on the first error."""
        return cls(max_attempts=0, include_error_context=False, base_delay_s=0.0)

    @classmethod
    def default(cls) -> RetryPolicy:
        return cls(max_attempts=3, include_error_context=True, base_delay_s=0.5)

    @classmethod
    def aggressive(cls) -> RetryPolicy:
        return cls(max_attempts=5, include_error_context=True, base_delay_s=0.3)


@dataclass(frozen=True)
class RetryContext:
    attempt_number: int  # 1-based
    max_attempts: int
    error: GenerableError
    failed_content: str

    @property
    def remaining_attempts(self) -> int:
        return max(0, self.max_attempts - self.attempt_number)


@dataclass(frozen=True)
class RetrySummary:
    total_attempts: int
    max_attempts: int
    errors: list[str]
    is_exhausted: bool

    def describe(self) -> str:
        desc = f"Retry Summary: {self.total_attempts}/{self.max_attempts} attempts"
        if self.is_exhausted:
            desc += " (exhausted)"
        if self.errors:
            lines = [f"  {i}. {err}" for i, err in enumerate(self.errors, start=1)]
            desc += "\nErrors:\n" + "\n".join(lines)
        return desc


# ─── Streaming ────────────────────────────────────────────────────


@dataclass(frozen=True)
class PartialState(Generic[T]):
    accumulated_content: str
    partial_value: T | None = None
    is_complete: bool = False
    progress: float | None = None


class StreamResultKind(enum.StrEnum):
    PARTIAL = "partial"
    RETRYING = "retrying"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(frozen=True)
class StreamResult(Generic[T]):
    """One observable event of a streaming session."""

    kind: StreamResultKind
    partial_state: PartialState[T] | None = None
    retry_context: RetryContext | None = None
    value: T | None = None
    error: GenerableError | None = None

    @classmethod
    def partial(cls, state: PartialState[T]) -> StreamResult[T]:
        return cls(StreamResultKind.PARTIAL, partial_state=state)

    @classmethod
    def retrying(cls, context: RetryContext) -> StreamResult[Any]:
        return cls(StreamResultKind.RETRYING, retry_context=context)

    @classmethod
    def complete(cls, value: T) -> StreamResult[T]:
        return cls(StreamResultKind.COMPLETE, value=value)

    @classmethod
    def failed(cls, error: GenerableError) -> StreamResult[Any]:
        return cls(StreamResultKind.FAILED, error=error)

    @property
    def is_terminal(self) -> bool:
        return self.kind in (StreamResultKind.COMPLETE, StreamResultKind.FAILED)


@dataclass(frozen=True)
class StreamOptions:
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy.default)
    yield_partial_values: bool = True
    # Below this many characters no partial decode is attempted.
    min_content_for_parse: int = 10

    @classmethod
    def from_config(cls, config: GenerableConfig) -> StreamOptions:
        return cls(
            retry_policy=config.retry.to_policy(),
            yield_partial_values=config.stream.yield_partial_values,
            min_content_for_parse=config.stream.min_content_for_parse,
        )
