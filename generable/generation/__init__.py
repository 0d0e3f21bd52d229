"""
Generable — Generation with Retry

Public API:
  GenerationSession   — attempt loop, single-shot or streamed
  RetryController     — bounded retry state for one request
  ChatRequestBuilder  — prompt to Ollama chat request
"""

from generable.generation.retry import RetryController
from generable.generation.session import (
    GenerationSession,
    generate_with_retry,
    stream_with_retry,
)
from generable.generation.transcript import ChatRequestBuilder, TranscriptBuilder
from generable.generation.types import (
    GenerableError,
    GenerableErrorKind,
    PartialState,
    RetryContext,
    RetryPolicy,
    RetrySummary,
    StreamOptions,
    StreamResult,
    StreamResultKind,
)

__all__ = [
    "GenerationSession",
    "generate_with_retry",
    "stream_with_retry",
    "RetryController",
    "ChatRequestBuilder",
    "TranscriptBuilder",
    "GenerableError",
    "GenerableErrorKind",
    "PartialState",
    "RetryContext",
    "RetryPolicy",
    "RetrySummary",
    "StreamOptions",
    "StreamResult",
    "StreamResultKind",
]
