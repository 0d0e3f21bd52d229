"""
Generable — Reliable Typed Output from Local Models

Turns free-form text from an Ollama server into validated pydantic models,
retrying with corrective prompts when the output does not parse.
"""

from generable.clients.ollama import OllamaClient, create_ollama_client
from generable.config import GenerableConfig, load_config
from generable.generation.session import (
    GenerationSession,
    generate_with_retry,
    stream_with_retry,
)
from generable.generation.transcript import ChatRequestBuilder
from generable.generation.types import (
    GenerableError,
    GenerableErrorKind,
    RetryPolicy,
    StreamOptions,
    StreamResult,
    StreamResultKind,
)

__all__ = [
    "ChatRequestBuilder",
    "GenerableConfig",
    "GenerableError",
    "GenerableErrorKind",
    "GenerationSession",
    "OllamaClient",
    "RetryPolicy",
    "StreamOptions",
    "StreamResult",
    "StreamResultKind",
    "create_ollama_client",
    "generate_with_retry",
    "load_config",
    "stream_with_retry",
]
