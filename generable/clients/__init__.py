"""
Generable — External Service Clients

HTTP transport to a local Ollama server and its wire types.
"""

from generable.clients.errors import (
    OllamaConnectionError,
    OllamaError,
    OllamaResponseError,
    OllamaStatusError,
)
from generable.clients.ollama import OllamaClient, create_ollama_client
from generable.clients.types import (
    ChatMessage,
    ChatRequest,
    ChatResponse,
    ChatTransport,
    Role,
)

__all__ = [
    "OllamaClient",
    "create_ollama_client",
    "OllamaError",
    "OllamaConnectionError",
    "OllamaStatusError",
    "OllamaResponseError",
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "ChatTransport",
    "Role",
]
