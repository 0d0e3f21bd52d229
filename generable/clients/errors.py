"""
Generable -- Ollama Transport Error Hierarchy

All exceptions raised by the HTTP transport client.

These never cross the generation boundary as-is: the generation session
maps each one to a GenerableError exactly once.

  OllamaConnectionError  -> GenerableError.connection_error
  OllamaStatusError      -> GenerableError.connection_error ("HTTP <code>")
  OllamaResponseError    -> GenerableError.stream_interrupted
"""

from __future__ import annotations


class OllamaError(RuntimeError):
    """Base for all Ollama transport failures."""


class OllamaConnectionError(OllamaError):
    """
    The server could not be reached or did not answer in time.

    Covers refused connections, DNS failures and read/connect timeouts.
    """


class OllamaStatusError(OllamaError):
    """The server answered with an HTTP status >= 400."""

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        message = f"HTTP {status_code}"
        if body:
            message += f": {body}"
        super().__init__(message)


class OllamaResponseError(OllamaError):
    """
    The response envelope could not be decoded.

    Raised for a non-JSON single-shot body, or a stream that ended before a
    chunk with `done=true` arrived.
    """
