"""
Generable — Ollama HTTP Client

Async client for a local Ollama server. Speaks `POST /api/chat` in both
single-shot and streaming (line-delimited JSON) modes, plus `GET /api/tags`
for health checks.

Transport failures are raised as the OllamaError family; this client does
not retry. Retrying is the generation session's job.
"""

from __future__ import annotations

import json as _json
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from pydantic import ValidationError

from generable.clients.errors import (
    OllamaConnectionError,
    OllamaResponseError,
    OllamaStatusError,
)
from generable.clients.types import ChatRequest, ChatResponse

if TYPE_CHECKING:
    from generable.config import OllamaConfig

logger = structlog.get_logger()

_DEFAULT_BASE_URL = "http://localhost:11434"
_ERROR_BODY_LIMIT = 500


class OllamaClient:
    """Local model server via Ollama."""

    def __init__(
        self,
        base_url: str = _DEFAULT_BASE_URL,
        timeout_s: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout_s,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def chat(self, request: ChatRequest) -> ChatResponse:
        payload = request.model_copy(update={"stream": False}).to_payload()
        try:
            response = await self._client.post("/api/chat", json=payload)
        except httpx.TimeoutException as exc:
            raise OllamaConnectionError(f"Timed out talking to {self._base_url}: {exc}") from exc
        except httpx.TransportError as exc:
            raise OllamaConnectionError(f"Cannot reach {self._base_url}: {exc}") from exc

        if response.status_code >= 400:
            raise OllamaStatusError(response.status_code, _error_body(response.text))

        try:
            return ChatResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise OllamaResponseError(f"Undecodable chat response: {exc}") from exc

    async def stream_chat(self, request: ChatRequest) -> AsyncIterator[ChatResponse]:
        """
        Yield response chunks in arrival order, ending after `done=true`.

        The HTTP response is held open inside `async with`, so closing this
        generator early (including on cancellation) releases the connection.
        """
        payload = request.model_copy(update={"stream": True}).to_payload()
        try:
            async with self._client.stream("POST", "/api/chat", json=payload) as response:
                if response.status_code >= 400:
                    body = await response.aread()
                    raise OllamaStatusError(
                        response.status_code,
                        _error_body(body.decode("utf-8", errors="replace")),
                    )

                # aiter_lines also yields a final line that has no newline
                async for line in response.aiter_lines():
                    chunk = _decode_line(line)
                    if chunk is None:
                        continue
                    yield chunk
                    if chunk.done:
                        return
        except httpx.TimeoutException as exc:
            raise OllamaConnectionError(f"Timed out talking to {self._base_url}: {exc}") from exc
        except httpx.TransportError as exc:
            raise OllamaConnectionError(f"Cannot reach {self._base_url}: {exc}") from exc

        raise OllamaResponseError("Stream ended before completion")

    async def list_models(self) -> list[str]:
        try:
            response = await self._client.get("/api/tags")
        except httpx.TransportError as exc:
            raise OllamaConnectionError(f"Cannot reach {self._base_url}: {exc}") from exc

        if response.status_code >= 400:
            raise OllamaStatusError(response.status_code, _error_body(response.text))

        try:
            data = response.json()
        except ValueError as exc:
            raise OllamaResponseError(f"Undecodable tags response: {exc}") from exc
        return [m["name"] for m in data.get("models", []) if isinstance(m, dict) and "name" in m]

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> OllamaClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


def create_ollama_client(config: OllamaConfig) -> OllamaClient:
    """Factory to create the configured transport client."""
    logger.info("ollama_client_created", base_url=config.base_url, model=config.model)
    return OllamaClient(base_url=config.base_url, timeout_s=config.timeout_s)


def _decode_line(line: str) -> ChatResponse | None:
    line = line.strip()
    if not line:
        return None
    try:
        return ChatResponse.model_validate_json(line)
    except ValidationError as exc:
        logger.warning("ollama_stream_line_skipped", error=str(exc)[:200], preview=line[:80])
        return None


def _error_body(text: str) -> str:
    # Ollama reports failures as {"error": "..."}
    try:
        data = _json.loads(text)
    except ValueError:
        return text[:_ERROR_BODY_LIMIT]
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return text[:_ERROR_BODY_LIMIT]
