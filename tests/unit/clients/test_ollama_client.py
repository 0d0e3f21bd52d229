"""Tests for the Ollama HTTP client against a mocked transport."""

from __future__ import annotations

import json

import httpx
import pytest

from generable.clients.errors import (
    OllamaConnectionError,
    OllamaResponseError,
    OllamaStatusError,
)
from generable.clients.ollama import OllamaClient, create_ollama_client
from generable.clients.types import ChatMessage, ChatRequest, Role
from generable.config import OllamaConfig


def _request(**kwargs) -> ChatRequest:
    return ChatRequest(
        model="llama3.2",
        messages=[ChatMessage(role=Role.USER, content="hi")],
        **kwargs,
    )


def _chunk(content: str, done: bool = False) -> str:
    return json.dumps({
        "model": "llama3.2",
        "message": {"role": "assistant", "content": content},
        "done": done,
    })


def _client(handler) -> OllamaClient:
    return OllamaClient(base_url="http://ollama.test", transport=httpx.MockTransport(handler))


class TestChat:
    @pytest.mark.asyncio
    async def test_posts_non_streaming_payload(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={
                "model": "llama3.2",
                "created_at": "2024-01-01T00:00:00.123456789Z",
                "message": {"role": "assistant", "content": "hello"},
                "done": True,
                "eval_count": 4,
                "unexpected_field": 1,
            })

        client = _client(handler)
        response = await client.chat(_request(stream=True, format={"type": "object"}))
        await client.close()

        assert response.content == "hello"
        assert response.done is True
        assert response.eval_count == 4
        assert seen[0].url.path == "/api/chat"
        payload = json.loads(seen[0].content)
        assert payload["stream"] is False
        assert payload["format"] == {"type": "object"}
        assert "tools" not in payload

    @pytest.mark.asyncio
    async def test_status_error_surfaces_ollama_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"error": "model 'x' not found"})

        client = _client(handler)
        with pytest.raises(OllamaStatusError) as excinfo:
            await client.chat(_request())
        assert excinfo.value.status_code == 404
        assert excinfo.value.body == "model 'x' not found"
        assert str(excinfo.value) == "HTTP 404: model 'x' not found"

    @pytest.mark.asyncio
    async def test_undecodable_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>oops</html>")

        with pytest.raises(OllamaResponseError):
            await _client(handler).chat(_request())

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(OllamaConnectionError) as excinfo:
            await _client(handler).chat(_request())
        assert "http://ollama.test" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(OllamaConnectionError):
            await _client(handler).chat(_request())


class TestStreamChat:
    @pytest.mark.asyncio
    async def test_reads_ndjson_until_done(self):
        body = "\n".join([
            _chunk('{"a"'),
            "",
            "not json",
            _chunk(": 1}"),
            json.dumps({"model": "llama3.2", "done": True, "done_reason": "stop"}),
            _chunk("after done"),
        ])
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=body.encode())

        client = _client(handler)
        chunks = [chunk async for chunk in client.stream_chat(_request())]

        assert "".join(c.content for c in chunks) == '{"a": 1}'
        assert chunks[-1].done is True
        assert chunks[-1].done_reason == "stop"
        assert len(chunks) == 3
        assert json.loads(seen[0].content)["stream"] is True

    @pytest.mark.asyncio
    async def test_trailing_line_without_newline(self):
        body = _chunk("x") + "\n" + _chunk("y", done=True)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=body.encode())

        chunks = [chunk async for chunk in _client(handler).stream_chat(_request())]
        assert [c.content for c in chunks] == ["x", "y"]

    @pytest.mark.asyncio
    async def test_stream_without_done_is_interrupted(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=(_chunk("x") + "\n").encode())

        with pytest.raises(OllamaResponseError):
            async for _ in _client(handler).stream_chat(_request()):
                pass

    @pytest.mark.asyncio
    async def test_stream_status_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"error": "out of memory"})

        with pytest.raises(OllamaStatusError) as excinfo:
            async for _ in _client(handler).stream_chat(_request()):
                pass
        assert excinfo.value.body == "out of memory"

    @pytest.mark.asyncio
    async def test_stream_connection_refused(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(OllamaConnectionError):
            async for _ in _client(handler).stream_chat(_request()):
                pass


class TestListModels:
    @pytest.mark.asyncio
    async def test_names(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/tags"
            return httpx.Response(200, json={"models": [{"name": "llama3.2"}, {"name": "qwen2.5"}]})

        async with _client(handler) as client:
            assert await client.list_models() == ["llama3.2", "qwen2.5"]


class TestFactory:
    def test_create_from_config(self):
        client = create_ollama_client(OllamaConfig(base_url="http://example:1234/", timeout_s=5))
        assert isinstance(client, OllamaClient)
        assert client.base_url == "http://example:1234"
