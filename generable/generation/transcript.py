"""
Generable — Chat Request Builder

Turns a (possibly retry-annotated) prompt into an Ollama chat request that
asks for JSON matching a pydantic schema.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any, Protocol

from pydantic import BaseModel

from generable.clients.types import ChatMessage, ChatRequest, Role


class TranscriptBuilder(Protocol):
    def build(self, prompt: str, *, stream: bool) -> ChatRequest: ...


class ChatRequestBuilder:
    """Default builder: system instructions + JSON-format block, history, prompt."""

    def __init__(
        self,
        model: str,
        schema: type[BaseModel] | None = None,
        instructions: str | None = None,
        history: Sequence[ChatMessage] = (),
        options: dict[str, Any] | None = None,
        keep_alive: str | None = None,
    ) -> None:
        self._model = model
        self._schema = schema
        self._instructions = instructions
        self._history = list(history)
        self._options = options
        self._keep_alive = keep_alive
        self._json_schema = schema.model_json_schema() if schema is not None else None

    def build(self, prompt: str, *, stream: bool) -> ChatRequest:
        messages: list[ChatMessage] = []

        system = self._system_prompt()
        if system:
            messages.append(ChatMessage(role=Role.SYSTEM, content=system))
        messages.extend(self._history)
        messages.append(ChatMessage(role=Role.USER, content=prompt))

        return ChatRequest(
            model=self._model,
            messages=messages,
            stream=stream,
            options=self._options,
            format=self._json_schema,
            keep_alive=self._keep_alive,
            # Thinking models would otherwise put the answer in `thinking`.
            think=False if self._json_schema is not None else None,
        )

    def _system_prompt(self) -> str:
        parts: list[str] = []
        if self._instructions:
            parts.append(self._instructions)
        if self._json_schema is not None:
            parts.append(self._format_block())
        return "\n\n".join(parts)

    def _format_block(self) -> str:
        assert self._json_schema is not None
        required = self._json_schema.get("required", [])
        lines = [
            "Respond only with a single JSON object that matches this JSON Schema.",
            "Do not wrap it in markdown or add any text before or after it.",
            "",
            json.dumps(self._json_schema, indent=2),
        ]
        if required:
            lines += ["", "Required properties: " + ", ".join(required)]
        return "\n".join(lines)
