"""
Generable — Ollama Wire Types

Pydantic models for the subset of the Ollama `/api/chat` contract this
package speaks. Unknown response keys are ignored so newer servers do not
break decoding.
"""

from __future__ import annotations

import enum
from collections.abc import AsyncIterator
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field


class Role(enum.StrEnum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class FunctionCall(BaseModel):
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolCall(BaseModel):
    """A native tool call as returned in `message.tool_calls`."""

    function: FunctionCall


class ToolFunction(BaseModel):
    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)


class ToolDefinition(BaseModel):
    type: str = "function"
    function: ToolFunction


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: Role
    content: str = ""
    thinking: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_name: str | None = None


class ChatRequest(BaseModel):
    model: str
    messages: list[ChatMessage]
    stream: bool = False
    options: dict[str, Any] | None = None
    # "json" or a full JSON Schema (Ollama structured outputs)
    format: str | dict[str, Any] | None = None
    keep_alive: str | None = None
    tools: list[ToolDefinition] | None = None
    think: bool | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class ChatResponse(BaseModel):
    """One complete response, or one chunk of a streamed response."""

    model_config = ConfigDict(extra="ignore")

    model: str = ""
    created_at: str | None = None
    message: ChatMessage | None = None
    done: bool = False
    done_reason: str | None = None
    total_duration: int | None = None
    prompt_eval_count: int | None = None
    eval_count: int | None = None

    @property
    def content(self) -> str:
        return self.message.content if self.message is not None else ""

    @property
    def tool_calls(self) -> list[ToolCall]:
        if self.message is None or not self.message.tool_calls:
            return []
        return self.message.tool_calls


class ChatTransport(Protocol):
    """What a generation session needs from a transport client."""

    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Single-shot call returning the complete response."""
        ...

    def stream_chat(self, request: ChatRequest) -> AsyncIterator[ChatResponse]:
        """Ordered chunks; the last one has `done=True`."""
        ...
