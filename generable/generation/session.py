"""
Generable — Generation Session

Drives the attempt loop for one structured generation request:

  build request -> call model -> normalise text -> decode against schema
      success -> value
      failure -> RetryController -> (retry with annotated prompt | give up)

Two modes: generate() returns the value or raises the terminal
GenerableError; stream() is an async generator of StreamResult events
ending in exactly one `complete` or `failed`.

Attempts are strictly sequential and all retry state lives in a
RetryController created per call, so one session object can serve several
requests one after another.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator
from typing import Generic, TypeVar

import httpx
import structlog
from pydantic import BaseModel

from generable.clients.errors import (
    OllamaConnectionError,
    OllamaResponseError,
    OllamaStatusError,
)
from generable.clients.types import ChatMessage, ChatTransport
from generable.generation.retry import RetryController
from generable.generation.transcript import TranscriptBuilder
from generable.generation.types import (
    GenerableError,
    PartialState,
    RetryContext,
    RetryPolicy,
    StreamOptions,
    StreamResult,
)
from generable.parsing.decoder import decode, decode_partial
from generable.parsing.response import ProcessedKind, normalize_text, process_content, process_message

logger = structlog.get_logger()

M = TypeVar("M", bound=BaseModel)


class GenerationSession(Generic[M]):
    def __init__(
        self,
        client: ChatTransport,
        builder: TranscriptBuilder,
        schema: type[M],
    ) -> None:
        self._client = client
        self._builder = builder
        self._schema = schema

    # ─── Non-streaming ────────────────────────────────────────────

    async def generate(self, prompt: str, policy: RetryPolicy | None = None) -> M:
        controller = RetryController(policy)
        context: RetryContext | None = None

        while True:
            request = self._builder.build(self._prompt_for(controller, prompt, context), stream=False)
            attempt = controller.current_attempt
            content = ""

            try:
                response = await self._client.chat(request)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                error = map_transport_error(exc)
            else:
                content = _message_text(response.message)
                error, value = self._decode(content)
                if value is not None:
                    controller.record_success()
                    logger.info("generation_succeeded", schema=self._schema.__name__, attempt=attempt)
                    return value

            context = controller.record_failure(error, content)
            if context is None:
                final = controller.final_error()
                logger.error(
                    "generation_failed",
                    schema=self._schema.__name__,
                    attempts=final.attempts,
                    error=final.detail,
                )
                raise final

            await self._backoff(controller, context)

    # ─── Streaming ────────────────────────────────────────────────

    async def stream(
        self,
        prompt: str,
        options: StreamOptions | None = None,
    ) -> AsyncIterator[StreamResult[M]]:
        options = options or StreamOptions()
        controller = RetryController(options.retry_policy)
        context: RetryContext | None = None

        while True:
            request = self._builder.build(self._prompt_for(controller, prompt, context), stream=True)
            attempt = controller.current_attempt
            accumulated = ""
            error: GenerableError | None = None

            try:
                async with contextlib.aclosing(self._client.stream_chat(request)) as chunks:
                    async for chunk in chunks:
                        if not chunk.content:
                            continue
                        accumulated += chunk.content
                        if (
                            options.yield_partial_values
                            and len(accumulated) >= options.min_content_for_parse
                        ):
                            yield StreamResult.partial(PartialState(
                                accumulated_content=accumulated,
                                partial_value=decode_partial(accumulated, self._schema),
                            ))
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                error = map_transport_error(exc)

            if error is None:
                text, _ = normalize_text(accumulated)
                error, value = self._decode(text)
                if value is not None:
                    controller.record_success()
                    logger.info(
                        "generation_succeeded",
                        schema=self._schema.__name__,
                        attempt=attempt,
                        streamed=True,
                    )
                    yield StreamResult.complete(value)
                    return

            context = controller.record_failure(error, accumulated)
            if context is None:
                final = controller.final_error()
                logger.error(
                    "generation_failed",
                    schema=self._schema.__name__,
                    attempts=final.attempts,
                    error=final.detail,
                    streamed=True,
                )
                yield StreamResult.failed(final)
                return

            yield StreamResult.retrying(context)
            await self._backoff(controller, context)

    # ─── Internals ────────────────────────────────────────────────

    def _prompt_for(
        self,
        controller: RetryController,
        prompt: str,
        context: RetryContext | None,
    ) -> str:
        if context is None:
            return prompt
        return controller.build_retry_prompt(prompt, context)

    def _decode(self, text: str) -> tuple[GenerableError, None] | tuple[None, M]:
        if not text.strip():
            return GenerableError.empty_response(), None
        outcome = decode(text, self._schema)
        if outcome.ok:
            assert outcome.value is not None
            return None, outcome.value
        return outcome.to_generable_error(), None

    async def _backoff(self, controller: RetryController, context: RetryContext) -> None:
        delay = controller.retry_delay()
        logger.warning(
            "generation_retrying",
            schema=self._schema.__name__,
            next_attempt=context.attempt_number + 1,
            max_attempts=context.max_attempts,
            error_kind=context.error.kind.value,
            delay_s=round(delay, 2),
        )
        await asyncio.sleep(delay)


def map_transport_error(exc: BaseException) -> GenerableError:
    """Map a failure raised by the transport call into the retry taxonomy."""
    match exc:
        case GenerableError():
            return exc
        case OllamaStatusError():
            return GenerableError.connection_error(f"HTTP {exc.status_code}")
        case OllamaConnectionError():
            return GenerableError.connection_error(str(exc))
        case OllamaResponseError():
            return GenerableError.stream_interrupted(str(exc))
        case httpx.TimeoutException() | httpx.TransportError():
            return GenerableError.connection_error(str(exc) or type(exc).__name__)
        case _:
            logger.warning(
                "generation_transport_unexpected_error",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return GenerableError.unknown(str(exc) or type(exc).__name__)


def _message_text(message: ChatMessage | None) -> str:
    if message is None:
        return ""
    processed = process_message(message)
    match processed.kind:
        case ProcessedKind.TOOL_CALLS:
            # Native tool calls win over message.content, which is not decoded
            logger.debug(
                "tool_calls_ignored_for_structured_output",
                count=len(processed.invocations),
                native=bool(message.tool_calls),
                content_dropped=bool(message.tool_calls) and bool(message.content.strip()),
            )
            return process_content(processed.content)
        case ProcessedKind.CONTENT:
            return processed.content
        case ProcessedKind.EMPTY:
            return ""


# ─── Entry points ─────────────────────────────────────────────────


async def generate_with_retry(
    client: ChatTransport,
    builder: TranscriptBuilder,
    schema: type[M],
    prompt: str,
    policy: RetryPolicy | None = None,
) -> M:
    return await GenerationSession(client, builder, schema).generate(prompt, policy)


async def stream_with_retry(
    client: ChatTransport,
    builder: TranscriptBuilder,
    schema: type[M],
    prompt: str,
    options: StreamOptions | None = None,
) -> AsyncIterator[StreamResult[M]]:
    session = GenerationSession(client, builder, schema)
    async with contextlib.aclosing(session.stream(prompt, options)) as results:
        async for result in results:
            yield result
