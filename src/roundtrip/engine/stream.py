"""Streaming turn engine with a typed event channel.

A producer task drives the rounds and pushes typed events into a bounded
``asyncio.Queue``; the caller pulls them with ``async for``. Text is
forwarded as soon as each chunk arrives. Tool calls are buffered until the
segment ends, then announced, executed, and reported before the follow-up
request, so tool markers always sit between the text segments they
separate.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

from roundtrip.core.errors import RoundLimitError, TurnError
from roundtrip.engine.turn import TurnResult, execute_tool_calls
from roundtrip.engine.usage import UsageAccumulator
from roundtrip.providers.base import Message, TokenUsage, ensure_call_ids

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Sequence

    from roundtrip.providers.base import StreamingCompletionClient, ToolCall
    from roundtrip.tools.base import ToolContext
    from roundtrip.tools.dispatcher import ToolExecutor

logger = logging.getLogger(__name__)

DEFAULT_PREVIEW_CHARS = 100


# ─── Events ───────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class TextChunk:
    """A piece of assistant text, forwarded as it arrives."""

    text: str


@dataclass(frozen=True, slots=True)
class ToolStart:
    """A buffered tool call is about to run."""

    call: ToolCall

    @property
    def marker(self) -> str:
        return f"Executing {self.call.name}..."


@dataclass(frozen=True, slots=True)
class ToolResult:
    """A tool call finished; ``preview`` is the truncated content."""

    call: ToolCall
    content: str
    preview: str


@dataclass(frozen=True, slots=True)
class TurnComplete:
    """Last event of a successful turn."""

    result: TurnResult


TurnEvent = Union[TextChunk, ToolStart, ToolResult, TurnComplete]  # noqa: UP007


def preview_text(text: str, limit: int = DEFAULT_PREVIEW_CHARS) -> str:
    """First *limit* characters, with an ellipsis if anything was cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


@dataclass(frozen=True, slots=True)
class _Failure:
    error: BaseException


_DONE = object()


# ─── Engine ───────────────────────────────────────────────────


class StreamingTurn:
    """One streamed turn.

    Usage::

        turn = StreamingTurn(history, client, dispatcher, tools)
        async for event in turn.events():
            ...
        turn.result  # TurnResult once the stream is exhausted
    """

    def __init__(
        self,
        history: Sequence[Message],
        client: StreamingCompletionClient,
        executor: ToolExecutor,
        tools: Sequence[dict[str, Any]] = (),
        *,
        context: ToolContext | None = None,
        preview_chars: int = DEFAULT_PREVIEW_CHARS,
        max_rounds: int = 0,
        queue_size: int = 1,
    ) -> None:
        self._history = tuple(history)
        self._client = client
        self._executor = executor
        self._tools = tuple(tools)
        self._context = context
        self._preview_chars = preview_chars
        self._max_rounds = max_rounds
        self._queue_size = queue_size
        self.result: TurnResult | None = None

    async def events(self) -> AsyncIterator[TurnEvent]:
        """Yield events until the turn completes.

        Raises:
            TurnError: The completion stream failed. Carries the history
                committed before the failing round.
        """
        queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=self._queue_size)
        producer = asyncio.create_task(self._produce(queue))
        try:
            while True:
                item = await queue.get()
                if item is _DONE:
                    break
                if isinstance(item, _Failure):
                    raise item.error
                if isinstance(item, TurnComplete):
                    self.result = item.result
                yield item
        finally:
            if not producer.done():
                producer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await producer

    async def _produce(self, queue: asyncio.Queue[Any]) -> None:
        try:
            result = await self._run(queue.put)
        except Exception as e:
            await queue.put(_Failure(e))
            return
        await queue.put(TurnComplete(result))
        await queue.put(_DONE)

    async def _run(self, emit: Callable[[Any], Awaitable[None]]) -> TurnResult:
        messages: list[Message] = list(self._history)
        usage = UsageAccumulator()
        round_num = 0

        while True:
            if self._max_rounds and round_num >= self._max_rounds:
                raise RoundLimitError(
                    self._max_rounds, messages=messages, usage=usage.total
                )
            round_num += 1

            text_parts: list[str] = []
            calls: list[ToolCall] = []
            round_usage = TokenUsage()
            try:
                async for chunk in self._client.stream(tuple(messages), self._tools):
                    if chunk.usage is not None:
                        round_usage = round_usage + chunk.usage
                    # A chunk with tool calls is never read as text.
                    if chunk.function_calls:
                        calls.extend(chunk.function_calls)
                    elif chunk.text:
                        text_parts.append(chunk.text)
                        await emit(TextChunk(chunk.text))
            except Exception as e:
                msg = f"Completion stream failed in round {round_num}: {e}"
                raise TurnError(msg, messages=messages, usage=usage.total) from e

            usage.add(round_usage)

            if not calls:
                messages.append(Message.assistant("".join(text_parts)))
                logger.debug("Streamed turn finished after %d round(s)", round_num)
                return TurnResult(messages=tuple(messages), usage=usage.total)

            calls = list(ensure_call_ids(calls))
            logger.debug("Round %d: %d buffered tool call(s)", round_num, len(calls))
            messages.append(Message.assistant(tool_calls=calls))
            for call in calls:
                await emit(ToolStart(call))
            results = await execute_tool_calls(calls, self._executor, self._context)
            for call, message in zip(calls, results, strict=True):
                content = message.content or ""
                await emit(
                    ToolResult(
                        call=call,
                        content=content,
                        preview=preview_text(content, self._preview_chars),
                    )
                )
            # All results of the round go back in one follow-up request.
            messages.extend(results)


async def stream_turn(
    history: Sequence[Message],
    client: StreamingCompletionClient,
    executor: ToolExecutor,
    tools: Sequence[dict[str, Any]] = (),
    **kwargs: Any,
) -> AsyncIterator[TurnEvent]:
    """Shorthand for ``StreamingTurn(...).events()``."""
    turn = StreamingTurn(history, client, executor, tools, **kwargs)
    async for event in turn.events():
        yield event
