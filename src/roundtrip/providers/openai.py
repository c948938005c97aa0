"""OpenAI-compatible completion client (OpenRouter by default)."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any

import openai

from roundtrip.core.errors import (
    ModelNotFoundError,
    ProviderAuthError,
    ProviderOverloadedError,
    ProviderRateLimitError,
    ProviderTimeoutError,
)
from roundtrip.core.retry import RetryConfig, retry_with_backoff
from roundtrip.providers.base import (
    CompletionResult,
    Message,
    StreamChunk,
    TokenUsage,
    ToolCall,
    new_call_id,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

PROVIDER_ID = "openai"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


def _map_error(e: openai.APIError) -> Exception:
    """Map OpenAI SDK errors to the roundtrip error hierarchy."""
    if isinstance(e, openai.AuthenticationError):
        return ProviderAuthError(PROVIDER_ID, str(e))
    if isinstance(e, openai.RateLimitError):
        retry_after = None
        if hasattr(e, "response") and e.response is not None:
            raw = e.response.headers.get("retry-after")
            if raw is not None:
                with contextlib.suppress(ValueError):
                    retry_after = float(raw)
        return ProviderRateLimitError(PROVIDER_ID, retry_after=retry_after)
    if isinstance(e, openai.APITimeoutError):
        return ProviderTimeoutError(PROVIDER_ID, str(e))
    if isinstance(e, openai.InternalServerError):
        return ProviderOverloadedError(PROVIDER_ID, str(e))
    if isinstance(e, openai.NotFoundError):
        return ModelNotFoundError(PROVIDER_ID, str(e))
    return ProviderOverloadedError(PROVIDER_ID, str(e))


def _build_messages(messages: Sequence[Message]) -> list[dict[str, Any]]:
    """Convert history to the chat-completions message list."""
    return [msg.to_dict() for msg in messages]


def _usage_from(raw: Any) -> TokenUsage | None:
    if raw is None:
        return None
    return TokenUsage(
        prompt_tokens=raw.prompt_tokens or 0,
        completion_tokens=raw.completion_tokens or 0,
    )


class _ToolCallBuffer:
    """Reassembles streamed tool-call deltas, keyed by delta index."""

    def __init__(self) -> None:
        self._parts: dict[int, dict[str, Any]] = {}

    def add(self, delta: Any) -> None:
        slot = self._parts.setdefault(
            delta.index, {"id": "", "name": "", "arguments": []}
        )
        if delta.id:
            slot["id"] = delta.id
        function = delta.function
        if function is not None:
            if function.name:
                slot["name"] += function.name
            if function.arguments:
                slot["arguments"].append(function.arguments)

    def __bool__(self) -> bool:
        return bool(self._parts)

    def drain(self) -> tuple[ToolCall, ...]:
        calls = tuple(
            ToolCall(
                id=part["id"] or f"call_{index}",
                name=part["name"],
                arguments="".join(part["arguments"]) or "{}",
            )
            for index, part in sorted(self._parts.items())
        )
        self._parts.clear()
        return calls


class OpenAICompletionClient:
    """Completion client for any OpenAI-compatible chat-completions API.

    Defaults to OpenRouter. Transient failures (rate limit, timeout,
    overload) are retried with backoff before surfacing; everything else
    raises immediately.
    """

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        *,
        base_url: str | None = OPENROUTER_BASE_URL,
        extra_body: dict[str, Any] | None = None,
        retry: RetryConfig | None = None,
        client: openai.AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self._extra_body = extra_body or {}
        self._retry = retry or RetryConfig()
        if client is not None:
            self._client = client
        else:
            kwargs: dict[str, Any] = {}
            if api_key is not None:
                kwargs["api_key"] = api_key
            if base_url is not None:
                kwargs["base_url"] = base_url
            self._client = openai.AsyncOpenAI(**kwargs)

    @property
    def provider_id(self) -> str:
        return PROVIDER_ID

    def _request_kwargs(
        self,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": _build_messages(messages),
        }
        if tools:
            kwargs["tools"] = list(tools)
        if self._extra_body:
            kwargs["extra_body"] = self._extra_body
        return kwargs

    async def complete(
        self,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
    ) -> CompletionResult:
        kwargs = self._request_kwargs(messages, tools)

        async def _call() -> Any:
            try:
                return await self._client.chat.completions.create(**kwargs)
            except openai.APIError as e:
                raise _map_error(e) from e

        response = await retry_with_backoff(_call, self._retry)

        # Some OpenAI-compatible gateways report failures in-band.
        error = getattr(response, "error", None)
        if error:
            text = error.get("message") if isinstance(error, dict) else str(error)
            return CompletionResult(
                message=Message.assistant(""),
                usage=_usage_from(response.usage),
                error=str(text),
            )

        if not response.choices:
            return CompletionResult(
                message=Message.assistant(""),
                usage=_usage_from(response.usage),
                error="Completion response has no choices",
            )

        raw = response.choices[0].message
        tool_calls = [
            ToolCall(
                id=tc.id or new_call_id(),
                name=tc.function.name,
                arguments=tc.function.arguments or "{}",
            )
            for tc in raw.tool_calls or []
        ]
        message = Message.assistant(
            raw.content or "",
            tool_calls=tool_calls,
            reasoning_details=getattr(raw, "reasoning_details", None),
        )
        return CompletionResult(message=message, usage=_usage_from(response.usage))

    async def stream(
        self,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
    ) -> AsyncIterator[StreamChunk]:
        """Yield text deltas as they arrive and tool calls once complete.

        Tool-call arguments arrive in fragments; they are buffered and
        yielded as a single tool-call chunk after the stream ends.
        """
        kwargs = self._request_kwargs(messages, tools)
        kwargs["stream_options"] = {"include_usage": True}

        async def _open() -> Any:
            try:
                return await self._client.chat.completions.create(
                    stream=True, **kwargs
                )
            except openai.APIError as e:
                raise _map_error(e) from e

        response = await retry_with_backoff(_open, self._retry, label="stream request")
        try:
            usage: TokenUsage | None = None
            buffer = _ToolCallBuffer()
            async for chunk in response:
                if chunk.usage is not None:
                    usage = _usage_from(chunk.usage)
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                if delta.tool_calls:
                    for tc_delta in delta.tool_calls:
                        buffer.add(tc_delta)
                elif delta.content:
                    yield StreamChunk(text=delta.content)

            if buffer:
                yield StreamChunk(function_calls=buffer.drain(), usage=usage)
            elif usage is not None:
                yield StreamChunk(usage=usage)

        except openai.APIError as e:
            raise _map_error(e) from e
