"""Google (Gemini) completion client."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from google import genai
from google.genai import errors as genai_errors

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

PROVIDER_ID = "google"


def _map_error(e: Exception) -> Exception:
    """Map Google GenAI errors to the roundtrip error hierarchy."""
    msg = str(e)
    if isinstance(e, genai_errors.ClientError):
        lower = msg.lower()
        if "api key" in lower or "auth" in lower or "permission" in lower:
            return ProviderAuthError(PROVIDER_ID, msg)
        if "not found" in lower or "404" in lower:
            return ModelNotFoundError(PROVIDER_ID, msg)
        if "429" in lower or "rate" in lower:
            return ProviderRateLimitError(PROVIDER_ID)
        return ProviderTimeoutError(PROVIDER_ID, msg)
    if isinstance(e, genai_errors.ServerError):
        return ProviderOverloadedError(PROVIDER_ID, msg)
    return ProviderOverloadedError(PROVIDER_ID, msg)


def _parse_args(arguments: str) -> dict[str, Any]:
    try:
        parsed = json.loads(arguments or "{}")
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _build_contents(
    messages: Sequence[Message],
) -> tuple[str | None, list[dict[str, Any]]]:
    """Split history into a system instruction and Gemini contents.

    Consecutive tool results are folded into one user turn of
    ``function_response`` parts, so a round's results go back together.
    """
    system_parts: list[str] = []
    contents: list[dict[str, Any]] = []

    for msg in messages:
        if msg.role == "system":
            system_parts.append(msg.content or "")
        elif msg.role == "tool":
            part = {
                "function_response": {
                    "name": msg.name or "",
                    "response": {"result": msg.content or ""},
                }
            }
            last = contents[-1] if contents else None
            if last is not None and last.get("_tool_results"):
                last["parts"].append(part)
            else:
                contents.append(
                    {"role": "user", "parts": [part], "_tool_results": True}
                )
        elif msg.role == "assistant" and msg.tool_calls:
            contents.append(
                {
                    "role": "model",
                    "parts": [
                        {
                            "function_call": {
                                "name": tc.name,
                                "args": _parse_args(tc.arguments),
                            }
                        }
                        for tc in msg.tool_calls
                    ],
                }
            )
        else:
            role = "model" if msg.role == "assistant" else "user"
            contents.append({"role": role, "parts": [{"text": msg.content or ""}]})

    for entry in contents:
        entry.pop("_tool_results", None)

    system = "\n\n".join(system_parts) if system_parts else None
    return system, contents


def _build_tools(tools: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    """Convert chat-completions function schemas to Gemini declarations."""
    declarations: list[dict[str, Any]] = []
    for schema in tools:
        function = schema.get("function", schema)
        declarations.append(
            {
                "name": function["name"],
                "description": function.get("description", ""),
                "parameters": function.get("parameters") or {"type": "object"},
            }
        )
    return [{"function_declarations": declarations}] if declarations else []


def _to_tool_calls(function_calls: Any) -> tuple[ToolCall, ...]:
    calls: list[ToolCall] = []
    for fc in function_calls or []:
        if not fc or not fc.name:
            continue
        call_id = getattr(fc, "id", None) or new_call_id()
        calls.append(
            ToolCall(
                id=str(call_id),
                name=str(fc.name),
                arguments=json.dumps(dict(fc.args) if fc.args else {}),
            )
        )
    return tuple(calls)


def _usage_from(metadata: Any) -> TokenUsage | None:
    if not metadata:
        return None
    return TokenUsage(
        prompt_tokens=metadata.prompt_token_count or 0,
        completion_tokens=metadata.candidates_token_count or 0,
    )


class GeminiCompletionClient:
    """Completion client for Google Gemini models."""

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        *,
        retry: RetryConfig | None = None,
        client: genai.Client | None = None,
    ) -> None:
        self.model = model
        self._retry = retry or RetryConfig()
        self._client = client or genai.Client(api_key=api_key)

    @property
    def provider_id(self) -> str:
        return PROVIDER_ID

    def _config(
        self,
        system: str | None,
        tools: Sequence[dict[str, Any]],
    ) -> genai.types.GenerateContentConfig:
        config_kwargs: dict[str, Any] = {"system_instruction": system}
        declarations = _build_tools(tools)
        if declarations:
            config_kwargs["tools"] = declarations
        return genai.types.GenerateContentConfig(**config_kwargs)

    async def complete(
        self,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
    ) -> CompletionResult:
        system, contents = _build_contents(messages)
        config = self._config(system, tools)

        async def _call() -> Any:
            try:
                return await self._client.aio.models.generate_content(
                    model=self.model,
                    contents=contents,
                    config=config,
                )
            except (genai_errors.ClientError, genai_errors.ServerError) as e:
                raise _map_error(e) from e

        response = await retry_with_backoff(_call, self._retry)

        tool_calls = _to_tool_calls(response.function_calls)
        # .text warns when the candidate holds function-call parts
        content = "" if tool_calls else (response.text or "")
        return CompletionResult(
            message=Message.assistant(content, tool_calls=tool_calls),
            usage=_usage_from(response.usage_metadata),
        )

    async def stream(
        self,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
    ) -> AsyncIterator[StreamChunk]:
        system, contents = _build_contents(messages)
        config = self._config(system, tools)

        async def _open() -> Any:
            try:
                return await self._client.aio.models.generate_content_stream(
                    model=self.model,
                    contents=contents,
                    config=config,
                )
            except (genai_errors.ClientError, genai_errors.ServerError) as e:
                raise _map_error(e) from e

        response = await retry_with_backoff(_open, self._retry, label="stream request")
        try:
            # usage_metadata is cumulative; only the last report counts
            usage: TokenUsage | None = None
            async for chunk in response:
                usage = _usage_from(chunk.usage_metadata) or usage
                calls = _to_tool_calls(chunk.function_calls)
                if calls:
                    yield StreamChunk(function_calls=calls)
                    continue
                text = chunk.text or ""
                if text:
                    yield StreamChunk(text=text)

            if usage is not None:
                yield StreamChunk(usage=usage)

        except (genai_errors.ClientError, genai_errors.ServerError) as e:
            raise _map_error(e) from e
