"""Conversation data model and completion client interface.

All completion clients implement ``CompletionClient`` and, when they can
stream, ``StreamingCompletionClient``. Data classes are immutable (frozen
dataclasses with slots); conversation history is an append-only sequence
of :class:`Message`.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from roundtrip.core.errors import CompletionError, MalformedResponseError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping, Sequence

ROLES = frozenset({"system", "user", "assistant", "tool"})


def new_call_id() -> str:
    """Fresh id for a tool call the service sent without one."""
    return f"call_{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True, slots=True)
class TokenUsage:
    """Token counts from one or more completion calls."""

    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        """Total tokens consumed (prompt + completion)."""
        return self.prompt_tokens + self.completion_tokens

    def __add__(self, other: TokenUsage) -> TokenUsage:
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> TokenUsage | None:
        """Parse ``{prompt_tokens, completion_tokens}``; None passes through."""
        if not data:
            return None
        return cls(
            prompt_tokens=int(data.get("prompt_tokens") or 0),
            completion_tokens=int(data.get("completion_tokens") or 0),
        )


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A tool invocation requested by a model.

    ``arguments`` is the raw JSON text exactly as the model produced it;
    parsing and validation happen in the dispatcher.
    """

    id: str
    name: str
    arguments: str = "{}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ToolCall:
        function = data.get("function") or {}
        arguments = function.get("arguments", "{}")
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments)
        return cls(
            id=str(data.get("id") or new_call_id()),
            name=str(function.get("name", "")),
            arguments=arguments or "{}",
        )


def ensure_call_ids(calls: Sequence[ToolCall]) -> tuple[ToolCall, ...]:
    """Give every id-less call a fresh id, so its result can be matched."""
    return tuple(
        call if call.id else replace(call, id=new_call_id()) for call in calls
    )


@dataclass(frozen=True, slots=True)
class Message:
    """A single entry of conversation history."""

    role: str  # "system", "user", "assistant", "tool"
    content: str | None = None
    tool_calls: tuple[ToolCall, ...] | None = None
    tool_call_id: str | None = None
    name: str | None = None
    reasoning_details: Any = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            msg = f"Unknown message role: {self.role!r}"
            raise ValueError(msg)
        if self.role == "tool" and not self.tool_call_id:
            msg = "Tool messages require a tool_call_id"
            raise ValueError(msg)

    # ── Factories ────────────────────────────────────────────────

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role="user", content=content)

    @classmethod
    def assistant(
        cls,
        content: str | None = None,
        *,
        tool_calls: Sequence[ToolCall] | None = None,
        reasoning_details: Any = None,
    ) -> Message:
        """Build an assistant message carrying text or tool calls, not both."""
        if tool_calls:
            return cls(
                role="assistant",
                tool_calls=tuple(tool_calls),
                reasoning_details=reasoning_details,
            )
        return cls(
            role="assistant",
            content=content or "",
            reasoning_details=reasoning_details,
        )

    @classmethod
    def tool_result(cls, tool_call_id: str, name: str, content: str) -> Message:
        return cls(role="tool", content=content, tool_call_id=tool_call_id, name=name)

    # ── Wire format ──────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the OpenAI chat-completions message shape."""
        data: dict[str, Any] = {"role": self.role}
        if self.content is not None:
            data["content"] = self.content
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        if self.name is not None:
            data["name"] = self.name
        if self.reasoning_details is not None:
            data["reasoning_details"] = self.reasoning_details
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Message:
        raw_calls = data.get("tool_calls")
        tool_calls = (
            tuple(ToolCall.from_dict(tc) for tc in raw_calls) if raw_calls else None
        )
        return cls(
            role=str(data.get("role", "")),
            content=data.get("content"),
            tool_calls=tool_calls,
            tool_call_id=data.get("tool_call_id"),
            name=data.get("name"),
            reasoning_details=data.get("reasoning_details"),
        )


@dataclass(frozen=True, slots=True)
class CompletionResult:
    """One batch response from the completion service."""

    message: Message
    usage: TokenUsage | None = None
    error: str | None = None

    @property
    def tool_calls(self) -> tuple[ToolCall, ...]:
        return self.message.tool_calls or ()

    @classmethod
    def from_payload(
        cls,
        payload: Mapping[str, Any],
        *,
        provider_id: str = "unknown",
    ) -> CompletionResult:
        """Parse the batch wire form ``{choices, usage?, error?}``.

        A payload with an ``error`` entry produces a result with ``error``
        set and an empty assistant message, so the caller decides whether
        to raise.

        Raises:
            MalformedResponseError: If the payload has neither choices nor
                an error.
        """
        usage = TokenUsage.from_dict(payload.get("usage"))
        error = payload.get("error")
        if error:
            text = error.get("message") if isinstance(error, dict) else str(error)
            return cls(
                message=Message.assistant(""),
                usage=usage,
                error=str(text or "Unknown completion error"),
            )

        choices = payload.get("choices")
        if not choices or not isinstance(choices, list):
            msg = "Completion payload has no choices"
            raise MalformedResponseError(provider_id, msg)
        choice = choices[0]
        raw = choice.get("message") if isinstance(choice, dict) else None
        if not isinstance(raw, dict):
            msg = "Completion choice has no message"
            raise MalformedResponseError(provider_id, msg)

        raw_calls = raw.get("tool_calls") or []
        tool_calls = [ToolCall.from_dict(tc) for tc in raw_calls]
        message = Message.assistant(
            raw.get("content") or "",
            tool_calls=tool_calls,
            reasoning_details=raw.get("reasoning_details"),
        )
        return cls(message=message, usage=usage)

    def raise_for_error(self, provider_id: str = "unknown") -> None:
        """Raise :class:`CompletionError` if the service reported one."""
        if self.error is not None:
            raise CompletionError(provider_id, self.error)


@dataclass(frozen=True, slots=True)
class StreamChunk:
    """A single chunk from a streaming response.

    A chunk carries either text or tool calls. Providers that report usage
    attach it to whichever chunk carries it (usually the last).
    """

    text: str = ""
    function_calls: tuple[ToolCall, ...] = ()
    usage: TokenUsage | None = None


@runtime_checkable
class CompletionClient(Protocol):
    """Protocol for batch completion clients.

    Implementations are stateless with respect to the conversation: they
    receive the full history on every call. The engine owns all state.
    """

    @property
    def provider_id(self) -> str:
        """Unique identifier for this client (e.g. 'openai', 'google')."""
        ...

    async def complete(
        self,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
    ) -> CompletionResult:
        """Send the history and tool schemas, wait for one response.

        Raises ProviderError on transport failure.
        """
        ...


@runtime_checkable
class StreamingCompletionClient(Protocol):
    """Protocol for clients that yield response chunks as they arrive."""

    @property
    def provider_id(self) -> str: ...

    def stream(
        self,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
    ) -> AsyncIterator[StreamChunk]:
        """Send the history and tool schemas, yield chunks.

        Raises ProviderError on transport failure.
        """
        ...
