"""Exception hierarchy for roundtrip.

Every module imports from here. The hierarchy is:

    RoundtripError
    ├── ProviderError(provider_id)
    │   ├── ProviderAuthError
    │   ├── ProviderRateLimitError(retry_after)
    │   ├── ProviderTimeoutError
    │   ├── ProviderOverloadedError
    │   ├── ModelNotFoundError
    │   ├── CompletionError
    │   └── MalformedResponseError
    ├── TurnError(messages, usage)
    │   └── RoundLimitError(max_rounds)
    ├── ToolError
    │   └── ToolArgumentError(tool_name, problems)
    ├── ConfigError
    └── SessionError

Only provider errors and configuration errors abort a turn. Tool failures
are folded back into the conversation as tool-result text.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from roundtrip.providers.base import Message, TokenUsage


class RoundtripError(Exception):
    """Base exception for all roundtrip errors."""


# ─── Provider Errors ──────────────────────────────────────────


class ProviderError(RoundtripError):
    """Base for completion-service errors."""

    def __init__(self, provider_id: str, message: str) -> None:
        self.provider_id = provider_id
        super().__init__(f"[{provider_id}] {message}")


class ProviderAuthError(ProviderError):
    """Invalid or missing API key."""


class ProviderRateLimitError(ProviderError):
    """Rate limit exceeded. Includes retry_after if available."""

    def __init__(self, provider_id: str, retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        msg = "Rate limited"
        if retry_after is not None:
            msg += f" (retry after {retry_after}s)"
        super().__init__(provider_id, msg)


class ProviderTimeoutError(ProviderError):
    """Completion call timed out."""


class ProviderOverloadedError(ProviderError):
    """Provider is overloaded (529, 503)."""


class ModelNotFoundError(ProviderError):
    """Requested model not available from this provider."""


class CompletionError(ProviderError):
    """The service answered, but the payload carries an error."""


class MalformedResponseError(ProviderError):
    """The service answered with a payload we cannot interpret."""


# ─── Turn Errors ──────────────────────────────────────────────


class TurnError(RoundtripError):
    """A turn stopped before reaching a final assistant message.

    ``messages`` holds the history committed by the rounds that completed
    before the failure; the failing round contributes nothing.
    """

    def __init__(
        self,
        message: str,
        *,
        messages: Sequence[Message] = (),
        usage: TokenUsage | None = None,
    ) -> None:
        self.messages = tuple(messages)
        self.usage = usage
        super().__init__(message)


class RoundLimitError(TurnError):
    """The turn used up its completion-request budget."""

    def __init__(
        self,
        max_rounds: int,
        *,
        messages: Sequence[Message] = (),
        usage: TokenUsage | None = None,
    ) -> None:
        self.max_rounds = max_rounds
        super().__init__(
            f"Turn exceeded {max_rounds} rounds without a final answer",
            messages=messages,
            usage=usage,
        )


# ─── Tool Errors ──────────────────────────────────────────────


class ToolError(RoundtripError):
    """Base for tool resolution and execution errors."""


class ToolArgumentError(ToolError):
    """Tool arguments failed validation against the tool's schema."""

    def __init__(self, tool_name: str, problems: Sequence[str]) -> None:
        self.tool_name = tool_name
        self.problems = tuple(problems)
        super().__init__(
            f"Invalid arguments for {tool_name}: " + "; ".join(self.problems)
        )


# ─── Configuration Errors ─────────────────────────────────────


class ConfigError(RoundtripError):
    """Invalid configuration."""


# ─── Session Errors ───────────────────────────────────────────


class SessionError(RoundtripError):
    """Session log could not be read or written."""
