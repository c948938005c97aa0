"""Core errors and shared utilities."""

from roundtrip.core.errors import (
    CompletionError,
    ConfigError,
    MalformedResponseError,
    ModelNotFoundError,
    ProviderAuthError,
    ProviderError,
    ProviderOverloadedError,
    ProviderRateLimitError,
    ProviderTimeoutError,
    RoundLimitError,
    RoundtripError,
    SessionError,
    ToolArgumentError,
    ToolError,
    TurnError,
)
from roundtrip.core.retry import RetryConfig, is_retryable, retry_with_backoff

__all__ = [
    "CompletionError",
    "ConfigError",
    "MalformedResponseError",
    "ModelNotFoundError",
    "ProviderAuthError",
    "ProviderError",
    "ProviderOverloadedError",
    "ProviderRateLimitError",
    "ProviderTimeoutError",
    "RetryConfig",
    "RoundLimitError",
    "RoundtripError",
    "SessionError",
    "ToolArgumentError",
    "ToolError",
    "TurnError",
    "is_retryable",
    "retry_with_backoff",
]
