"""Backoff policy for transient completion-service failures.

Rate limits, timeouts and overload responses are retried with capped
exponential backoff; a rate limit's ``retry_after`` hint takes precedence
over the computed delay. Any other error propagates on the first failure.
Clients retry only the request itself: once a stream has started
yielding, a failure goes straight to the caller.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from roundtrip.core.errors import (
    ProviderOverloadedError,
    ProviderRateLimitError,
    ProviderTimeoutError,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS: tuple[type[Exception], ...] = (
    ProviderRateLimitError,
    ProviderTimeoutError,
    ProviderOverloadedError,
)


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """How often and how patiently to retry one request."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    jitter: bool = True

    def delay_for(self, attempt: int, error: Exception) -> float:
        """Seconds to wait before retry number ``attempt + 1``."""
        if isinstance(error, ProviderRateLimitError) and error.retry_after is not None:
            return min(error.retry_after, self.max_delay)

        delay = min(self.base_delay * (2**attempt), self.max_delay)
        if self.jitter:
            delay *= random.uniform(0.5, 1.5)
        return delay


def is_retryable(error: Exception) -> bool:
    return isinstance(error, RETRYABLE_ERRORS)


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    *,
    label: str = "completion request",
) -> T:
    """Await ``fn()``, retrying transient provider errors.

    Args:
        fn: Zero-arg callable issuing the request.
        config: Retry policy; defaults to :class:`RetryConfig`.
        label: Names the request in log messages.

    Raises:
        The last error once retries are exhausted, or the first
        non-retryable error unchanged.
    """
    cfg = config or RetryConfig()
    attempt = 0
    while True:
        try:
            return await fn()
        except RETRYABLE_ERRORS as e:
            if attempt >= cfg.max_retries:
                logger.warning(
                    "%s failed after %d attempt(s): %s", label, attempt + 1, e
                )
                raise
            delay = cfg.delay_for(attempt, e)
            attempt += 1
            logger.info(
                "%s: %s; retry %d/%d in %.1fs",
                label,
                e,
                attempt,
                cfg.max_retries,
                delay,
            )
            await asyncio.sleep(delay)
