"""Usage accumulation across the rounds of one turn."""

from __future__ import annotations

from roundtrip.providers.base import TokenUsage


class UsageAccumulator:
    """Running token totals for a single turn.

    One accumulator per turn; nested sub-agent turns keep their own.
    """

    def __init__(self) -> None:
        self._total = TokenUsage()

    def add(self, usage: TokenUsage | None) -> None:
        """Record one round's usage. A round without usage counts as zero."""
        if usage is not None:
            self._total = self._total + usage

    @property
    def total(self) -> TokenUsage:
        return self._total
