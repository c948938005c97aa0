"""Completion clients and the conversation data model."""

from roundtrip.providers.base import (
    CompletionClient,
    CompletionResult,
    Message,
    StreamChunk,
    StreamingCompletionClient,
    TokenUsage,
    ToolCall,
)
from roundtrip.providers.pricing import ModelPricing, PricingCatalog

__all__ = [
    "CompletionClient",
    "CompletionResult",
    "Message",
    "ModelPricing",
    "PricingCatalog",
    "StreamChunk",
    "StreamingCompletionClient",
    "TokenUsage",
    "ToolCall",
]
