"""Turn engine: batch and streamed multi-round turns.

:mod:`roundtrip.engine.runtime` is imported directly; it depends on the
tools package, which itself runs nested turns.
"""

from roundtrip.engine.stream import (
    StreamingTurn,
    TextChunk,
    ToolResult,
    ToolStart,
    TurnComplete,
    TurnEvent,
    preview_text,
    stream_turn,
)
from roundtrip.engine.turn import TurnResult, TurnState, execute_tool_calls, run_turn
from roundtrip.engine.usage import UsageAccumulator

__all__ = [
    "StreamingTurn",
    "TextChunk",
    "ToolResult",
    "ToolStart",
    "TurnComplete",
    "TurnEvent",
    "TurnResult",
    "TurnState",
    "UsageAccumulator",
    "execute_tool_calls",
    "preview_text",
    "stream_turn",
    "run_turn",
]
