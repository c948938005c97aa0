"""Tool protocol and data types.

Defines the ``Tool`` protocol that all tool implementations must
satisfy, the schema definition handed to completion clients, and the
per-call :class:`ToolContext`.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from roundtrip.providers.base import CompletionClient, Message

    SessionLoader = Callable[[Sequence[Message]], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    """Schema definition for a tool, suitable for passing to clients."""

    name: str
    description: str
    parameters_schema: dict[str, Any]

    def to_function_schema(self) -> dict[str, Any]:
        """Chat-completions ``tools`` entry for this definition."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters_schema,
            },
        }


@dataclass(frozen=True, slots=True)
class ToolContext:
    """Read-only bundle passed to every tool execution.

    Owned by whoever starts the turn; tools and the dispatcher only read it.
    ``depth`` counts how many delegation levels sit above the current turn.
    Only the top-level turn gets ``load_session``: a sub-agent cannot
    replace the conversation of the runtime that started it.
    """

    client: CompletionClient | None = None
    log_dir: Path = Path(".session_logs")
    load_session: SessionLoader | None = None
    depth: int = 0

    def child(self) -> ToolContext:
        """Context for a turn nested one delegation level deeper."""
        return replace(self, depth=self.depth + 1, load_session=None)


@runtime_checkable
class Tool(Protocol):
    """Protocol that all tool implementations must satisfy."""

    @property
    def name(self) -> str:
        """Unique name for this tool."""
        ...

    @property
    def description(self) -> str:
        """Human-readable description of what the tool does."""
        ...

    @property
    def parameters_schema(self) -> dict[str, Any]:
        """JSON Schema for the tool's parameters."""
        ...

    async def execute(self, args: dict[str, Any], context: ToolContext) -> Any:
        """Execute the tool with already-validated arguments.

        Returns:
            The result; non-string values are coerced by the dispatcher.

        Raises:
            Exception: On execution failure.
        """
        ...
