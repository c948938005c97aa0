"""Tool registry: the name -> tool mapping shared by a process.

Built once at startup; turns and dispatchers only read from it. Sub-agents
get a restricted copy through :meth:`ToolRegistry.subset`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from roundtrip.tools.base import ToolDefinition

if TYPE_CHECKING:
    from collections.abc import Iterable

    from roundtrip.tools.base import Tool


def definition_of(tool: Tool) -> ToolDefinition:
    return ToolDefinition(
        name=tool.name,
        description=tool.description,
        parameters_schema=tool.parameters_schema,
    )


class ToolRegistry:
    """Tools by name, kept in registration order.

    The order is what the model sees in the ``tools`` list, so it is
    preserved through :meth:`subset` as well.
    """

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def register(self, tool: Tool) -> None:
        """Raises ``ValueError`` when the name is taken."""
        if tool.name in self._tools:
            msg = f"Tool already registered: {tool.name}"
            raise ValueError(msg)
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool:
        """Raises ``KeyError`` for an unregistered name."""
        try:
            return self._tools[name]
        except KeyError:
            msg = f"Tool not found: {name}"
            raise KeyError(msg) from None

    def list_names(self) -> list[str]:
        return list(self._tools)

    def list_definitions(self) -> list[ToolDefinition]:
        return [definition_of(tool) for tool in self._tools.values()]

    def function_schemas(self) -> list[dict[str, Any]]:
        """The chat-completions ``tools`` list for this registry."""
        return [d.to_function_schema() for d in self.list_definitions()]

    def subset(self, names: Iterable[str]) -> ToolRegistry:
        """A new registry holding only ``names``, in that order.

        Raises:
            KeyError: If any name is not registered.
        """
        return ToolRegistry(self.get(name) for name in names)
