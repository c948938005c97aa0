"""Tool framework: the tool protocol, registry, dispatch, and built-ins.

Tools are resolved by name from a :class:`ToolRegistry`; the
:class:`ToolDispatcher` validates arguments and turns every failure
into an ``Error: ...`` result string the model can read.
"""

from roundtrip.tools.base import Tool, ToolContext, ToolDefinition
from roundtrip.tools.dispatcher import ToolDispatcher, ToolExecutor
from roundtrip.tools.registry import ToolRegistry

__all__ = [
    "Tool",
    "ToolContext",
    "ToolDefinition",
    "ToolDispatcher",
    "ToolExecutor",
    "ToolRegistry",
]
