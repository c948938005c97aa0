"""Tool dispatcher: resolve, validate, execute, and normalize tool calls.

Every outcome of a tool call, including an unknown name, malformed
arguments and exceptions raised by the tool, comes back as a string the
model can read. Nothing raised by a tool escapes :meth:`ToolDispatcher.execute`.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from roundtrip.core.errors import ToolArgumentError
from roundtrip.tools.base import ToolContext
from roundtrip.tools.validation import build_argument_model, validate_arguments

if TYPE_CHECKING:
    from collections.abc import Mapping

    from pydantic import BaseModel

    from roundtrip.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


@runtime_checkable
class ToolExecutor(Protocol):
    """Anything the turn engine can hand tool calls to."""

    async def execute(
        self,
        name: str,
        arguments: str | Mapping[str, Any],
        context: ToolContext | None = None,
    ) -> str: ...


def _parse_arguments(name: str, arguments: str | Mapping[str, Any]) -> dict[str, Any]:
    """Decode raw JSON arguments into a dict.

    Raises:
        ToolArgumentError: If the text is not JSON or not a JSON object.
    """
    if not isinstance(arguments, str):
        return dict(arguments)
    text = arguments.strip() or "{}"
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise ToolArgumentError(name, [f"not valid JSON ({e.msg})"]) from e
    if not isinstance(parsed, dict):
        kind = type(parsed).__name__
        raise ToolArgumentError(name, [f"expected a JSON object, got {kind}"])
    return parsed


class ToolDispatcher:
    """Executes tool calls against a :class:`ToolRegistry`.

    Argument models compiled from tool schemas are cached on the
    dispatcher, not globally.
    """

    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry
        self._models: dict[str, type[BaseModel]] = {}

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    def _argument_model(self, name: str, schema: dict[str, Any]) -> type[BaseModel]:
        model = self._models.get(name)
        if model is None:
            model = build_argument_model(name, schema)
            self._models[name] = model
        return model

    async def execute(
        self,
        name: str,
        arguments: str | Mapping[str, Any],
        context: ToolContext | None = None,
    ) -> str:
        """Run one tool call and return its result as text.

        Returns:
            The tool's output, or one of:
            ``Error: Unknown tool <name>``,
            ``Error: Invalid JSON arguments for <name>: ...``,
            ``Error: Invalid arguments for <name>: ...``,
            ``Error: <message>`` when the tool raises.
        """
        if name not in self._registry:
            logger.debug("Unknown tool requested: %s", name)
            return f"Error: Unknown tool {name}"
        tool = self._registry.get(name)

        try:
            raw_args = _parse_arguments(name, arguments)
        except ToolArgumentError as e:
            problems = "; ".join(e.problems)
            return f"Error: Invalid JSON arguments for {name}: {problems}"

        try:
            args = validate_arguments(
                name,
                self._argument_model(name, tool.parameters_schema),
                raw_args,
            )
        except ToolArgumentError as e:
            return f"Error: {e}"

        try:
            result = await tool.execute(args, context or ToolContext())
        except Exception as e:
            logger.debug("Tool %s failed", name, exc_info=True)
            return f"Error: {e}"

        if isinstance(result, str):
            return result
        return "" if result is None else str(result)
