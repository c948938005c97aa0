"""Delegate tool: hand a task to a sub-agent running its own turn.

The sub-agent starts from a fresh history (its role prompt plus the task),
sees only the tools its profile lists, and runs one level deeper than the
caller. Its final answer becomes the delegate call's result. Whatever goes
wrong inside the sub-agent comes back as an ``Error: ...`` string; the
parent turn never sees an exception from here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from roundtrip.engine.turn import run_turn
from roundtrip.providers.base import Message
from roundtrip.tools.dispatcher import ToolDispatcher

if TYPE_CHECKING:
    from collections.abc import Mapping

    from roundtrip.providers.base import CompletionClient
    from roundtrip.tools.base import ToolContext
    from roundtrip.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 3


@dataclass(frozen=True, slots=True)
class AgentProfile:
    """A sub-agent role: its prompt and the tools it may use."""

    name: str
    system_prompt: str
    description: str = ""
    tools: tuple[str, ...] = ()


class DelegateTool:
    """Runs a nested turn for a named agent profile.

    Implements the :class:`Tool` protocol.
    """

    def __init__(
        self,
        profiles: Mapping[str, AgentProfile],
        registry: ToolRegistry,
        *,
        client: CompletionClient | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        max_rounds: int = 0,
    ) -> None:
        self._profiles = dict(profiles)
        self._registry = registry
        self._client = client
        self._max_depth = max_depth
        self._max_rounds = max_rounds

    @property
    def name(self) -> str:
        return "delegate"

    @property
    def description(self) -> str:
        lines = ["Delegate a self-contained task to a specialist sub-agent."]
        for profile in self._profiles.values():
            lines.append(f"- {profile.name}: {profile.description or 'no description'}")
        return "\n".join(lines)

    @property
    def parameters_schema(self) -> dict[str, Any]:
        agent: dict[str, Any] = {
            "type": "string",
            "description": "Name of the sub-agent to run.",
        }
        if self._profiles:
            agent["enum"] = list(self._profiles)
        return {
            "type": "object",
            "properties": {
                "agent": agent,
                "task": {
                    "type": "string",
                    "description": "Complete instructions for the sub-agent.",
                },
            },
            "required": ["agent", "task"],
        }

    async def execute(self, args: dict[str, Any], context: ToolContext) -> str:
        agent = args["agent"]
        task = args["task"]

        profile = self._profiles.get(agent)
        if profile is None:
            known = ", ".join(sorted(self._profiles)) or "none"
            return f"Error: Unknown agent '{agent}'. Available agents: {known}"

        if context.depth >= self._max_depth:
            return (
                f"Error: Delegation depth limit ({self._max_depth}) reached; "
                f"agent '{agent}' was not started"
            )

        client = self._client or context.client
        if client is None:
            return f"Error: No completion client available for agent '{agent}'"

        logger.debug("Delegating to %s at depth %d", agent, context.depth + 1)
        try:
            registry = self._registry.subset(profile.tools)
            result = await run_turn(
                [Message.system(profile.system_prompt), Message.user(task)],
                client,
                ToolDispatcher(registry),
                registry.function_schemas(),
                context=context.child(),
                max_rounds=self._max_rounds,
            )
        except Exception as e:
            logger.warning("Sub-agent %s failed: %s", agent, e)
            return f"Error: Sub-agent '{agent}' failed: {e}"

        logger.debug(
            "Sub-agent %s finished (%d prompt / %d completion tokens)",
            agent,
            result.usage.prompt_tokens,
            result.usage.completion_tokens,
        )
        return result.final_content
