"""Turn engine: drive completion rounds until the model stops calling tools.

State machine:

    AWAITING_COMPLETION ──(tool calls)──> HANDLING_TOOL_CALLS ──┐
            ^                                                   │
            └───────────────────────────────────────────────────┘
    AWAITING_COMPLETION ──(text)──> TERMINAL

Each round sends the full history to the completion client. A response
with tool calls is committed as an assistant message holding only those
calls; every call then runs concurrently and its result is committed as a
tool message, in the order the model issued the calls. A response without
tool calls is committed as the final assistant message and ends the turn.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from roundtrip.core.errors import RoundLimitError, TurnError
from roundtrip.engine.usage import UsageAccumulator
from roundtrip.providers.base import Message, TokenUsage, ensure_call_ids

if TYPE_CHECKING:
    from collections.abc import Sequence

    from roundtrip.providers.base import CompletionClient, ToolCall
    from roundtrip.tools.base import ToolContext
    from roundtrip.tools.dispatcher import ToolExecutor

logger = logging.getLogger(__name__)


class TurnState(enum.Enum):
    """Phases of a turn."""

    AWAITING_COMPLETION = "awaiting_completion"
    HANDLING_TOOL_CALLS = "handling_tool_calls"
    TERMINAL = "terminal"


@dataclass(frozen=True, slots=True)
class TurnResult:
    """Outcome of one turn: the full updated history plus summed usage."""

    messages: tuple[Message, ...]
    usage: TokenUsage

    @property
    def final_message(self) -> Message:
        return self.messages[-1]

    @property
    def final_content(self) -> str:
        return self.final_message.content or ""


async def execute_tool_calls(
    calls: Sequence[ToolCall],
    executor: ToolExecutor,
    context: ToolContext | None = None,
) -> list[Message]:
    """Run every call of a round concurrently; return results in call order.

    Waits for all calls to settle. The executor is expected to turn tool
    failures into text, so no call's failure cancels its siblings.
    """
    results = await asyncio.gather(
        *(executor.execute(call.name, call.arguments, context) for call in calls)
    )
    return [
        Message.tool_result(call.id, call.name, content)
        for call, content in zip(calls, results, strict=True)
    ]


def _provider_id(client: Any) -> str:
    return getattr(client, "provider_id", "unknown")


async def run_turn(
    history: Sequence[Message],
    client: CompletionClient,
    executor: ToolExecutor,
    tools: Sequence[dict[str, Any]] = (),
    *,
    context: ToolContext | None = None,
    max_rounds: int = 0,
) -> TurnResult:
    """Run one turn to completion.

    Args:
        history: Conversation so far. Copied, never mutated.
        client: Completion client for every round.
        executor: Resolves and runs tool calls (usually a ToolDispatcher).
        tools: Chat-completions tool schemas offered to the model.
        context: Passed through to every tool execution.
        max_rounds: Cap on completion requests; 0 means no cap.

    Returns:
        The updated history and the usage summed over all rounds.

    Raises:
        TurnError: The completion client failed or reported an error. The
            error carries the history committed by earlier rounds.
        RoundLimitError: ``max_rounds`` requests were made without a final
            answer.
    """
    messages: list[Message] = list(history)
    usage = UsageAccumulator()
    state = TurnState.AWAITING_COMPLETION
    round_num = 0

    while state is not TurnState.TERMINAL:
        if max_rounds and round_num >= max_rounds:
            raise RoundLimitError(max_rounds, messages=messages, usage=usage.total)
        round_num += 1
        logger.debug("Round %d: %s", round_num, state.name)

        try:
            result = await client.complete(tuple(messages), tools)
            result.raise_for_error(_provider_id(client))
        except Exception as e:
            msg = f"Completion failed in round {round_num}: {e}"
            raise TurnError(msg, messages=messages, usage=usage.total) from e

        usage.add(result.usage)

        if result.tool_calls:
            state = TurnState.HANDLING_TOOL_CALLS
            calls = ensure_call_ids(result.tool_calls)
            logger.debug(
                "Round %d: %d tool call(s): %s",
                round_num,
                len(calls),
                ", ".join(call.name for call in calls),
            )
            messages.append(
                Message.assistant(
                    tool_calls=calls,
                    reasoning_details=result.message.reasoning_details,
                )
            )
            messages.extend(await execute_tool_calls(calls, executor, context))
            state = TurnState.AWAITING_COMPLETION
        else:
            messages.append(
                Message.assistant(
                    result.message.content or "",
                    reasoning_details=result.message.reasoning_details,
                )
            )
            state = TurnState.TERMINAL

    logger.debug("Turn finished after %d round(s)", round_num)
    return TurnResult(messages=tuple(messages), usage=usage.total)
