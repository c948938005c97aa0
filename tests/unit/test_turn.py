"""Tests for the batch turn engine."""

from __future__ import annotations

import json

import pytest

from roundtrip.core.errors import (
    ProviderTimeoutError,
    RoundLimitError,
    TurnError,
)
from roundtrip.engine.turn import TurnResult, execute_tool_calls, run_turn
from roundtrip.providers.base import CompletionResult, Message, TokenUsage, ToolCall
from roundtrip.tools.dispatcher import ToolDispatcher
from roundtrip.tools.registry import ToolRegistry
from tests.fixtures.clients import (
    RecordingTool,
    ScriptedClient,
    call,
    calls_reply,
    text_reply,
)

BASH_SCHEMA = {
    "type": "object",
    "properties": {"command": {"type": "string"}},
    "required": ["command"],
}


def _dispatcher(*tools: RecordingTool) -> ToolDispatcher:
    return ToolDispatcher(ToolRegistry(tools))


# ── Scenarios ───────────────────────────────────────────────────────


class TestScenarios:
    async def test_single_text_response(self) -> None:
        client = ScriptedClient([text_reply("Response", prompt=10, completion=5)])

        result = await run_turn([Message.user("Hello")], client, _dispatcher())

        assert len(result.messages) == 2
        assert result.final_message.role == "assistant"
        assert result.final_content == "Response"
        assert result.usage == TokenUsage(prompt_tokens=10, completion_tokens=5)

    async def test_one_tool_round_then_answer(self) -> None:
        bash = RecordingTool("bash", "hi", schema=BASH_SCHEMA)
        client = ScriptedClient(
            [
                calls_reply(
                    call("bash", json.dumps({"command": "echo hi"})),
                    prompt=10,
                    completion=5,
                ),
                text_reply("Done", prompt=20, completion=3),
            ]
        )

        result = await run_turn([Message.user("run it")], client, _dispatcher(bash))

        roles = [m.role for m in result.messages]
        assert roles == ["user", "assistant", "tool", "assistant"]
        assert result.messages[1].tool_calls is not None
        assert result.messages[1].content is None
        assert result.messages[2].content == "hi"
        assert result.messages[2].tool_call_id == "call_bash"
        assert result.final_content == "Done"
        assert result.usage == TokenUsage(prompt_tokens=30, completion_tokens=8)
        assert bash.calls == [{"command": "echo hi"}]

    async def test_unknown_tool_is_reported_and_turn_continues(self) -> None:
        client = ScriptedClient(
            [calls_reply(call("foo_tool")), text_reply("Sorry, no such tool")]
        )

        result = await run_turn([Message.user("go")], client, _dispatcher())

        assert result.messages[2].content == "Error: Unknown tool foo_tool"
        # Second request saw the error in context.
        second_history = client.call_log[1]["messages"]
        assert second_history[-1].content == "Error: Unknown tool foo_tool"
        assert result.final_content == "Sorry, no such tool"


# ── Properties ──────────────────────────────────────────────────────


class TestProperties:
    async def test_no_tool_response_ends_after_one_round(
        self, history: list[Message]
    ) -> None:
        client = ScriptedClient([text_reply("answer")])

        result = await run_turn(history, client, _dispatcher())

        assert len(client.call_log) == 1
        assert len(result.messages) == len(history) + 1

    @pytest.mark.parametrize("k", [1, 3])
    async def test_round_grows_history_by_one_plus_k(
        self, history: list[Message], k: int
    ) -> None:
        tool = RecordingTool("t")
        calls = [call("t", call_id=f"c{i}") for i in range(k)]
        client = ScriptedClient([calls_reply(*calls), text_reply("done")])

        await run_turn(history, client, _dispatcher(tool))

        second_history = client.call_log[1]["messages"]
        assert len(second_history) == len(history) + 1 + k

    async def test_results_follow_call_order_not_completion_order(self) -> None:
        slow = RecordingTool("slow", "slow result", delay=0.05)
        fast = RecordingTool("fast", "fast result")
        client = ScriptedClient(
            [
                calls_reply(call("slow", call_id="a"), call("fast", call_id="b")),
                text_reply("done"),
            ]
        )

        result = await run_turn(
            [Message.user("go")], client, _dispatcher(slow, fast)
        )

        tool_messages = [m for m in result.messages if m.role == "tool"]
        assert [m.tool_call_id for m in tool_messages] == ["a", "b"]
        assert [m.content for m in tool_messages] == ["slow result", "fast result"]

    async def test_calls_in_a_round_run_concurrently(self) -> None:
        tool = RecordingTool("t", delay=0.02)
        client = ScriptedClient(
            [
                calls_reply(*(call("t", call_id=f"c{i}") for i in range(4))),
                text_reply("done"),
            ]
        )

        await run_turn([Message.user("go")], client, _dispatcher(tool))

        assert tool.max_active == 4

    async def test_usage_is_summed_across_rounds(self) -> None:
        tool = RecordingTool("t")
        client = ScriptedClient(
            [
                calls_reply(call("t"), prompt=7, completion=1),
                calls_reply(call("t"), prompt=11, completion=2),
                text_reply("done", prompt=13, completion=3),
            ]
        )

        result = await run_turn([Message.user("go")], client, _dispatcher(tool))

        assert result.usage.prompt_tokens == 7 + 11 + 13
        assert result.usage.completion_tokens == 1 + 2 + 3

    async def test_missing_usage_counts_as_zero(self) -> None:
        client = ScriptedClient(
            [CompletionResult(message=Message.assistant("no usage"))]
        )

        result = await run_turn([Message.user("go")], client, _dispatcher())

        assert result.usage == TokenUsage()


# ── History handling ────────────────────────────────────────────────


class TestHistory:
    async def test_input_history_is_not_mutated(self, history: list[Message]) -> None:
        original = list(history)
        client = ScriptedClient([calls_reply(call("t")), text_reply("done")])

        await run_turn(history, client, _dispatcher(RecordingTool("t")))

        assert history == original

    async def test_tools_are_passed_to_every_round(self) -> None:
        schemas = [{"type": "function", "function": {"name": "t"}}]
        client = ScriptedClient([calls_reply(call("t")), text_reply("done")])

        await run_turn(
            [Message.user("go")], client, _dispatcher(RecordingTool("t")), schemas
        )

        assert all(entry["tools"] == schemas for entry in client.call_log)

    async def test_context_reaches_tools(self, tool_context) -> None:  # type: ignore[no-untyped-def]
        tool = RecordingTool("t")
        client = ScriptedClient([calls_reply(call("t")), text_reply("done")])

        await run_turn(
            [Message.user("go")], client, _dispatcher(tool), context=tool_context
        )

        assert tool.contexts == [tool_context]

    async def test_reasoning_details_are_kept_on_tool_call_message(self) -> None:
        details = [{"type": "reasoning.text", "text": "thinking"}]
        reply = CompletionResult(
            message=Message.assistant(
                tool_calls=[call("t")], reasoning_details=details
            )
        )
        client = ScriptedClient([reply, text_reply("done")])

        result = await run_turn(
            [Message.user("go")], client, _dispatcher(RecordingTool("t"))
        )

        assert result.messages[1].reasoning_details == details


# ── Failures ────────────────────────────────────────────────────────


class TestFailFast:
    async def test_client_exception_raises_turn_error(self) -> None:
        client = ScriptedClient([ProviderTimeoutError("scripted", "read timed out")])

        with pytest.raises(TurnError, match="round 1") as exc_info:
            await run_turn([Message.user("go")], client, _dispatcher())

        assert isinstance(exc_info.value.__cause__, ProviderTimeoutError)
        assert exc_info.value.messages == (Message.user("go"),)

    async def test_error_payload_raises_turn_error(self) -> None:
        client = ScriptedClient(
            [CompletionResult(message=Message.assistant(""), error="quota exceeded")]
        )

        with pytest.raises(TurnError, match="quota exceeded"):
            await run_turn([Message.user("go")], client, _dispatcher())

    async def test_committed_rounds_survive_a_later_failure(self) -> None:
        client = ScriptedClient(
            [
                calls_reply(call("t"), prompt=10, completion=1),
                ProviderTimeoutError("scripted", "boom"),
            ]
        )

        with pytest.raises(TurnError) as exc_info:
            await run_turn([Message.user("go")], client, _dispatcher(RecordingTool("t")))

        err = exc_info.value
        assert [m.role for m in err.messages] == ["user", "assistant", "tool"]
        assert err.usage == TokenUsage(prompt_tokens=10, completion_tokens=1)

    async def test_round_limit(self) -> None:
        client = ScriptedClient([calls_reply(call("t")), calls_reply(call("t"))])

        with pytest.raises(RoundLimitError) as exc_info:
            await run_turn(
                [Message.user("go")],
                client,
                _dispatcher(RecordingTool("t")),
                max_rounds=2,
            )

        assert len(client.call_log) == 2
        assert len(exc_info.value.messages) == 5


# ── Call ids ────────────────────────────────────────────────────────


class TestCallIds:
    async def test_wire_call_without_id_still_pairs_with_its_result(self) -> None:
        tool = RecordingTool("echo", "echoed")
        payload = {
            "choices": [
                {"message": {"tool_calls": [{"function": {"name": "echo"}}]}}
            ]
        }
        client = ScriptedClient(
            [CompletionResult.from_payload(payload), text_reply("done")]
        )

        result = await run_turn([Message.user("go")], client, _dispatcher(tool))

        request, response = result.messages[1], result.messages[2]
        assert request.tool_calls is not None
        (issued,) = request.tool_calls
        assert issued.id.startswith("call_")
        assert response == Message.tool_result(issued.id, "echo", "echoed")
        assert result.final_content == "done"

    async def test_empty_ids_replaced_before_tools_run(self) -> None:
        tool = RecordingTool("t")
        client = ScriptedClient(
            [
                calls_reply(ToolCall(id="", name="t"), ToolCall(id="", name="t")),
                text_reply("done"),
            ]
        )

        result = await run_turn([Message.user("go")], client, _dispatcher(tool))

        request = result.messages[1]
        assert request.tool_calls is not None
        ids = [tc.id for tc in request.tool_calls]
        assert all(ids) and len(set(ids)) == 2
        assert [m.tool_call_id for m in result.messages[2:4]] == ids
        assert len(tool.calls) == 2


# ── execute_tool_calls ──────────────────────────────────────────────


class TestExecuteToolCalls:
    async def test_returns_tool_messages_tagged_with_call_ids(self) -> None:
        tool = RecordingTool("t", 42)

        messages = await execute_tool_calls(
            [call("t", call_id="x1"), call("missing", call_id="x2")],
            _dispatcher(tool),
        )

        assert messages == [
            Message.tool_result("x1", "t", "42"),
            Message.tool_result("x2", "missing", "Error: Unknown tool missing"),
        ]

    async def test_failing_call_does_not_cancel_siblings(self) -> None:
        bad = RecordingTool("bad", error=RuntimeError("kaput"))
        good = RecordingTool("good", "fine", delay=0.01)

        messages = await execute_tool_calls(
            [call("bad"), call("good")], _dispatcher(bad, good)
        )

        assert [m.content for m in messages] == ["Error: kaput", "fine"]


def test_turn_result_final_content_defaults_to_empty() -> None:
    result = TurnResult(
        messages=(Message.assistant(tool_calls=[call("t")]),), usage=TokenUsage()
    )
    assert result.final_content == ""
