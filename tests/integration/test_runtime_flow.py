"""Integration test: full turns through the runtime with the real tools.

A scripted model edits, reads and runs files in a temporary directory,
delegates to a configured sub-agent, and resumes an earlier session; the
session log is checked at the end of each flow.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from roundtrip.config.schema import RoundtripConfig
from roundtrip.engine.runtime import Runtime
from roundtrip.engine.stream import ToolResult, ToolStart, TurnComplete
from roundtrip.providers.base import Message, StreamChunk, TokenUsage
from roundtrip.session.log import list_sessions, load_session
from tests.fixtures.clients import (
    ScriptedClient,
    ScriptedStreamClient,
    call,
    calls_reply,
    text_reply,
)

if TYPE_CHECKING:
    from pathlib import Path

# ── Helpers ──────────────────────────────────────────────────────


def _config(tmp_path: Path, **overrides: Any) -> RoundtripConfig:
    data: dict[str, Any] = {
        "sessions": {"log_dir": str(tmp_path / "logs")},
        "pricing": {"enabled": False},
        "tools": {
            "enabled": [
                "bash",
                "read_file",
                "edit_file",
                "list_sessions",
                "resume_session",
            ]
        },
    }
    data.update(overrides)
    return RoundtripConfig.model_validate(data)


def _args(**kwargs: Any) -> str:
    return json.dumps(kwargs)


# ── Batch flow ───────────────────────────────────────────────────


async def test_create_read_and_run_a_script(tmp_path: Path) -> None:
    script = tmp_path / "hello.py"
    client = ScriptedClient(
        [
            calls_reply(
                call("edit_file", _args(path=str(script), new_str="print('hi')\n"))
            ),
            calls_reply(
                call("read_file", _args(path=str(script)), call_id="r1"),
                call("bash", _args(command=f"cat {script}"), call_id="b1"),
            ),
            text_reply("Created hello.py; it prints hi."),
        ]
    )
    runtime = Runtime.from_config(_config(tmp_path), client=client)

    result = await runtime.ask("Write a hello script")

    assert script.read_text() == "print('hi')\n"
    roles = [m.role for m in result.messages]
    assert roles == [
        "system",
        "user",
        "assistant",
        "tool",
        "assistant",
        "tool",
        "tool",
        "assistant",
    ]
    assert result.messages[3].content == "OK (created new file)"
    assert [m.tool_call_id for m in result.messages[5:7]] == ["r1", "b1"]
    assert result.messages[5].content == "print('hi')\n"
    assert result.messages[6].content == "print('hi')\n"
    assert result.usage == TokenUsage(30, 15)

    (session,) = list_sessions(tmp_path / "logs")
    assert load_session(session.path) == list(result.messages)


async def test_tool_failure_is_fed_back(tmp_path: Path) -> None:
    client = ScriptedClient(
        [
            calls_reply(call("read_file", _args(path=str(tmp_path / "missing.txt")))),
            calls_reply(call("edit_file", _args(path=str(tmp_path / "x")))),
            text_reply("The file does not exist."),
        ]
    )
    runtime = Runtime.from_config(_config(tmp_path), client=client)

    result = await runtime.ask("Read missing.txt")

    assert result.messages[3].content.startswith("Error: File not found")
    assert result.messages[5].content.startswith(
        "Error: Invalid arguments for edit_file: new_str:"
    )
    assert result.final_content == "The file does not exist."


async def test_delegation_from_config(tmp_path: Path) -> None:
    notes = tmp_path / "notes.txt"
    notes.write_text("the answer is 42")
    config = _config(
        tmp_path,
        agents={
            "reader": {
                "description": "Reads files",
                "system_prompt": "You read files and report.",
                "tools": ["read_file"],
            }
        },
    )
    client = ScriptedClient(
        [
            calls_reply(call("delegate", _args(agent="reader", task="read notes.txt"))),
            calls_reply(call("read_file", _args(path=str(notes)))),
            text_reply("notes.txt says the answer is 42"),
            text_reply("Your notes say 42."),
        ]
    )
    runtime = Runtime.from_config(config, client=client)

    result = await runtime.ask("What do my notes say?")

    assert result.messages[3].content == "notes.txt says the answer is 42"
    assert result.final_content == "Your notes say 42."
    sub_tools = [t["function"]["name"] for t in client.call_log[1]["tools"]]
    assert sub_tools == ["read_file"]
    # Only the parent conversation is logged.
    (session,) = list_sessions(tmp_path / "logs")
    assert len(load_session(session.path)) == 5


# ── Streaming flow ───────────────────────────────────────────────


async def test_streamed_turn_with_tools(tmp_path: Path) -> None:
    target = tmp_path / "data.txt"
    target.write_text("alpha")
    client = ScriptedStreamClient(
        [
            [
                StreamChunk(text="Checking."),
                StreamChunk(
                    function_calls=(
                        call("read_file", _args(path=str(target)), call_id="c1"),
                        call("bash", _args(command="echo beta"), call_id="c2"),
                    ),
                    usage=TokenUsage(7, 3),
                ),
            ],
            [StreamChunk(text="alpha and beta", usage=TokenUsage(9, 4))],
        ]
    )
    runtime = Runtime.from_config(_config(tmp_path), client=client)

    events = [e async for e in runtime.stream(runtime.start("What is there?"))]

    starts = [e.call.id for e in events if isinstance(e, ToolStart)]
    results = {e.call.id: e.content for e in events if isinstance(e, ToolResult)}
    assert starts == ["c1", "c2"]
    assert results == {"c1": "alpha", "c2": "beta\n"}
    assert len(client.call_log) == 2

    complete = events[-1]
    assert isinstance(complete, TurnComplete)
    assert complete.result.usage == TokenUsage(16, 7)
    assert complete.result.messages[2] == Message.assistant(
        tool_calls=[
            call("read_file", _args(path=str(target)), call_id="c1"),
            call("bash", _args(command="echo beta"), call_id="c2"),
        ]
    )
    assert runtime.conversation[-1] == Message.assistant("alpha and beta")


# ── Resume flow ──────────────────────────────────────────────────


async def test_resume_then_continue_logs_new_file(tmp_path: Path) -> None:
    first = Runtime.from_config(
        _config(tmp_path), client=ScriptedClient([text_reply("Borrowing is...")])
    )
    await first.ask("Explain rust borrowing")

    client = ScriptedClient(
        [
            calls_reply(call("list_sessions")),
            calls_reply(call("resume_session", _args(session_id="rust-borrowing"))),
            text_reply("Resumed."),
            text_reply("Lifetimes next."),
        ]
    )
    second = Runtime.from_config(_config(tmp_path), client=client)

    listed = await second.ask("What did we talk about?")
    assert "explain-rust-borrowing" in listed.messages[3].content

    await second.ask("Go on")
    continued = client.call_log[-1]["messages"]
    assert continued[1] == Message.user("Explain rust borrowing")
    assert continued[-1] == Message.user("Go on")

    # The resumed history goes to a new file; the original is untouched.
    assert len(list_sessions(tmp_path / "logs")) == 3
    assert first.session_log is not None
    assert first.session_log.path is not None
    assert len(load_session(first.session_log.path)) == 3
    assert second.session_log is not None
    assert len(load_session(second.session_log.path)) == 5
