"""Tools over the session log directory: list, resume, summarize."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from roundtrip.providers.base import Message
from roundtrip.session.log import find_session, list_sessions, load_session

if TYPE_CHECKING:
    from roundtrip.tools.base import ToolContext

_SESSION_ID_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "session_id": {
            "type": "string",
            "description": (
                "The session ID or filename (or part of it). "
                "Use list_sessions to find IDs."
            ),
        },
    },
    "required": ["session_id"],
}

SUMMARY_PROMPT = """\
Analyze the following conversation session and write a structured report.

The report should include:
1. Goals: what was the user trying to achieve?
2. Completed items: which tasks were finished?
3. Active work: what was being worked on when the session ended?
4. File changes: which files were modified, if apparent?
5. Lessons learned: key insights or technical details discovered.

Conversation history:
{history}
"""


def _not_found(session_id: str) -> str:
    return (
        f'Session not found matching "{session_id}". '
        "Use list_sessions to see available sessions."
    )


class ListSessionsTool:
    """Lists past sessions as ``- <timestamp>: <topic>`` lines, newest first."""

    @property
    def name(self) -> str:
        return "list_sessions"

    @property
    def description(self) -> str:
        return "List available past sessions with their timestamps and topics."

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}, "required": []}

    async def execute(self, args: dict[str, Any], context: ToolContext) -> str:
        sessions = list_sessions(context.log_dir)
        if not sessions:
            return "No sessions found."

        lines = [
            f"- {s.timestamp}: {s.topic}" if s.timestamp else f"- {s.filename}"
            for s in sessions
        ]
        return "Available sessions:\n" + "\n".join(lines)


class ResumeSessionTool:
    """Loads a past session into the caller's conversation.

    The loading itself is done by ``context.load_session``, supplied by
    whoever owns the conversation.
    """

    @property
    def name(self) -> str:
        return "resume_session"

    @property
    def description(self) -> str:
        return "Switch context to a previous session and continue working from there."

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return _SESSION_ID_SCHEMA

    async def execute(self, args: dict[str, Any], context: ToolContext) -> str:
        session_id = args["session_id"]
        if context.load_session is None:
            msg = "Resuming sessions is not available here"
            raise RuntimeError(msg)

        path = find_session(context.log_dir, session_id)
        if path is None:
            return _not_found(session_id)

        messages = load_session(path)
        await context.load_session(messages)
        return f"Session resumed: {path.name}. The context has been loaded."


class SummarizeSessionTool:
    """Asks the completion client for a report on a past session."""

    @property
    def name(self) -> str:
        return "summarize_session"

    @property
    def description(self) -> str:
        return (
            "Generate a report on a past session including goals, completed "
            "items, active work, file changes, and lessons learned."
        )

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return _SESSION_ID_SCHEMA

    async def execute(self, args: dict[str, Any], context: ToolContext) -> str:
        session_id = args["session_id"]
        if context.client is None:
            msg = "No completion client available for summarizing"
            raise RuntimeError(msg)

        path = find_session(context.log_dir, session_id)
        if path is None:
            return _not_found(session_id)

        history = json.dumps([m.to_dict() for m in load_session(path)])
        result = await context.client.complete(
            [Message.user(SUMMARY_PROMPT.format(history=history))], ()
        )
        result.raise_for_error(context.client.provider_id)
        return f"Session Report for {path.name}:\n\n{result.message.content or ''}"
