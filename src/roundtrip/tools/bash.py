"""bash tool: run a shell command and report what it printed."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from roundtrip.config.schema import BashConfig

if TYPE_CHECKING:
    from roundtrip.tools.base import ToolContext

logger = logging.getLogger(__name__)


def truncate_middle(text: str, limit: int) -> str:
    """Keep the first and last ``limit // 2`` characters of ``text``."""
    if len(text) <= limit:
        return text
    half = limit // 2
    marker = f"\n\n... [truncated {len(text) - limit} chars] ...\n\n"
    return text[:half] + marker + text[len(text) - half :]


def _report(stdout: bytes, stderr: bytes, status: int | None) -> str:
    sections = []
    if stdout:
        sections.append(stdout.decode(errors="replace"))
    if stderr:
        sections.append("STDERR:\n" + stderr.decode(errors="replace"))
    if status:
        sections.append(f"(exit status {status})")
    return "\n".join(sections) or "(no output)"


class BashTool:
    """Runs ``command`` with ``/bin/sh``; a non-zero exit is not an error,
    it is part of the output the model sees."""

    def __init__(self, config: BashConfig | None = None) -> None:
        self._config = config or BashConfig()

    @property
    def name(self) -> str:
        return "bash"

    @property
    def description(self) -> str:
        return "Run a bash command and return its output."

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": "The command to run.",
                },
                "timeout": {
                    "type": "integer",
                    "description": "Timeout in seconds (optional).",
                },
            },
            "required": ["command"],
        }

    async def execute(self, args: dict[str, Any], context: ToolContext) -> str:
        command = args.get("command")
        if not isinstance(command, str) or not command:
            msg = "Parameter 'command' is required and must be a non-empty string."
            raise ValueError(msg)

        timeout = args.get("timeout")
        if not isinstance(timeout, int) or timeout <= 0:
            timeout = self._config.timeout

        try:
            proc = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return f"Failed to start process: {e}"

        try:
            async with asyncio.timeout(timeout):
                stdout, stderr = await proc.communicate()
        except TimeoutError:
            logger.debug("Killing %r after %ds", command, timeout)
            proc.kill()
            await proc.wait()
            return f"Command timed out after {timeout} seconds."

        return truncate_middle(
            _report(stdout, stderr, proc.returncode), self._config.max_output
        )
