"""Edit tool: exact string replacement, or file creation."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from roundtrip.tools.base import ToolContext


class EditFileTool:
    """Replaces the first occurrence of ``old_str`` with ``new_str``.

    An empty ``old_str`` writes ``new_str`` as the whole file, creating it
    (and its parent directories) when missing. A missing ``old_str`` is
    reported back as text so the model can re-read the file and retry.
    """

    @property
    def name(self) -> str:
        return "edit_file"

    @property
    def description(self) -> str:
        return (
            "Edit a file by replacing old_str with new_str. If old_str is "
            "empty and the file does not exist, creates it with new_str as "
            "its content."
        )

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "The path to the file.",
                },
                "old_str": {
                    "type": "string",
                    "description": "Text to replace; empty to write the whole file.",
                },
                "new_str": {
                    "type": "string",
                    "description": "Text to replace old_str with.",
                },
            },
            "required": ["path", "new_str"],
        }

    async def execute(self, args: dict[str, Any], context: ToolContext) -> str:
        path = Path(args["path"])
        old_str: str = args.get("old_str") or ""
        new_str: str = args["new_str"]

        if not path.exists():
            if old_str:
                msg = f"File not found: {path}"
                raise FileNotFoundError(msg)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(new_str, encoding="utf-8")
            return "OK (created new file)"

        if not old_str:
            path.write_text(new_str, encoding="utf-8")
            return "OK"

        content = path.read_text(encoding="utf-8")
        if old_str not in content:
            return "Error: old_str not found in file"

        path.write_text(content.replace(old_str, new_str, 1), encoding="utf-8")
        return "OK"
