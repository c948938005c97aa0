"""Directory listing tool."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from roundtrip.tools.base import ToolContext

MAX_ENTRIES = 500


class ListFilesTool:
    """Lists a directory, one entry per line, directories suffixed with ``/``."""

    def __init__(self, *, max_entries: int = MAX_ENTRIES) -> None:
        self._max_entries = max_entries

    @property
    def name(self) -> str:
        return "list_files"

    @property
    def description(self) -> str:
        return "List files and directories at a path (default: current directory)."

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Directory to list.",
                },
                "recursive": {
                    "type": "boolean",
                    "description": "Walk subdirectories too.",
                },
            },
            "required": [],
        }

    async def execute(self, args: dict[str, Any], context: ToolContext) -> str:
        root = Path(args.get("path") or ".")
        if not root.exists():
            msg = f"Directory not found: {root}"
            raise FileNotFoundError(msg)
        if not root.is_dir():
            msg = f"Not a directory: {root}"
            raise NotADirectoryError(msg)

        entries = root.rglob("*") if args.get("recursive") else root.iterdir()
        lines: list[str] = []
        for entry in sorted(entries):
            if len(lines) >= self._max_entries:
                lines.append(f"... (truncated at {self._max_entries} entries)")
                break
            rel = entry.relative_to(root).as_posix()
            lines.append(f"{rel}/" if entry.is_dir() else rel)

        return "\n".join(lines) if lines else "(empty directory)"
