"""read_file tool.

Refuses ``..`` segments, paths outside ``allowed_dir`` when one is set,
directories, files over the size cap, and anything containing NUL bytes.
"""

from __future__ import annotations

from pathlib import Path, PurePath
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from roundtrip.tools.base import ToolContext

MAX_FILE_SIZE = 100 * 1024
BINARY_SNIFF_BYTES = 8192


class FileReadTool:
    """Returns a text file's contents verbatim."""

    def __init__(
        self,
        *,
        allowed_dir: str | None = None,
        max_file_size: int = MAX_FILE_SIZE,
    ) -> None:
        self._root = Path(allowed_dir).resolve() if allowed_dir else None
        self._limit = max_file_size

    @property
    def name(self) -> str:
        return "read_file"

    @property
    def description(self) -> str:
        return "Read the contents of a file. Read a file before editing it."

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to the file to read.",
                },
            },
            "required": ["path"],
        }

    async def execute(self, args: dict[str, Any], context: ToolContext) -> str:
        """Raises ``ValueError`` on a refused path, ``FileNotFoundError``
        when nothing is there."""
        raw = args.get("path")
        if not isinstance(raw, str) or not raw:
            msg = "Parameter 'path' is required and must be a non-empty string."
            raise ValueError(msg)

        data = self._target(raw).read_bytes()
        if b"\x00" in data[:BINARY_SNIFF_BYTES]:
            msg = f"Binary file cannot be read as text: {raw}"
            raise ValueError(msg)
        return data.decode("utf-8", errors="replace")

    def _target(self, raw: str) -> Path:
        if ".." in PurePath(raw).parts:
            msg = f"Path traversal not allowed: {raw}"
            raise ValueError(msg)

        path = Path(raw).resolve()
        if self._root is not None and not path.is_relative_to(self._root):
            msg = f"Path is outside allowed directory: {raw}"
            raise ValueError(msg)
        if not path.exists():
            msg = f"File not found: {raw}"
            raise FileNotFoundError(msg)
        if not path.is_file():
            msg = f"Not a regular file: {raw}"
            raise ValueError(msg)

        size = path.stat().st_size
        if size > self._limit:
            msg = f"File too large: {size} bytes (max {self._limit} bytes)"
            raise ValueError(msg)
        return path
