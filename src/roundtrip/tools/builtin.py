"""Factory for the built-in tools named in ``[tools] enabled``."""

from __future__ import annotations

from typing import TYPE_CHECKING

from roundtrip.core.errors import ConfigError
from roundtrip.tools.bash import BashTool
from roundtrip.tools.edit_file import EditFileTool
from roundtrip.tools.file_read import FileReadTool
from roundtrip.tools.list_files import ListFilesTool
from roundtrip.tools.sessions import (
    ListSessionsTool,
    ResumeSessionTool,
    SummarizeSessionTool,
)
from roundtrip.tools.web_search import WebSearchTool

if TYPE_CHECKING:
    from collections.abc import Callable

    from roundtrip.config.schema import ToolsConfig
    from roundtrip.tools.base import Tool

_FACTORIES: dict[str, Callable[[ToolsConfig], Tool]] = {
    "bash": lambda cfg: BashTool(cfg.bash),
    "read_file": lambda cfg: FileReadTool(
        allowed_dir=cfg.file_read.allowed_dir,
        max_file_size=cfg.file_read.max_file_size,
    ),
    "list_files": lambda cfg: ListFilesTool(),
    "edit_file": lambda cfg: EditFileTool(),
    "web_search": lambda cfg: WebSearchTool(cfg.web_search),
    "list_sessions": lambda cfg: ListSessionsTool(),
    "resume_session": lambda cfg: ResumeSessionTool(),
    "summarize_session": lambda cfg: SummarizeSessionTool(),
}

BUILTIN_TOOL_NAMES = tuple(_FACTORIES)


def builtin_tools(config: ToolsConfig) -> list[Tool]:
    """Instantiate the enabled tools, in the order they are listed.

    Raises:
        ConfigError: If a name is not a built-in tool.
    """
    unknown = [name for name in config.enabled if name not in _FACTORIES]
    if unknown:
        known = ", ".join(BUILTIN_TOOL_NAMES)
        msg = f"Unknown tools in tools.enabled: {unknown} (known: {known})"
        raise ConfigError(msg)
    return [_FACTORIES[name](config) for name in dict.fromkeys(config.enabled)]
