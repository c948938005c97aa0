"""Shared test fixtures for roundtrip."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from roundtrip.providers.base import Message, TokenUsage
from roundtrip.tools.base import ToolContext

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def make_usage() -> Any:
    """Factory fixture for TokenUsage with sensible defaults."""

    def _make(**overrides: Any) -> TokenUsage:
        defaults: dict[str, Any] = {"prompt_tokens": 100, "completion_tokens": 50}
        defaults.update(overrides)
        return TokenUsage(**defaults)

    return _make


@pytest.fixture
def history() -> list[Message]:
    """System prompt plus one user question."""
    return [
        Message.system("You are a test assistant."),
        Message.user("What is in the working directory?"),
    ]


@pytest.fixture
def tool_context(tmp_path: Path) -> ToolContext:
    """Context with a throwaway session directory."""
    return ToolContext(log_dir=tmp_path / "sessions")


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep config discovery away from the real user and project files."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.delenv("ROUNDTRIP_CONFIG", raising=False)
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    monkeypatch.delenv("TAVILY_API_KEY", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path
