"""Pydantic models for roundtrip configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field

DEFAULT_TOOLS = [
    "bash",
    "read_file",
    "list_files",
    "edit_file",
    "web_search",
    "list_sessions",
    "resume_session",
    "summarize_session",
]


class GeneralConfig(BaseModel):
    """General runtime settings."""

    stream_output: bool = True
    system_prompt: str = ""


class ProviderConfig(BaseModel):
    """The completion service to talk to."""

    kind: str = "openai"  # "openai" (any OpenAI-compatible API) or "google"
    model: str = "anthropic/claude-opus-4.5"
    api_key: str | None = None
    api_key_env: str | None = "OPENROUTER_API_KEY"
    base_url: str | None = "https://openrouter.ai/api/v1"
    extra_body: dict[str, object] = Field(
        default_factory=lambda: {
            "reasoning": {"max_tokens": 5000},
            "include_reasoning": True,
        }
    )
    max_retries: int = 3


class EngineConfig(BaseModel):
    """Turn engine limits."""

    max_rounds: int = 0  # 0 = unbounded
    max_delegation_depth: int = 3
    result_preview_chars: int = 100


class BashConfig(BaseModel):
    """Shell tool configuration."""

    timeout: int = 120
    max_output: int = 20_000


class FileReadConfig(BaseModel):
    """File read tool configuration."""

    allowed_dir: str | None = None
    max_file_size: int = 100 * 1024


class WebSearchConfig(BaseModel):
    """Web search tool configuration."""

    backend: str = "duckduckgo"
    api_key: str | None = None
    api_key_env: str | None = "TAVILY_API_KEY"
    max_results: int = 5


class ToolsConfig(BaseModel):
    """Which tools are registered, and their settings."""

    enabled: list[str] = Field(default_factory=lambda: list(DEFAULT_TOOLS))
    bash: BashConfig = Field(default_factory=BashConfig)
    file_read: FileReadConfig = Field(default_factory=FileReadConfig)
    web_search: WebSearchConfig = Field(default_factory=WebSearchConfig)


class AgentConfig(BaseModel):
    """A sub-agent profile available through the ``delegate`` tool."""

    description: str = ""
    system_prompt: str
    tools: list[str] = Field(default_factory=list)


class PricingConfig(BaseModel):
    """Model pricing lookup."""

    enabled: bool = True
    url: str = "https://openrouter.ai/api/v1/models"


class SessionsConfig(BaseModel):
    """Session log location."""

    log_dir: str = ".session_logs"
    enabled: bool = True


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "WARNING"
    file: str = ""


class RoundtripConfig(BaseModel):
    """Top-level configuration for roundtrip."""

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    agents: dict[str, AgentConfig] = Field(default_factory=dict)
    pricing: PricingConfig = Field(default_factory=PricingConfig)
    sessions: SessionsConfig = Field(default_factory=SessionsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
