"""Configuration loading and validation."""

from roundtrip.config.loader import load_config
from roundtrip.config.schema import (
    AgentConfig,
    EngineConfig,
    GeneralConfig,
    LoggingConfig,
    ProviderConfig,
    RoundtripConfig,
    ToolsConfig,
)

__all__ = [
    "AgentConfig",
    "EngineConfig",
    "GeneralConfig",
    "LoggingConfig",
    "ProviderConfig",
    "RoundtripConfig",
    "ToolsConfig",
    "load_config",
]
