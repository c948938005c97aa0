"""Load ``RoundtripConfig`` from layered TOML files.

Layers, lowest priority first:

- model defaults
- ``$XDG_CONFIG_HOME/roundtrip/config.toml`` (``~/.config`` when unset)
- ``roundtrip.toml`` in the working directory
- the file named by ``$ROUNDTRIP_CONFIG``
- the ``path`` argument of :func:`load_config`
- the ``overrides`` mapping of :func:`load_config`

Secrets are never required in files: any section with ``api_key_env``
picks its ``api_key`` up from that variable when the file leaves it unset.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from roundtrip.core.errors import ConfigError

from .schema import RoundtripConfig

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

CONFIG_ENV = "ROUNDTRIP_CONFIG"
PROJECT_FILE = "roundtrip.toml"


def user_config_path() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(base) / "roundtrip" / "config.toml"


def _layers(explicit: Path | None) -> Iterator[Path]:
    """Yield the config files that exist, in merge order.

    Raises:
        ConfigError: If ``$ROUNDTRIP_CONFIG`` or ``explicit`` names a
            missing file. Optional layers are skipped silently.
    """
    for optional in (user_config_path(), Path.cwd() / PROJECT_FILE):
        if optional.is_file():
            yield optional

    from_env = os.environ.get(CONFIG_ENV)
    if from_env:
        if not Path(from_env).is_file():
            msg = f"{CONFIG_ENV} points to non-existent file: {from_env}"
            raise ConfigError(msg)
        yield Path(from_env)

    if explicit is not None:
        if not explicit.is_file():
            msg = f"Config file not found: {explicit}"
            raise ConfigError(msg)
        yield explicit


def _parse(path: Path) -> dict[str, Any]:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {path}: {e}"
        raise ConfigError(msg) from e
    except OSError as e:
        msg = f"Cannot read config file {path}: {e}"
        raise ConfigError(msg) from e


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return ``base`` updated by ``override``; tables merge, everything
    else (lists included) is replaced."""
    out = dict(base)
    for key, value in override.items():
        current = out.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            out[key] = _deep_merge(current, value)
        else:
            out[key] = value
    return out


def _fill_secrets(config: RoundtripConfig) -> None:
    for section in (config.provider, config.tools.web_search):
        if section.api_key is None and section.api_key_env:
            section.api_key = os.environ.get(section.api_key_env)


def _check_agents(config: RoundtripConfig) -> None:
    """Agent profiles may only name tools that are enabled."""
    available = {*config.tools.enabled, "delegate"}
    for name, agent in config.agents.items():
        missing = [tool for tool in agent.tools if tool not in available]
        if missing:
            msg = f"Agent '{name}' lists tools that are not enabled: {missing}"
            raise ConfigError(msg)


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> RoundtripConfig:
    """Merge every config layer and validate the result.

    Raises:
        ConfigError: On a missing required file, invalid TOML, a schema
            violation, or an agent naming a disabled tool.
    """
    data: dict[str, Any] = {}
    for layer in _layers(Path(path) if path is not None else None):
        logger.debug("Reading config layer %s", layer)
        data = _deep_merge(data, _parse(layer))
    data = _deep_merge(data, overrides or {})

    try:
        config = RoundtripConfig.model_validate(data)
    except ValidationError as e:
        msg = f"Configuration validation failed: {e}"
        raise ConfigError(msg) from e

    _check_agents(config)
    _fill_secrets(config)
    return config
