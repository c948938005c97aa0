"""Main CLI application.

Click commands for the roundtrip agent: ask, tools, sessions, cost.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click
from rich.console import Console
from rich.logging import RichHandler

from roundtrip import __version__
from roundtrip.config.loader import load_config
from roundtrip.core.errors import ConfigError, RoundtripError
from roundtrip.engine.stream import TurnComplete

if TYPE_CHECKING:
    from roundtrip.cli.display import TurnDisplay
    from roundtrip.config.schema import LoggingConfig, RoundtripConfig
    from roundtrip.engine.runtime import Runtime
    from roundtrip.engine.turn import TurnResult

logger = logging.getLogger(__name__)

_FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


# ── Helpers ──────────────────────────────────────────────────────


def _error(msg: str) -> None:
    """Print an error message to stderr and exit."""
    click.echo(f"Error: {msg}", err=True)
    sys.exit(1)


def _setup_logging(config: LoggingConfig) -> None:
    """Route the package's log records to stderr and, optionally, a file."""
    level = getattr(logging, config.level.upper(), logging.WARNING)
    pkg_logger = logging.getLogger("roundtrip")
    pkg_logger.setLevel(level)
    pkg_logger.handlers.clear()

    console = RichHandler(console=Console(stderr=True), show_path=False)
    console.setLevel(level)
    pkg_logger.addHandler(console)

    if config.file:
        path = Path(config.file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(_FILE_LOG_FORMAT))
        pkg_logger.addHandler(file_handler)


def _load_config(
    config_path: str | None,
    overrides: dict[str, Any] | None = None,
) -> RoundtripConfig:
    """Load config with user-friendly error handling."""
    try:
        config = load_config(path=config_path, overrides=overrides)
    except ConfigError as e:
        _error(str(e))
        raise  # unreachable, keeps mypy happy
    _setup_logging(config.logging)
    return config


# ── CLI group ────────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="roundtrip")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to config file.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None) -> None:
    """roundtrip - a tool-using conversational agent.

    Sends your question to a model, runs the tools it asks for, and
    feeds the results back until it answers.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ── ask ──────────────────────────────────────────────────────────


@cli.command()
@click.argument("question")
@click.option(
    "--stream/--no-stream",
    default=None,
    help="Stream the answer as it arrives (overrides config).",
)
@click.option(
    "--model",
    default=None,
    help="Model to use (overrides provider.model).",
)
@click.pass_context
def ask(
    ctx: click.Context,
    question: str,
    stream: bool | None,
    model: str | None,
) -> None:
    """Run one turn for QUESTION.

    The model may call tools any number of times before answering; the
    conversation is appended to the session log.
    """
    overrides = {"provider": {"model": model}} if model else None
    config = _load_config(ctx.obj["config_path"], overrides)
    if stream is None:
        stream = config.general.stream_output

    from roundtrip.cli.display import TurnDisplay
    from roundtrip.engine.runtime import Runtime

    try:
        runtime = Runtime.from_config(config)
        asyncio.run(_ask_async(runtime, question, TurnDisplay(), stream=stream))
    except RoundtripError as e:
        _error(str(e))


async def _ask_async(
    runtime: Runtime,
    question: str,
    display: TurnDisplay,
    *,
    stream: bool,
) -> TurnResult:
    """Async implementation for the ask command."""
    history = runtime.start(question)

    if stream:
        result: TurnResult | None = None
        async for event in runtime.stream(history):
            display.render(event)
            if isinstance(event, TurnComplete):
                result = event.result
        assert result is not None
    else:
        with display.thinking():
            result = await runtime.run(history)
        display.show_answer(result.final_content)

    display.show_usage(result.usage, await runtime.model_pricing())
    return result


# ── tools ────────────────────────────────────────────────────────


@cli.command()
@click.pass_context
def tools(ctx: click.Context) -> None:
    """List the tools the model can call."""
    config = _load_config(ctx.obj["config_path"])

    from roundtrip.cli.display import TurnDisplay
    from roundtrip.engine.runtime import build_registry

    try:
        registry = build_registry(config)
    except RoundtripError as e:
        _error(str(e))
        return  # unreachable

    TurnDisplay().show_tools(registry.list_definitions())


# ── sessions ─────────────────────────────────────────────────────


@cli.command()
@click.pass_context
def sessions(ctx: click.Context) -> None:
    """List past session logs, newest first."""
    config = _load_config(ctx.obj["config_path"])

    from roundtrip.cli.display import TurnDisplay
    from roundtrip.session.log import list_sessions

    TurnDisplay().show_sessions(list_sessions(Path(config.sessions.log_dir)))


# ── cost ─────────────────────────────────────────────────────────


@cli.command()
@click.option("--model", default=None, help="Model to price (default: configured).")
@click.pass_context
def cost(ctx: click.Context, model: str | None) -> None:
    """Show per-token pricing for the configured model."""
    config = _load_config(ctx.obj["config_path"])
    model = model or config.provider.model

    from roundtrip.cli.display import TurnDisplay
    from roundtrip.providers.pricing import PricingCatalog

    if not config.pricing.enabled:
        _error("Pricing lookup is disabled (pricing.enabled = false).")

    pricing = asyncio.run(PricingCatalog(config.pricing.url).get(model))
    TurnDisplay().show_pricing(model, pricing)
