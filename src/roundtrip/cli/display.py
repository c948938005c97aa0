"""Rich display for turns.

Renders streamed text as it arrives, tool markers and result previews
between text segments, and the final usage/cost line. Accepts an
optional :class:`~rich.console.Console` for dependency injection in
tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from roundtrip.engine.stream import TextChunk, ToolResult, ToolStart, TurnComplete

if TYPE_CHECKING:
    from collections.abc import Sequence

    from rich.status import Status

    from roundtrip.engine.stream import TurnEvent
    from roundtrip.providers.base import TokenUsage
    from roundtrip.providers.pricing import ModelPricing
    from roundtrip.session.log import SessionInfo
    from roundtrip.tools.base import ToolDefinition


class TurnDisplay:
    """Console rendering for the ``roundtrip`` commands."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()
        self._mid_line = False

    # ── Streaming ─────────────────────────────────────────────

    def render(self, event: TurnEvent) -> None:
        """Print one streamed event."""
        if isinstance(event, TextChunk):
            self._console.print(event.text, end="", markup=False, highlight=False)
            self._mid_line = not event.text.endswith("\n")
        elif isinstance(event, ToolStart):
            self._break_line()
            self._console.print(f"[{escape(event.marker)}]", style="cyan")
        elif isinstance(event, ToolResult):
            self._console.print(
                f"  -> {event.preview}", style="dim", markup=False, highlight=False
            )
        elif isinstance(event, TurnComplete):
            self._break_line()

    def _break_line(self) -> None:
        if self._mid_line:
            self._console.print()
            self._mid_line = False

    # ── Batch ─────────────────────────────────────────────────

    def thinking(self) -> Status:
        """Spinner shown while a batch turn runs."""
        return self._console.status("[bold cyan]thinking...[/bold cyan]", spinner="dots")

    def show_answer(self, content: str) -> None:
        self._console.print(
            Panel(
                escape(content) or "[dim](empty response)[/dim]",
                title="[bold green]Answer[/bold green]",
                border_style="green",
            )
        )

    def show_usage(self, usage: TokenUsage, pricing: ModelPricing | None) -> None:
        """Print token totals, with cost when the model's pricing is known."""
        parts = [
            f"{usage.prompt_tokens:,} prompt + "
            f"{usage.completion_tokens:,} completion tokens"
        ]
        if pricing is not None:
            parts.append(f"${pricing.cost(usage):.4f}")
        self._console.print(" | ".join(parts), style="dim")

    # ── Listings ──────────────────────────────────────────────

    def show_tools(self, definitions: Sequence[ToolDefinition]) -> None:
        table = Table(title="Tools")
        table.add_column("Name", style="bold")
        table.add_column("Parameters")
        table.add_column("Description")
        for d in definitions:
            params = ", ".join(d.parameters_schema.get("properties", {}))
            table.add_row(d.name, params or "-", d.description.splitlines()[0])
        self._console.print(table)

    def show_sessions(self, sessions: Sequence[SessionInfo]) -> None:
        if not sessions:
            self._console.print("No sessions found.")
            return
        table = Table(title="Sessions")
        table.add_column("Started", style="bold")
        table.add_column("Topic")
        table.add_column("File", style="dim")
        for s in sessions:
            table.add_row(s.timestamp or "-", s.topic, s.filename)
        self._console.print(table)

    def show_pricing(self, model: str, pricing: ModelPricing | None) -> None:
        if pricing is None:
            self._console.print(f"No pricing available for {model}.")
            return
        self._console.print(f"[bold]{escape(pricing.name or model)}[/bold] ({model})")
        self._console.print(f"  Prompt:     ${pricing.prompt_per_mtok:.2f} / 1M tokens")
        self._console.print(
            f"  Completion: ${pricing.completion_per_mtok:.2f} / 1M tokens"
        )
