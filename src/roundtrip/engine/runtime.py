"""Runtime: everything a turn needs, built once from configuration.

The runtime owns the completion client, tool registry, dispatcher,
pricing catalog and session log, and the current conversation. Nothing
here is module-level state; tests build as many runtimes as they like.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from roundtrip.core.errors import (
    ConfigError,
    ProviderAuthError,
    SessionError,
    TurnError,
)
from roundtrip.core.retry import RetryConfig
from roundtrip.engine.stream import StreamingTurn, TurnComplete
from roundtrip.engine.turn import run_turn
from roundtrip.providers.base import Message
from roundtrip.providers.pricing import PricingCatalog
from roundtrip.session.log import SessionLog
from roundtrip.tools.base import ToolContext
from roundtrip.tools.builtin import builtin_tools
from roundtrip.tools.delegate import AgentProfile, DelegateTool
from roundtrip.tools.dispatcher import ToolDispatcher
from roundtrip.tools.registry import ToolRegistry

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from roundtrip.config.schema import ProviderConfig, RoundtripConfig
    from roundtrip.engine.stream import TurnEvent
    from roundtrip.engine.turn import TurnResult
    from roundtrip.providers.pricing import ModelPricing

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = """\
You are a helpful AI assistant working on the user's local machine.

You can call these tools:
{tools}

Read a file before editing it. After creating or modifying files, check
your work, and fix what you broke before answering."""


def build_client(provider: ProviderConfig) -> Any:
    """Completion client for the configured provider.

    Raises:
        ProviderAuthError: If no API key could be resolved.
        ConfigError: If ``provider.kind`` is not supported.
    """
    if not provider.api_key:
        hint = f"; set {provider.api_key_env}" if provider.api_key_env else ""
        raise ProviderAuthError(provider.kind, f"No API key configured{hint}")

    retry = RetryConfig(max_retries=provider.max_retries)
    if provider.kind == "openai":
        from roundtrip.providers.openai import OpenAICompletionClient

        return OpenAICompletionClient(
            provider.model,
            provider.api_key,
            base_url=provider.base_url,
            extra_body=dict(provider.extra_body),
            retry=retry,
        )
    if provider.kind == "google":
        from roundtrip.providers.google import GeminiCompletionClient

        return GeminiCompletionClient(provider.model, provider.api_key, retry=retry)

    msg = f"Unknown provider kind: {provider.kind!r} (expected 'openai' or 'google')"
    raise ConfigError(msg)


def agent_profiles(config: RoundtripConfig) -> dict[str, AgentProfile]:
    return {
        name: AgentProfile(
            name=name,
            system_prompt=agent.system_prompt,
            description=agent.description,
            tools=tuple(agent.tools),
        )
        for name, agent in config.agents.items()
    }


def build_registry(config: RoundtripConfig, client: Any = None) -> ToolRegistry:
    """Registry of the enabled built-ins, plus ``delegate`` when agents exist.

    Without a ``client`` the delegate tool uses the one in its call context.
    """
    registry = ToolRegistry(builtin_tools(config.tools))
    profiles = agent_profiles(config)
    if profiles:
        registry.register(
            DelegateTool(
                profiles,
                registry,
                client=client,
                max_depth=config.engine.max_delegation_depth,
                max_rounds=config.engine.max_rounds,
            )
        )
    return registry


def default_system_prompt(registry: ToolRegistry) -> str:
    """System prompt naming every registered tool."""
    lines = [
        f"- {d.name}: {d.description.splitlines()[0]}"
        for d in registry.list_definitions()
    ]
    return DEFAULT_SYSTEM_PROMPT.format(tools="\n".join(lines) or "- (none)")


class Runtime:
    """Process-wide context for running turns.

    Usage::

        runtime = Runtime.from_config(load_config())
        result = await runtime.ask("What's in this directory?")
    """

    def __init__(
        self,
        config: RoundtripConfig,
        client: Any,
        registry: ToolRegistry,
        *,
        pricing: PricingCatalog | None = None,
        profiles: dict[str, AgentProfile] | None = None,
    ) -> None:
        self.config = config
        self.client = client
        self.registry = registry
        self.dispatcher = ToolDispatcher(registry)
        self.pricing = pricing
        self.profiles = profiles or {}
        self.log_dir = Path(config.sessions.log_dir)
        self.session_log = (
            SessionLog(self.log_dir) if config.sessions.enabled else None
        )
        self.conversation: list[Message] = []
        self._resumed: list[Message] | None = None

    @classmethod
    def from_config(cls, config: RoundtripConfig, *, client: Any = None) -> Runtime:
        """Build a runtime; ``client`` replaces the configured provider.

        Raises:
            ProviderAuthError: If the provider has no API key.
            ConfigError: On unknown tools or provider kinds.
        """
        if client is None:
            client = build_client(config.provider)

        registry = build_registry(config, client)
        profiles = agent_profiles(config)

        pricing = PricingCatalog(config.pricing.url) if config.pricing.enabled else None
        logger.debug(
            "Runtime ready: %s, %d tools, %d agents",
            getattr(client, "provider_id", "unknown"),
            len(registry),
            len(profiles),
        )
        return cls(config, client, registry, pricing=pricing, profiles=profiles)

    # ── Conversation ─────────────────────────────────────────────

    @property
    def system_prompt(self) -> str:
        return self.config.general.system_prompt or default_system_prompt(
            self.registry
        )

    def start(self, question: str) -> list[Message]:
        """History for a new question: the existing conversation, or a
        fresh one seeded with the system prompt."""
        history = list(self.conversation) or [Message.system(self.system_prompt)]
        history.append(Message.user(question))
        return history

    def context(self) -> ToolContext:
        return ToolContext(
            client=self.client,
            log_dir=self.log_dir,
            load_session=self._load_session,
        )

    async def _load_session(self, messages: Sequence[Message]) -> None:
        logger.info("Loaded %d messages from a past session", len(messages))
        self._resumed = list(messages)

    def _commit(self, messages: Sequence[Message]) -> None:
        if self._resumed is not None:
            self.conversation, self._resumed = self._resumed, None
            if self.session_log is not None:
                self.session_log.reset()
        else:
            self.conversation = list(messages)
        if self.session_log is not None:
            self.session_log.record(self.conversation)

    def _commit_failed(self, error: TurnError) -> None:
        """Keep what a failed turn committed, so it is logged and the next
        question continues from it."""
        logger.info("Turn failed; keeping %d committed messages", len(error.messages))
        try:
            self._commit(error.messages)
        except SessionError as e:
            logger.warning("Could not log the failed turn: %s", e)

    # ── Turns ────────────────────────────────────────────────────

    async def run(self, history: Sequence[Message]) -> TurnResult:
        """Run a batch turn and log the resulting conversation.

        A failed turn still logs the history it committed before raising.
        """
        try:
            result = await run_turn(
                history,
                self.client,
                self.dispatcher,
                self.registry.function_schemas(),
                context=self.context(),
                max_rounds=self.config.engine.max_rounds,
            )
        except TurnError as e:
            self._commit_failed(e)
            raise
        self._commit(result.messages)
        return result

    async def stream(self, history: Sequence[Message]) -> AsyncIterator[TurnEvent]:
        """Run a streamed turn, yielding its events."""
        turn = StreamingTurn(
            history,
            self.client,
            self.dispatcher,
            self.registry.function_schemas(),
            context=self.context(),
            preview_chars=self.config.engine.result_preview_chars,
            max_rounds=self.config.engine.max_rounds,
        )
        try:
            async for event in turn.events():
                if isinstance(event, TurnComplete):
                    self._commit(event.result.messages)
                yield event
        except TurnError as e:
            self._commit_failed(e)
            raise

    async def ask(self, question: str) -> TurnResult:
        return await self.run(self.start(question))

    async def model_pricing(self) -> ModelPricing | None:
        """Pricing for the configured model, or None when unavailable."""
        if self.pricing is None:
            return None
        return await self.pricing.get(self.config.provider.model)
