"""LLMConnector: turns market and platform data into decisions.

Keeps a bounded conversation history for trading decisions so the model
sees its previous answers.  Marketing requests are single-shot.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from mayhem.llm.models import ChatMessage, Decision, MarketingPlan, ParseResult
from mayhem.llm.parser import (
    fallback_decision,
    fallback_plan,
    parse_decision,
    parse_marketing_plan,
)
from mayhem.llm.prompts import (
    DEFAULT_SYSTEM_PROMPT,
    build_marketing_prompt,
    build_trading_prompt,
)
from mayhem.llm.providers import LLMProvider, LLMSettings, get_provider
from mayhem.models.market import MarketSnapshot, PlatformMetrics

if TYPE_CHECKING:
    from mayhem.agents.marketing import MarketingAgent
    from mayhem.agents.trading import TradingAgent
    from mayhem.chain.sdk import MayhemSDK
    from mayhem.marketing.client import MarketingAPI

logger = logging.getLogger("mayhem.llm")

DEFAULT_MAX_HISTORY = 50


class LLMConnector:
    """Connects agents to a language model provider.

    Args:
        settings:    Provider settings; the provider is resolved here, so an
                     unknown tag fails before any request is made.
        provider:    Pre-built provider (tests, custom integrations).  When
                     given, ``settings.provider`` is not looked up.
        max_history: Non-system messages kept in the trading conversation.
    """

    def __init__(
        self,
        settings: LLMSettings,
        provider: Optional[LLMProvider] = None,
        max_history: int = DEFAULT_MAX_HISTORY,
    ) -> None:
        self._settings = settings
        self._provider = provider if provider is not None else get_provider(settings)
        self._max_history = max_history
        self._system = ChatMessage(
            role="system",
            content=settings.system_prompt or DEFAULT_SYSTEM_PROMPT,
        )
        self._history: list[ChatMessage] = []

    @property
    def provider_name(self) -> str:
        return self._settings.provider

    @property
    def history(self) -> list[ChatMessage]:
        """Conversation sent with trading requests, system prompt first."""
        return [self._system, *self._history]

    # ── Agent factories ──────────────────────────────────────────────────

    def create_trading_agent(self, sdk: "MayhemSDK", **kwargs) -> "TradingAgent":
        from mayhem.agents.trading import TradingAgent

        logger.info("Creating trading agent with %s", self.provider_name)
        return TradingAgent(sdk, self, **kwargs)

    def create_marketing_agent(self, api: "MarketingAPI", **kwargs) -> "MarketingAgent":
        from mayhem.agents.marketing import MarketingAgent

        logger.info("Creating marketing agent with %s", self.provider_name)
        return MarketingAgent(api, self, **kwargs)

    # ── Trading ──────────────────────────────────────────────────────────

    async def decide_trade_result(self, snapshot: MarketSnapshot) -> ParseResult[Decision]:
        """Query the model and return the raw parse outcome (no fallback)."""
        prompt = ChatMessage(role="user", content=build_trading_prompt(snapshot))
        self._append(prompt)
        try:
            reply = await self._provider.complete(self.history)
        except Exception:
            # Unanswered prompts would leave two user turns in a row.
            self._history = [m for m in self._history if m is not prompt]
            raise
        self._append(ChatMessage(role="assistant", content=reply))
        return parse_decision(reply)

    async def decide_trade(self, snapshot: MarketSnapshot) -> Decision:
        """Query the model for a decision, holding when the reply is unusable."""
        result = await self.decide_trade_result(snapshot)
        if result.ok:
            return result.value
        logger.warning("Unparseable trading reply (%s); holding.", result.failure.error)
        return fallback_decision(result.failure.raw_text)

    # ── Marketing ────────────────────────────────────────────────────────

    async def decide_marketing(
        self,
        budget: float,
        metrics: dict[str, PlatformMetrics],
    ) -> MarketingPlan:
        prompt = build_marketing_prompt(budget, metrics)
        reply = await self._provider.complete([ChatMessage(role="user", content=prompt)])
        result = parse_marketing_plan(reply)
        if result.ok:
            return result.value
        logger.warning("Unparseable marketing reply (%s); no allocations.", result.failure.error)
        return fallback_plan(result.failure.raw_text)

    def _append(self, message: ChatMessage) -> None:
        """Append *message*, then trim so the kept history opens with a user turn."""
        self._history.append(message)
        excess = len(self._history) - self._max_history
        if excess > 0:
            del self._history[:excess]
        while self._history and self._history[0].role != "user":
            del self._history[0]
