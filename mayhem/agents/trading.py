"""TradingAgent: autonomous trading driven by LLM decisions.

Each tick builds a market snapshot, asks the LLM for a decision, executes
it when confidence clears ``CONFIDENCE_THRESHOLD``, and then, independently
of the decision, checks the buyback trigger.  The decision path and the
buyback path may both submit transactions from the same wallet in one tick;
they are not serialized against each other.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from mayhem.agents.loop import AlreadyRunningError, IntervalLoop
from mayhem.api.routers import record_decision
from mayhem.chain.models import BuybackParams, TradeParams
from mayhem.llm.models import Action, Decision
from mayhem.models.agent_config import BuybackConfig, TradingConfig
from mayhem.models.market import MarketSnapshot

logger = logging.getLogger("mayhem.agents.trading")

CONFIDENCE_THRESHOLD = 0.7  # decisions must be strictly above this
TRADE_SLIPPAGE = 0.01
DEFAULT_TRADING_INTERVAL = 30.0  # seconds


def as_number(value) -> Optional[float]:
    """Coerce a model-supplied field to a float, or ``None`` when it is not numeric."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def confidence_of(decision: Decision) -> float:
    """Numeric confidence of *decision*; non-numeric values count as 0."""
    confidence = as_number(decision.confidence)
    if confidence is None:
        logger.warning("Non-numeric confidence %r treated as 0", decision.confidence)
        return 0.0
    return confidence


class TradingAgent(IntervalLoop):
    """Runs the trading loop for one token.

    Args:
        sdk:      ``MayhemSDK`` (or compatible duck-type / mock).
        llm:      ``LLMConnector`` (or anything with ``decide_trade``).
        name:     Agent name for logs and the status API.
        interval: Seconds between ticks.
    """

    kind = "trading"

    def __init__(
        self,
        sdk,
        llm,
        name: str = "trading",
        interval: float = DEFAULT_TRADING_INTERVAL,
    ) -> None:
        super().__init__(name=name, interval=interval)
        self._sdk = sdk
        self._llm = llm
        self._config: Optional[TradingConfig] = None
        self._buyback: Optional[BuybackConfig] = None

    @property
    def config(self) -> Optional[TradingConfig]:
        return self._config

    @property
    def buyback_config(self) -> Optional[BuybackConfig]:
        return self._buyback

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def start_trading(self, config: TradingConfig, run_immediately: bool = True) -> None:
        """Fix *config* for this run and start the loop.

        Raises:
            AlreadyRunningError: trading is already running.
        """
        if self.is_running:
            raise AlreadyRunningError(f"Agent '{self.name}' already running")
        self._config = config
        logger.info("Starting %s trading for %s", config.strategy, config.token_mint)
        await self.start(run_immediately=run_immediately)

    def stop_trading(self) -> None:
        self.stop()

    def enable_buyback_burn(self, config: BuybackConfig) -> None:
        """Replace the buyback settings; takes effect on the next tick."""
        self._buyback = config
        logger.info("Buyback enabled=%s: %s%% burn", config.enabled, config.burn_percentage)

    # ── Tick ─────────────────────────────────────────────────────────────

    async def tick(self) -> dict:
        return await self.run_once()

    async def run_once(self) -> dict:
        """Execute one analyse-and-trade cycle.

        Returns a dict describing what happened:

        - ``{"action": "skipped", "reason": "no_config"}``
        - ``{"action": "skipped", "reason": "low_confidence", ...}``
        - ``{"action": "executed", "signature": ..., ...}``

        A ``"buyback"`` entry is added whenever buyback is enabled.
        """
        if self._config is None:
            return {"action": "skipped", "reason": "no_config"}

        snapshot = await self.get_market_data(self._config.token_mint)
        decision = await self._llm.decide_trade(snapshot)

        confidence = confidence_of(decision)
        logger.info("LLM decision: %s (%.0f%% confident)", decision.action, confidence * 100)
        logger.info("Reasoning: %s", decision.reasoning)
        record_decision(self.name, {
            "action": decision.action,
            "amount": decision.amount,
            "confidence": decision.confidence,
            "reasoning": decision.reasoning,
            "price": snapshot.price,
            "decided_at": datetime.now(timezone.utc).isoformat(),
        })

        if confidence > CONFIDENCE_THRESHOLD:
            result = await self.execute_decision(decision)
        else:
            logger.info("Low confidence, skipping trade")
            result = {"action": "skipped", "reason": "low_confidence"}

        result.update(decision=decision.action, confidence=confidence)

        if self._buyback is not None and self._buyback.enabled:
            result["buyback"] = await self.check_buyback(snapshot)

        return result

    async def get_market_data(self, token_mint: str) -> MarketSnapshot:
        token_info = await self._sdk.get_token_info(token_mint)
        price = await self._sdk.get_token_price(token_mint)
        volume_24h = await self._sdk.get_volume_24h(token_mint)

        return MarketSnapshot(
            symbol=token_info.symbol,
            price=price,
            volume_24h=volume_24h,
            price_change_24h=0.0,  # no price history source yet
            market_cap=price * token_info.supply,
            holders=0,  # no holder index yet
            recent_txs=[],
        )

    # ── Execution ────────────────────────────────────────────────────────

    async def execute_decision(self, decision: Decision) -> dict:
        """Dispatch *decision* by action.  Actions without an amount are skipped."""
        mint = self._config.token_mint

        if decision.action == Action.HOLD:
            logger.info("Holding position")
            return {"action": "skipped", "reason": "hold"}

        if not isinstance(decision.action, str) or decision.action not in {a.value for a in Action}:
            logger.warning("Ignoring unknown action '%s'", decision.action)
            return {"action": "skipped", "reason": "unknown_action"}

        amount = as_number(decision.amount)
        if not amount:
            return {"action": "skipped", "reason": "no_amount"}

        if decision.action == Action.BUY:
            logger.info("Buying %s SOL worth of tokens", amount)
            signature = await self._sdk.trade(TradeParams(
                token_mint=mint, amount=amount, side="buy", slippage=TRADE_SLIPPAGE,
            ))
        elif decision.action == Action.SELL:
            logger.info("Selling %s tokens", amount)
            signature = await self._sdk.trade(TradeParams(
                token_mint=mint, amount=amount, side="sell", slippage=TRADE_SLIPPAGE,
            ))
        elif decision.action == Action.BURN:
            # TODO: issue the Controller burn once the SDK exposes burn_tokens.
            logger.info("Burning %s tokens (not issued: no burn instruction)", amount)
            return {"action": "skipped", "reason": "burn_not_issued"}
        else:
            signature = await self._sdk.add_liquidity_from_fees(mint, amount)

        return {"action": "executed", "signature": signature}

    async def check_buyback(self, snapshot: MarketSnapshot) -> dict:
        """Collect fees and buy back when the price is below the trigger.

        Runs regardless of the LLM decision for the same tick.
        """
        cfg = self._buyback
        if not cfg.trigger_price or not snapshot.price < cfg.trigger_price:
            return {"triggered": False}

        logger.info("Buyback triggered at price %s (< %s)", snapshot.price, cfg.trigger_price)
        fee_amount = await self._sdk.collect_fees()

        signature = None
        if fee_amount > 0:
            signature = await self._sdk.buyback_and_burn(BuybackParams(
                token_mint=self._config.token_mint,
                sol_amount=fee_amount,
                burn_percentage=cfg.burn_percentage,
            ))
        return {"triggered": True, "fees": fee_amount, "signature": signature}

    def get_status(self) -> dict:
        status = super().get_status()
        status.update(
            config=self._config.to_dict() if self._config else None,
            buyback_enabled=bool(self._buyback and self._buyback.enabled),
        )
        return status
