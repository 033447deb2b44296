"""Daily fee buyback: collect creator fees and buy back when the LLM agrees.

``run_daily_buyback`` is one pass; ``DailyBuybackJob`` runs it once per day
at a fixed UTC time using the same IDLE/RUNNING loop as the agents.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from mayhem.agents.loop import IntervalLoop, LoopState
from mayhem.agents.trading import CONFIDENCE_THRESHOLD, confidence_of
from mayhem.api.routers import record_decision
from mayhem.chain.models import BuybackParams
from mayhem.llm.models import Action
from mayhem.models.market import MarketSnapshot

logger = logging.getLogger("mayhem.agents.buyback")

MIN_FEE_AMOUNT = 0.01  # SOL
DEFAULT_BURN_PERCENTAGE = 50.0
SECONDS_PER_DAY = 24 * 60 * 60


def seconds_until_next(hour: int, minute: int = 0, now: Optional[datetime] = None) -> float:
    """Seconds from *now* until the next ``hour:minute`` UTC.

    Returns a full day when *now* is exactly on the mark.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)

    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


async def run_daily_buyback(
    sdk,
    llm,
    token_mint: str,
    burn_percentage: float = DEFAULT_BURN_PERCENTAGE,
    min_fee: float = MIN_FEE_AMOUNT,
) -> dict:
    """Collect fees and, if the LLM says buy with enough confidence, buy back.

    Args:
        sdk:             ``MayhemSDK`` (or compatible mock).
        llm:             ``LLMConnector`` (or anything with ``decide_trade``).
        token_mint:      Token to buy back.
        burn_percentage: Share of the bought tokens to burn.
        min_fee:         Fee amount (SOL) below which the pass is skipped.

    Returns:
        ``{"action": "skipped", "reason": ...}`` or
        ``{"action": "executed", "signature": ..., "fees": ...}``.
    """
    logger.info("Collecting fees...")
    fee_amount = await sdk.collect_fees()
    logger.info("Collected: %s SOL", fee_amount)

    if fee_amount < min_fee:
        logger.warning("Insufficient fees (<%s SOL), skipping", min_fee)
        return {"action": "skipped", "reason": "insufficient_fees", "fees": fee_amount}

    price = await sdk.get_token_price(token_mint)
    volume_24h = await sdk.get_volume_24h(token_mint)
    logger.info("Current price: $%s", price)

    decision = await llm.decide_trade(
        MarketSnapshot(price=price, volume_24h=volume_24h, fee_amount=fee_amount)
    )
    confidence = confidence_of(decision)
    logger.info(
        "LLM decision: %s (%.0f%% confident): %s",
        decision.action, confidence * 100, decision.reasoning,
    )
    record_decision("buyback", {
        "action": decision.action,
        "confidence": decision.confidence,
        "reasoning": decision.reasoning,
        "price": price,
        "fees": fee_amount,
    })

    if decision.action != Action.BUY or confidence <= CONFIDENCE_THRESHOLD:
        logger.info("Skipping buyback (unfavorable conditions)")
        return {"action": "skipped", "reason": "unfavorable", "fees": fee_amount}

    signature = await sdk.buyback_and_burn(BuybackParams(
        token_mint=token_mint,
        sol_amount=fee_amount,
        burn_percentage=burn_percentage,
    ))
    burned = fee_amount * burn_percentage / 100
    logger.info(
        "Buyback complete: tx=%s spent=%s SOL burned=%s SOL worth",
        signature, fee_amount, burned,
    )
    return {"action": "executed", "signature": signature, "fees": fee_amount}


class DailyBuybackJob(IntervalLoop):
    """Runs :func:`run_daily_buyback` once per day at ``hour:minute`` UTC.

    ``fire()`` triggers a pass immediately, outside the schedule.
    """

    kind = "buyback"

    def __init__(
        self,
        sdk,
        llm,
        token_mint: str,
        burn_percentage: float = DEFAULT_BURN_PERCENTAGE,
        hour: int = 0,
        minute: int = 0,
        name: str = "buyback",
    ) -> None:
        super().__init__(name=name, interval=SECONDS_PER_DAY)
        self._sdk = sdk
        self._llm = llm
        self._token_mint = token_mint
        self._burn_percentage = burn_percentage
        self._hour = hour
        self._minute = minute

    @property
    def schedule(self) -> str:
        return f"{self._hour:02d}:{self._minute:02d} UTC"

    async def tick(self) -> dict:
        logger.info("Daily buyback triggered")
        return await run_daily_buyback(
            self._sdk, self._llm, self._token_mint,
            burn_percentage=self._burn_percentage,
        )

    async def _run_timer(self) -> None:
        while self._state is LoopState.RUNNING:
            await asyncio.sleep(seconds_until_next(self._hour, self._minute))
            if self._state is not LoopState.RUNNING:
                break
            self.fire()

    def get_status(self) -> dict:
        status = super().get_status()
        status["schedule"] = self.schedule
        return status
