"""Agent configuration dataclasses.

``TradingConfig`` and ``MarketingConfig`` are fixed for the lifetime of a
loop.  ``BuybackConfig`` can be replaced at any time.  None of them
validate ranges.
"""

from dataclasses import dataclass, field
from typing import Optional

STRATEGIES = ("dca", "momentum", "arbitrage", "market-making")


@dataclass(frozen=True)
class TradingConfig:
    """Settings for one trading loop."""

    token_mint: str
    strategy: str = "dca"  # one of STRATEGIES
    max_risk: float = 0.02  # fraction of portfolio per trade
    stop_loss: Optional[float] = None  # percent
    take_profit: Optional[float] = None  # percent

    def to_dict(self) -> dict:
        return {
            "token_mint": self.token_mint,
            "strategy": self.strategy,
            "max_risk": self.max_risk,
            "stop_loss": self.stop_loss,
            "take_profit": self.take_profit,
        }


@dataclass(frozen=True)
class BuybackConfig:
    """Buyback-and-burn trigger settings.

    Burn and LP percentages are independent; they need not sum to 100.
    """

    enabled: bool
    burn_percentage: float  # 0-100
    trigger_price: Optional[float] = None  # buy back when price falls below
    lp_percentage: Optional[float] = None  # 0-100

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "trigger_price": self.trigger_price,
            "burn_percentage": self.burn_percentage,
            "lp_percentage": self.lp_percentage,
        }


@dataclass(frozen=True)
class MarketingConfig:
    """Settings for the marketing loop."""

    total_budget: float
    platforms: list[str] = field(default_factory=lambda: ["twitter", "discord", "telegram"])
    min_roi: float = 1.0
    rebalance_interval_hours: float = 24.0

    @property
    def rebalance_interval_seconds(self) -> float:
        return self.rebalance_interval_hours * 60 * 60

    def to_dict(self) -> dict:
        return {
            "total_budget": self.total_budget,
            "platforms": list(self.platforms),
            "min_roi": self.min_roi,
            "rebalance_interval_hours": self.rebalance_interval_hours,
        }
