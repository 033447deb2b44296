"""Market and platform data models fed into the LLM prompts."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class RecentTransaction:
    """A recent trade on the token."""

    type: str  # "buy" or "sell"
    amount: float
    price: float


@dataclass(frozen=True)
class MarketSnapshot:
    """Market data assembled for one trading tick.

    Several fields are filled with placeholders (zero or empty) because
    the chain facade has no source for them yet.
    """

    price: float
    volume_24h: float = 0.0
    symbol: str = ""
    price_change_24h: float = 0.0
    market_cap: float = 0.0
    holders: int = 0
    recent_txs: list[RecentTransaction] = field(default_factory=list)
    fee_amount: Optional[float] = None  # set by the daily buyback job


@dataclass(frozen=True)
class PlatformMetrics:
    """Engagement metrics for one marketing platform."""

    platform: str
    engagement: float
    reach: float
    active_users: float
    growth_rate: float
    avg_response_time: float
    cost_per_engagement: float
