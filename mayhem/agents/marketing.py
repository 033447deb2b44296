"""MarketingAgent: LLM-driven allocation of a marketing budget.

Per tick: fetch platform metrics, ask the LLM for an allocation plan, post
each allocation in order, then post one tracking record.  A failed post
ends the tick; allocations already posted are not rolled back.
"""

import logging
from typing import Optional

from mayhem.agents.loop import AlreadyRunningError, IntervalLoop
from mayhem.api.routers import record_decision
from mayhem.llm.models import MarketingAllocation
from mayhem.models.agent_config import MarketingConfig
from mayhem.models.market import PlatformMetrics

logger = logging.getLogger("mayhem.agents.marketing")

DEFAULT_REBALANCE_INTERVAL = 24 * 60 * 60  # seconds


def _num(value, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def calculate_metrics(name: str, data: dict) -> PlatformMetrics:
    """Derive engagement metrics from one platform's raw data."""
    engagement = (
        _num(data.get("likes"))
        + _num(data.get("comments"))
        + _num(data.get("shares"))
    )
    reported_engagement = _num(data.get("engagement"), engagement)
    spend = _num(data.get("spend"))
    cost_per_engagement = spend / reported_engagement if reported_engagement else 0.0
    return PlatformMetrics(
        platform=data.get("name") or name,
        engagement=engagement,
        reach=_num(data.get("impressions")),
        active_users=_num(data.get("activeUsers")),
        growth_rate=_num(data.get("followerGrowth")),
        avg_response_time=_num(data.get("avgResponseTime")),
        cost_per_engagement=cost_per_engagement,
    )


class MarketingAgent(IntervalLoop):
    """Runs the marketing allocation loop.

    Args:
        api:  ``MarketingAPI`` (or compatible duck-type / mock).
        llm:  ``LLMConnector`` (or anything with ``decide_marketing``).
        name: Agent name for logs and the status API.
    """

    kind = "marketing"

    def __init__(self, api, llm, name: str = "marketing") -> None:
        super().__init__(name=name, interval=DEFAULT_REBALANCE_INTERVAL)
        self._api = api
        self._llm = llm
        self._config: Optional[MarketingConfig] = None

    @property
    def config(self) -> Optional[MarketingConfig]:
        return self._config

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def start_marketing(self, config: MarketingConfig, run_immediately: bool = True) -> None:
        """Fix *config* for this run and start the loop.

        Raises:
            AlreadyRunningError: marketing is already running.
        """
        if self.is_running:
            raise AlreadyRunningError(f"Agent '{self.name}' already running")
        self._config = config
        self._interval = config.rebalance_interval_seconds
        logger.info("Starting AI marketing with $%s budget", config.total_budget)
        await self.start(run_immediately=run_immediately)

    def stop_marketing(self) -> None:
        self.stop()

    # ── Tick ─────────────────────────────────────────────────────────────

    async def tick(self) -> dict:
        return await self.analyze_and_allocate()

    async def analyze_and_allocate(self) -> dict:
        if self._config is None:
            return {"action": "skipped", "reason": "no_config"}

        metrics = await self.fetch_platform_metrics()
        plan = await self._llm.decide_marketing(self._config.total_budget, metrics)
        logger.info("Marketing strategy: %s", plan.reasoning)
        record_decision(self.name, {
            "action": "allocate",
            "allocations": [a.to_dict() for a in plan.allocations],
            "reasoning": plan.reasoning,
        })

        for allocation in plan.allocations:
            await self.execute_allocation(allocation)

        await self._api.track(plan.allocations)
        return {
            "action": "allocated",
            "allocations": len(plan.allocations),
            "total": sum(a.amount for a in plan.allocations),
        }

    async def fetch_platform_metrics(self) -> dict[str, PlatformMetrics]:
        raw = await self._api.fetch_metrics()
        platforms = self._config.platforms if self._config else list(raw)
        return {
            name: calculate_metrics(name, raw[name])
            for name in platforms
            if isinstance(raw.get(name), dict)
        }

    async def execute_allocation(self, allocation: MarketingAllocation) -> None:
        logger.info(
            "Allocating $%s to %s (strategy: %s, expected ROI %sx)",
            allocation.amount, allocation.platform,
            allocation.strategy, allocation.expected_roi,
        )
        await self._api.allocate(allocation)

    # ── Reports ──────────────────────────────────────────────────────────

    async def get_performance_report(self) -> dict:
        return await self._api.get_report()

    async def get_recommended_platforms(self) -> list[str]:
        """Platforms ranked by engagement per unit of cost, best first."""
        metrics = await self.fetch_platform_metrics()

        def _score(m: PlatformMetrics) -> float:
            if not m.cost_per_engagement:
                return float("inf") if m.engagement else 0.0
            return m.engagement / m.cost_per_engagement

        ranked = sorted(metrics.items(), key=lambda item: _score(item[1]), reverse=True)
        return [name for name, _ in ranked]

    async def optimize_campaigns(self) -> list[str]:
        """Pause campaigns below ``min_roi`` and re-run allocation.

        Returns the ids of the paused campaigns.
        """
        if self._config is None:
            raise RuntimeError("Marketing agent has no configuration")
        logger.info("Optimizing active campaigns...")

        report = await self.get_performance_report()
        paused: list[str] = []
        for campaign in report.get("campaigns", []):
            if _num(campaign.get("roi")) < self._config.min_roi:
                logger.info("Pausing low-ROI campaign: %s", campaign.get("name"))
                await self._api.pause_campaign(str(campaign["id"]))
                paused.append(str(campaign["id"]))

        await self.analyze_and_allocate()
        return paused

    def get_status(self) -> dict:
        status = super().get_status()
        status.update(
            config=self._config.to_dict() if self._config else None,
            next_rebalance="scheduled" if self.is_running else "not scheduled",
        )
        return status
