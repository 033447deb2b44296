"""Marketing platform API async client.

Wraps the metrics, allocation, tracking, report and campaign endpoints
under ``{api_url}/api/marketing``.  Every call is a single request; errors
propagate to the caller.
"""

import logging
import time
from typing import Optional

import httpx

from mayhem.llm.models import MarketingAllocation

logger = logging.getLogger("mayhem.marketing")


class MarketingAPI:
    """Async client for the marketing service."""

    def __init__(self, api_url: str, timeout: Optional[float] = 30.0) -> None:
        self._api_url = api_url.rstrip("/")
        self._base = f"{self._api_url}/api/marketing"
        self._timeout = timeout

    @property
    def api_url(self) -> str:
        return self._api_url

    async def _get(self, path: str) -> dict:
        async with httpx.AsyncClient() as client:
            resp = await client.get(f"{self._base}{path}", timeout=self._timeout)
        resp.raise_for_status()
        return resp.json()

    async def _post(self, path: str, body: Optional[dict] = None) -> dict:
        async with httpx.AsyncClient() as client:
            resp = await client.post(f"{self._base}{path}", json=body, timeout=self._timeout)
        resp.raise_for_status()
        if not resp.content:
            return {}
        return resp.json()

    async def fetch_metrics(self) -> dict:
        """Return raw per-platform data keyed by platform name."""
        return await self._get("/metrics")

    async def allocate(self, allocation: MarketingAllocation) -> dict:
        return await self._post("/allocate", allocation.to_dict())

    async def track(self, allocations: list[MarketingAllocation]) -> dict:
        return await self._post(
            "/track",
            {
                "timestamp": int(time.time() * 1000),
                "allocations": [a.to_dict() for a in allocations],
            },
        )

    async def get_report(self) -> dict:
        return await self._get("/report")

    async def pause_campaign(self, campaign_id: str) -> dict:
        return await self._post(f"/campaigns/{campaign_id}/pause")
