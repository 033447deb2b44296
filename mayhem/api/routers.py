"""Internal API routers: /status, /decisions and agent control endpoints.

No business logic.  Agents push their state here; the endpoints read it
back and delegate control actions to the ``AgentManager``.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

logger = logging.getLogger("mayhem")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_DEFAULT_AGENT_STATUS: dict = {
    "kind": None,
    "state": "idle",
    "running": False,
    "interval_seconds": None,
    "started_at": None,
    "stopped_at": None,
    "tick_count": 0,
    "in_flight": 0,
    "last_tick_at": None,
    "last_result": None,
}

_MAX_DECISIONS = 50

# Keyed by agent name → status dict
_agent_statuses: dict[str, dict] = {}
_decision_log: list[dict] = []
_agent_manager = None  # Set via configure_routers()


def configure_routers(agent_manager=None) -> None:
    """Inject the ``AgentManager`` used by the control endpoints."""
    global _agent_manager  # noqa: PLW0603
    _agent_manager = agent_manager


def update_agent_status(name: str, **fields) -> None:
    """Update individual fields of an agent's status dict."""
    if name not in _agent_statuses:
        _agent_statuses[name] = {**_DEFAULT_AGENT_STATUS, "name": name}
    _agent_statuses[name].update(fields)


def record_decision(name: str, entry: dict) -> None:
    """Append a decision to the log, keeping the newest 50."""
    _decision_log.append({"agent": name, **entry})
    if len(_decision_log) > _MAX_DECISIONS:
        del _decision_log[0]


def reset_state() -> None:
    """Clear all shared state."""
    _agent_statuses.clear()
    _decision_log.clear()
    configure_routers(None)


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get("/status")
async def get_status():
    """Return the status of every registered agent."""
    return {"agents": {name: dict(s) for name, s in _agent_statuses.items()}}


@router.get("/status/{name}")
async def get_agent_status(name: str):
    status = _agent_statuses.get(name)
    if status is None:
        raise HTTPException(status_code=404, detail=f"Unknown agent: {name}")
    return dict(status)


@router.get("/decisions")
async def get_decisions(
    limit: int = Query(default=20, ge=1, le=_MAX_DECISIONS),
    agent: Optional[str] = Query(default=None),
):
    """Return recent decisions, newest first."""
    entries = [d for d in _decision_log if agent is None or d["agent"] == agent]
    recent = entries[-limit:]
    recent.reverse()
    return {"decisions": recent}


@router.post("/agents/{name}/stop")
async def stop_agent(name: str):
    """Stop one agent's timer.  In-flight ticks finish on their own."""
    if _agent_manager is None:
        raise HTTPException(status_code=503, detail="Agent manager not configured")
    if name not in _agent_manager.agent_names:
        raise HTTPException(status_code=404, detail=f"Unknown agent: {name}")
    _agent_manager.stop_agent(name)
    logger.info("Stop requested via API for agent '%s'.", name)
    return {"stopped": name}
