"""AgentManager: lifecycle manager for the running agents.

Agents register under their names.  The manager stops them individually
or en masse and reports their status to the CLI and the internal API.
"""

import logging
from typing import Optional

from mayhem.agents.loop import IntervalLoop

logger = logging.getLogger("mayhem.agents.manager")


class AgentManager:
    """Holds every agent started by the CLI or an example script."""

    def __init__(self) -> None:
        self._agents: dict[str, IntervalLoop] = {}

    # ── Public API ───────────────────────────────────────────────────────

    @property
    def agents(self) -> dict[str, IntervalLoop]:
        """Map of agent-name → agent."""
        return dict(self._agents)

    @property
    def agent_names(self) -> list[str]:
        return list(self._agents.keys())

    def register(self, agent: IntervalLoop) -> IntervalLoop:
        """Register *agent* under its name.

        Raises:
            ValueError: another agent already uses that name.
        """
        if agent.name in self._agents:
            raise ValueError(f"Agent '{agent.name}' already registered")
        self._agents[agent.name] = agent
        logger.info("Registered agent '%s' (%s).", agent.name, agent.kind)
        return agent

    def stop_agent(self, name: str) -> None:
        """Stop one agent's timer.

        Raises:
            KeyError: no agent with that name.
        """
        self._agents[name].stop()
        logger.info("Stop signal sent to agent '%s'.", name)

    def stop_all(self) -> None:
        """Signal every agent to stop."""
        for name in self._agents:
            self.stop_agent(name)

    @property
    def any_running(self) -> bool:
        return any(a.is_running for a in self._agents.values())

    async def wait_all(self) -> None:
        """Wait for the in-flight ticks of every agent."""
        for agent in self._agents.values():
            await agent.wait_in_flight()

    def get_status(self, name: Optional[str] = None) -> dict:
        """Status of one agent, or of all agents keyed by name."""
        if name is not None:
            return self._agents[name].get_status()
        return {n: a.get_status() for n, a in self._agents.items()}
