"""Registry of debate agents with their health state."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from roundtable.providers.base import Agent

logger = logging.getLogger(__name__)


@dataclass
class AgentHealth:
    agent_id: str
    provider: str
    active: bool = True
    error: str | None = None


class AgentPool:
    """Agents in registration order. Unhealthy agents stay registered but are not active."""

    def __init__(self, agents: Iterable[Agent] = ()) -> None:
        self._agents: dict[str, Agent] = {}
        self._health: dict[str, AgentHealth] = {}
        for agent in agents:
            self.register(agent)

    def register(self, agent: Agent) -> None:
        agent_id = agent.agent_id()
        if agent_id in self._agents:
            raise ValueError(f"Agent already registered: {agent_id}")
        self._agents[agent_id] = agent
        self._health[agent_id] = AgentHealth(agent_id=agent_id, provider=agent.provider())
        logger.debug("Registered agent %s (%s)", agent_id, agent.provider())

    def get(self, agent_id: str) -> Agent | None:
        return self._agents.get(agent_id)

    def agents(self) -> list[Agent]:
        return list(self._agents.values())

    def __len__(self) -> int:
        return len(self._agents)

    def mark_healthy(self, agent_id: str) -> None:
        self._health[agent_id] = AgentHealth(agent_id=agent_id, provider=self._health[agent_id].provider)

    def mark_unhealthy(self, agent_id: str, error: str) -> None:
        health = self._health[agent_id]
        self._health[agent_id] = AgentHealth(
            agent_id=agent_id, provider=health.provider, active=False, error=error,
        )
        logger.warning("Agent %s marked unhealthy: %s", agent_id, error)

    def active_agents(self) -> list[Agent]:
        return [a for agent_id, a in self._agents.items() if self._health[agent_id].active]

    def preferred_agent(self, provider_hint: str | None) -> Agent | None:
        """First active agent whose provider (or id) matches ``provider_hint``."""
        if not provider_hint:
            return None
        for agent in self.active_agents():
            if provider_hint in (agent.provider(), agent.agent_id()):
                return agent
        return None

    def select_agent(self, provider_hint: str | None = None) -> Agent | None:
        """The preferred agent if one matches, else the first active one."""
        preferred = self.preferred_agent(provider_hint)
        if preferred is not None:
            return preferred
        active = self.active_agents()
        return active[0] if active else None

    def health_status(self) -> list[AgentHealth]:
        return list(self._health.values())

    def registered_providers(self) -> list[str]:
        return sorted({h.provider for h in self._health.values()})
