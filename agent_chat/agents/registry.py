from __future__ import annotations

from collections.abc import Iterable
import logging

from agent_chat.agents.base import Agent

logger = logging.getLogger(__name__)


class AgentRegistry:
    """Lookup table of agents keyed by id, kept in registration order."""

    def __init__(self, agents: Iterable[Agent] = ()) -> None:
        self._agents: dict[str, Agent] = {}
        for agent in agents:
            self.register(agent)

    def register(self, agent: Agent) -> None:
        if agent.id in self._agents:
            raise ValueError(f"agent already registered: {agent.id}")
        self._agents[agent.id] = agent
        logger.info("agent registered", extra={"agent_id": agent.id, "tools_count": len(agent.tools)})

    def get(self, agent_id: str) -> Agent | None:
        return self._agents.get(agent_id)

    def all(self) -> list[Agent]:
        return list(self._agents.values())

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def __len__(self) -> int:
        return len(self._agents)
