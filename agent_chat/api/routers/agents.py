from fastapi import APIRouter, Depends

from agent_chat.agents.base import Agent
from agent_chat.agents.registry import AgentRegistry
from agent_chat.api.dependencies.services import get_agent_registry
from agent_chat.api.schemas.agents import AgentListResponse, AgentResponse, ToolResponse

router = APIRouter(prefix="/agents", tags=["agents"])


def _agent_response(agent: Agent) -> AgentResponse:
    return AgentResponse(
        id=agent.id,
        name=agent.name,
        description=agent.description,
        tools=[
            ToolResponse(
                id=tool.id,
                name=tool.name,
                description=tool.description,
                input_schema=dict(tool.input_schema),
            )
            for tool in agent.tools
        ],
    )


@router.get("", response_model=AgentListResponse, summary="List registered agents")
async def list_agents(registry: AgentRegistry = Depends(get_agent_registry)) -> AgentListResponse:
    return AgentListResponse(agents=[_agent_response(agent) for agent in registry.all()])
