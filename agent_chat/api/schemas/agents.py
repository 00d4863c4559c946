from typing import Any

from pydantic import BaseModel, Field


class ToolResponse(BaseModel):
    id: str = Field(..., description="Stable tool identifier used for execution")
    name: str = Field(..., description="Human-readable tool name")
    description: str = Field(..., description="What the tool does")
    input_schema: dict[str, Any] = Field(default_factory=dict, description="JSON schema of the tool input")


class AgentResponse(BaseModel):
    id: str = Field(..., description="Agent identifier referenced by threads")
    name: str = Field(..., description="Agent display name")
    description: str = Field(..., description="Agent description shown in the picker")
    tools: list[ToolResponse] = Field(default_factory=list, description="Declared tools in display order")


class AgentListResponse(BaseModel):
    agents: list[AgentResponse] = Field(default_factory=list, description="Registered agents in registration order")
