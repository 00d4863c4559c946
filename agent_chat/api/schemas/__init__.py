from agent_chat.api.schemas.agents import AgentListResponse, AgentResponse, ToolResponse
from agent_chat.api.schemas.threads import (
    CreateThreadRequest,
    DeleteThreadResponse,
    MessageListResponse,
    MessageResponse,
    SendMessageRequest,
    ThreadListResponse,
    ThreadResponse,
    ToolCallResponse,
    TurnResponse,
)

__all__ = [
    "AgentListResponse",
    "AgentResponse",
    "CreateThreadRequest",
    "DeleteThreadResponse",
    "MessageListResponse",
    "MessageResponse",
    "SendMessageRequest",
    "ThreadListResponse",
    "ThreadResponse",
    "ToolCallResponse",
    "ToolResponse",
    "TurnResponse",
]
