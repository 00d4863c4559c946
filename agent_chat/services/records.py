from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal
import uuid

from pydantic import BaseModel, Field

MessageRole = Literal["user", "assistant"]
ToolCallStatus = Literal["pending", "completed", "failed"]
TERMINAL_TOOL_CALL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})

DEFAULT_THREAD_TITLE = "New Chat"


class ThreadRecord(BaseModel):
    id: str = Field(..., description="Opaque thread identifier")
    agent_id: str = Field(..., description="Identifier of the agent that owns the conversation")
    title: str = Field(default=DEFAULT_THREAD_TITLE, description="Human-readable thread title")
    created_at: datetime = Field(..., description="Thread creation timestamp")
    updated_at: datetime = Field(..., description="Timestamp of the most recent message append")


class ToolCallRecord(BaseModel):
    id: str = Field(..., description="Tool call identifier")
    message_id: str = Field(..., description="Assistant message that issued the tool call")
    tool_name: str = Field(..., description="Display name of the invoked tool")
    tool_input: Any = Field(default=None, description="Structured tool input")
    tool_output: Any = Field(default=None, description="Structured tool output, null until completed")
    status: ToolCallStatus = Field(default="pending", description="pending, completed or failed")
    created_at: datetime = Field(..., description="Tool call creation timestamp")
    completed_at: datetime | None = Field(default=None, description="Terminal transition timestamp")


class MessageRecord(BaseModel):
    id: str = Field(..., description="Message identifier")
    thread_id: str = Field(..., description="Owning thread identifier")
    role: MessageRole = Field(..., description="Message speaker role")
    content: str = Field(..., description="Flattened textual message content")
    sequence: int = Field(..., description="Per-thread insertion order (higher is newer)")
    created_at: datetime = Field(..., description="Message creation timestamp")
    tool_calls: list[ToolCallRecord] = Field(default_factory=list, description="Tool calls issued by this message")


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def utcnow() -> datetime:
    return datetime.now(UTC)
