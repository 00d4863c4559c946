from __future__ import annotations

from collections.abc import AsyncIterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from agent_chat.services.chat_stream import word_deltas
from agent_chat.services.records import MessageRecord


@dataclass(frozen=True)
class ToolDescriptor:
    id: str
    name: str
    description: str
    input_schema: Mapping[str, Any]


@dataclass(frozen=True)
class ToolCallRequest:
    """A tool invocation an agent ran during a turn.

    ``output`` holds an ``{"error": ..., "message": ...}`` dict when the tool failed.
    """

    tool_id: str
    name: str
    input: dict[str, Any]
    output: Any


@dataclass(frozen=True)
class AgentResult:
    content: str
    tool_calls: list[ToolCallRequest] = field(default_factory=list)


@dataclass(frozen=True)
class AgentContext:
    thread_id: str | None = None
    history: Sequence[MessageRecord] = ()


class Agent(Protocol):
    """Capability contract every registered chat agent satisfies."""

    id: str
    name: str
    description: str

    @property
    def tools(self) -> Sequence[ToolDescriptor]:
        """Declared tool descriptors in display order."""

    async def invoke(self, message: str, context: AgentContext | None = None) -> AgentResult:
        """Produce the full reply for one user message."""

    def stream(self, message: str, context: AgentContext | None = None) -> AsyncIterator[str]:
        """Yield text deltas whose concatenation equals ``invoke(...).content``."""

    async def execute_tool(self, tool_id: str, tool_input: Mapping[str, Any]) -> Any:
        """Run one declared tool, raising ``UnknownToolError`` for undeclared ids."""


async def stream_invoke_result(agent: Agent, message: str, context: AgentContext | None = None) -> AsyncIterator[str]:
    """Stream an agent's synchronous reply as word-boundary deltas."""

    result = await agent.invoke(message, context)
    for delta in word_deltas(result.content):
        yield delta
