from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol

import asyncpg

from agent_chat.services.chat_stream import ChatStreamEvent, MessageInput
from agent_chat.services.records import MessageRecord, MessageRole, ThreadRecord, ToolCallRecord, ToolCallStatus


class DatabaseServiceProtocol(Protocol):
    """Abstraction for async SQL execution against the Postgres conversation store."""

    async def connect(self) -> None:
        """Initialize underlying DB resources before request handling begins."""

    async def disconnect(self) -> None:
        """Release open DB resources during application shutdown."""

    async def fetchrow(self, query: str, *args: object) -> asyncpg.Record | None:
        """Execute a query and return a single row, or ``None`` when no row matches."""

    async def fetch(self, query: str, *args: object) -> Sequence[asyncpg.Record]:
        """Execute a query and return all matching rows."""

    async def execute(self, query: str, *args: object) -> str:
        """Execute a write statement and return the backend status string."""

    def transaction(
        self, *, isolation: str | None = None, readonly: bool = False
    ) -> AbstractAsyncContextManager[asyncpg.Connection]:
        """Pin one connection for statements that must commit or roll back together."""


class ConversationStoreProtocol(Protocol):
    """Durable record of threads, messages and tool calls keyed by opaque ids."""

    async def connect(self) -> None:
        """Open the backing engine and make sure the schema exists."""

    async def disconnect(self) -> None:
        """Release the backing engine."""

    async def create_thread(self, agent_id: str, title: str | None = None) -> ThreadRecord:
        """Create a thread; the title defaults to ``"New Chat"``."""

    async def get_thread(self, thread_id: str) -> ThreadRecord:
        """Return one thread, raising ``NotFoundError`` when absent."""

    async def list_threads(self, agent_id: str | None = None) -> list[ThreadRecord]:
        """Return threads owning at least one message, newest ``updated_at`` first."""

    async def delete_thread(self, thread_id: str) -> None:
        """Delete a thread with its messages and tool calls."""

    async def append_message(self, thread_id: str, role: MessageRole, content: str) -> MessageRecord:
        """Append a message and bump the thread ``updated_at`` atomically."""

    async def list_messages(self, thread_id: str) -> list[MessageRecord]:
        """Return messages in replay order, each annotated with its tool calls."""

    async def add_tool_call(self, message_id: str, tool_name: str, tool_input: Any) -> ToolCallRecord:
        """Record a pending tool call against an assistant message."""

    async def complete_tool_call(
        self,
        tool_call_id: str,
        output: Any,
        status: ToolCallStatus = "completed",
    ) -> ToolCallRecord:
        """Move a pending tool call to its terminal status exactly once."""


class ChatServiceProtocol(Protocol):
    """Turn orchestration contract used by the HTTP/SSE endpoints."""

    async def run_turn(self, thread_id: str, message: MessageInput) -> MessageRecord:
        """Execute one turn to completion and return the assistant message with its tool calls."""

    def stream_turn(self, thread_id: str, message: MessageInput) -> AsyncIterator[ChatStreamEvent]:
        """Start one turn in the background and yield its stream events."""

    async def wait_for_pending_turns(self) -> None:
        """Wait for background streaming turns to finish persisting."""
