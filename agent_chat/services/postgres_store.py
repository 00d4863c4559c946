from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
import json
import logging
from typing import Any

import asyncpg

from agent_chat.core.errors import BadRequestError, InvalidTransitionError, NotFoundError, StoreError
from agent_chat.services.contracts import DatabaseServiceProtocol
from agent_chat.services.records import (
    DEFAULT_THREAD_TITLE,
    TERMINAL_TOOL_CALL_STATUSES,
    MessageRecord,
    MessageRole,
    ThreadRecord,
    ToolCallRecord,
    ToolCallStatus,
    new_id,
    utcnow,
)

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS threads (
  id TEXT PRIMARY KEY,
  agent_id TEXT NOT NULL,
  title TEXT NOT NULL DEFAULT 'New Chat',
  created_at TIMESTAMPTZ NOT NULL,
  updated_at TIMESTAMPTZ NOT NULL
);
CREATE TABLE IF NOT EXISTS messages (
  id TEXT PRIMARY KEY,
  thread_id TEXT NOT NULL REFERENCES threads(id) ON DELETE CASCADE,
  role TEXT NOT NULL CHECK (role IN ('user', 'assistant')),
  content TEXT NOT NULL,
  sequence INTEGER NOT NULL,
  created_at TIMESTAMPTZ NOT NULL,
  UNIQUE (thread_id, sequence)
);
CREATE TABLE IF NOT EXISTS tool_calls (
  id TEXT PRIMARY KEY,
  message_id TEXT NOT NULL REFERENCES messages(id) ON DELETE CASCADE,
  tool_name TEXT NOT NULL,
  tool_input JSONB NOT NULL,
  tool_output JSONB,
  status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'completed', 'failed')),
  created_at TIMESTAMPTZ NOT NULL,
  completed_at TIMESTAMPTZ
);
CREATE INDEX IF NOT EXISTS idx_threads_agent_id ON threads(agent_id);
CREATE INDEX IF NOT EXISTS idx_threads_updated_at ON threads(updated_at);
CREATE INDEX IF NOT EXISTS idx_tool_calls_message_id ON tool_calls(message_id);
"""

_THREAD_COLUMNS = "id, agent_id, title, created_at, updated_at"
_TOOL_CALL_COLUMNS = "id, message_id, tool_name, tool_input, tool_output, status, created_at, completed_at"


def _load_json(value: Any) -> Any:
    # asyncpg hands JSONB back as text unless a codec is registered.
    if isinstance(value, str):
        return json.loads(value)
    return value


def _thread_from_row(row: Mapping[str, Any]) -> ThreadRecord:
    return ThreadRecord(
        id=row["id"],
        agent_id=row["agent_id"],
        title=row["title"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _message_from_row(row: Mapping[str, Any], tool_calls: list[ToolCallRecord] | None = None) -> MessageRecord:
    return MessageRecord(
        id=row["id"],
        thread_id=row["thread_id"],
        role=row["role"],
        content=row["content"],
        sequence=row["sequence"],
        created_at=row["created_at"],
        tool_calls=tool_calls or [],
    )


def _tool_call_from_row(row: Mapping[str, Any]) -> ToolCallRecord:
    return ToolCallRecord(
        id=row["id"],
        message_id=row["message_id"],
        tool_name=row["tool_name"],
        tool_input=_load_json(row["tool_input"]),
        tool_output=_load_json(row["tool_output"]),
        status=row["status"],
        created_at=row["created_at"],
        completed_at=row["completed_at"],
    )


@asynccontextmanager
async def _store_errors(operation: str) -> AsyncIterator[None]:
    try:
        yield
    except asyncpg.PostgresError as exc:
        logger.exception("postgres store operation failed", extra={"operation": operation})
        raise StoreError(f"Store failure during {operation}") from exc


class PostgresConversationStore:
    """Conversation store backed by a client/server Postgres database."""

    def __init__(self, database: DatabaseServiceProtocol) -> None:
        self._database = database

    async def connect(self) -> None:
        await self._database.connect()
        async with _store_errors("schema setup"):
            await self._database.execute(SCHEMA_SQL)
        logger.info("postgres conversation store ready")

    async def disconnect(self) -> None:
        await self._database.disconnect()

    async def create_thread(self, agent_id: str, title: str | None = None) -> ThreadRecord:
        now = utcnow()
        async with _store_errors("create_thread"):
            row = await self._database.fetchrow(
                f"""
                INSERT INTO threads (id, agent_id, title, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $4)
                RETURNING {_THREAD_COLUMNS}
                """,
                new_id("thread"),
                agent_id,
                title or DEFAULT_THREAD_TITLE,
                now,
            )
        assert row is not None
        return _thread_from_row(row)

    async def get_thread(self, thread_id: str) -> ThreadRecord:
        async with _store_errors("get_thread"):
            row = await self._database.fetchrow(
                f"SELECT {_THREAD_COLUMNS} FROM threads WHERE id = $1",
                thread_id,
            )
        if row is None:
            raise NotFoundError("Thread", thread_id)
        return _thread_from_row(row)

    async def list_threads(self, agent_id: str | None = None) -> list[ThreadRecord]:
        async with _store_errors("list_threads"):
            rows = await self._database.fetch(
                """
                SELECT t.id, t.agent_id, t.title, t.created_at, t.updated_at
                FROM threads t
                WHERE EXISTS (SELECT 1 FROM messages m WHERE m.thread_id = t.id)
                  AND ($1::text IS NULL OR t.agent_id = $1)
                ORDER BY t.updated_at DESC, t.created_at DESC
                """,
                agent_id,
            )
        return [_thread_from_row(row) for row in rows]

    async def delete_thread(self, thread_id: str) -> None:
        async with _store_errors("delete_thread"):
            row = await self._database.fetchrow(
                "DELETE FROM threads WHERE id = $1 RETURNING id",
                thread_id,
            )
        if row is None:
            raise NotFoundError("Thread", thread_id)
        logger.info("thread deleted", extra={"thread_id": thread_id})

    async def append_message(self, thread_id: str, role: MessageRole, content: str) -> MessageRecord:
        async with _store_errors("append_message"), self._database.transaction() as connection:
            # The row lock serializes appenders across processes, so MAX(sequence) + 1 cannot collide.
            locked = await connection.fetchrow("SELECT id FROM threads WHERE id = $1 FOR UPDATE", thread_id)
            if locked is None:
                raise NotFoundError("Thread", thread_id)
            row = await connection.fetchrow(
                """
                WITH bumped AS (
                  UPDATE threads
                  SET updated_at = GREATEST(updated_at, $5::timestamptz)
                  WHERE id = $1
                  RETURNING id, updated_at
                )
                INSERT INTO messages (id, thread_id, role, content, sequence, created_at)
                SELECT
                  $2,
                  bumped.id,
                  $3,
                  $4,
                  COALESCE((SELECT MAX(m.sequence) FROM messages m WHERE m.thread_id = $1), 0) + 1,
                  bumped.updated_at
                FROM bumped
                RETURNING id, thread_id, role, content, sequence, created_at
                """,
                thread_id,
                new_id("msg"),
                role,
                content,
                utcnow(),
            )
        assert row is not None
        return _message_from_row(row)

    async def list_messages(self, thread_id: str) -> list[MessageRecord]:
        # One snapshot for the thread, its messages and their tool calls.
        async with _store_errors("list_messages"), self._database.transaction(
            isolation="repeatable_read", readonly=True
        ) as connection:
            thread = await connection.fetchrow("SELECT id FROM threads WHERE id = $1", thread_id)
            if thread is None:
                raise NotFoundError("Thread", thread_id)
            message_rows = await connection.fetch(
                """
                SELECT id, thread_id, role, content, sequence, created_at
                FROM messages
                WHERE thread_id = $1
                ORDER BY sequence ASC
                """,
                thread_id,
            )
            tool_call_rows = await connection.fetch(
                """
                SELECT tc.id, tc.message_id, tc.tool_name, tc.tool_input, tc.tool_output,
                       tc.status, tc.created_at, tc.completed_at
                FROM tool_calls tc
                JOIN messages m ON m.id = tc.message_id
                WHERE m.thread_id = $1
                ORDER BY tc.created_at ASC
                """,
                thread_id,
            )

        by_message: dict[str, list[ToolCallRecord]] = {}
        for row in tool_call_rows:
            by_message.setdefault(row["message_id"], []).append(_tool_call_from_row(row))
        return [_message_from_row(row, by_message.get(row["id"])) for row in message_rows]

    async def add_tool_call(self, message_id: str, tool_name: str, tool_input: Any) -> ToolCallRecord:
        async with _store_errors("add_tool_call"):
            owner = await self._database.fetchrow("SELECT role FROM messages WHERE id = $1", message_id)
            if owner is None:
                raise NotFoundError("Message", message_id)
            if owner["role"] != "assistant":
                raise BadRequestError("Tool calls can only be attached to assistant messages")
            row = await self._database.fetchrow(
                f"""
                INSERT INTO tool_calls (id, message_id, tool_name, tool_input, status, created_at)
                VALUES ($1, $2, $3, $4::jsonb, 'pending', $5)
                RETURNING {_TOOL_CALL_COLUMNS}
                """,
                new_id("tool"),
                message_id,
                tool_name,
                json.dumps(tool_input, default=str),
                utcnow(),
            )
        assert row is not None
        return _tool_call_from_row(row)

    async def complete_tool_call(
        self,
        tool_call_id: str,
        output: Any,
        status: ToolCallStatus = "completed",
    ) -> ToolCallRecord:
        if status not in TERMINAL_TOOL_CALL_STATUSES:
            raise BadRequestError(f"Tool calls can only be completed as 'completed' or 'failed', not {status!r}")

        async with _store_errors("complete_tool_call"):
            row = await self._database.fetchrow(
                f"""
                UPDATE tool_calls
                SET tool_output = $2::jsonb, status = $3, completed_at = $4
                WHERE id = $1 AND status = 'pending'
                RETURNING {_TOOL_CALL_COLUMNS}
                """,
                tool_call_id,
                json.dumps(output, default=str),
                status,
                utcnow(),
            )
            if row is None:
                existing = await self._database.fetchrow("SELECT status FROM tool_calls WHERE id = $1", tool_call_id)
                if existing is None:
                    raise NotFoundError("Tool call", tool_call_id)
                raise InvalidTransitionError(f"Tool call is already {existing['status']}")
        return _tool_call_from_row(row)
