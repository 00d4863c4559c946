from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from datetime import datetime
import asyncio
import json
import logging
from typing import Any

import aiosqlite

from agent_chat.core.errors import BadRequestError, InvalidTransitionError, NotFoundError, StoreError
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
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS messages (
  id TEXT PRIMARY KEY,
  thread_id TEXT NOT NULL,
  role TEXT NOT NULL CHECK (role IN ('user', 'assistant')),
  content TEXT NOT NULL,
  sequence INTEGER NOT NULL,
  created_at TEXT NOT NULL,
  UNIQUE (thread_id, sequence),
  FOREIGN KEY (thread_id) REFERENCES threads (id) ON DELETE CASCADE
);
CREATE TABLE IF NOT EXISTS tool_calls (
  id TEXT PRIMARY KEY,
  message_id TEXT NOT NULL,
  tool_name TEXT NOT NULL,
  tool_input TEXT NOT NULL,
  tool_output TEXT,
  status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'completed', 'failed')),
  created_at TEXT NOT NULL,
  completed_at TEXT,
  FOREIGN KEY (message_id) REFERENCES messages (id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_threads_agent_id ON threads(agent_id);
CREATE INDEX IF NOT EXISTS idx_threads_updated_at ON threads(updated_at);
CREATE INDEX IF NOT EXISTS idx_tool_calls_message_id ON tool_calls(message_id);
"""

_THREAD_COLUMNS = "id, agent_id, title, created_at, updated_at"
_MESSAGE_COLUMNS = "id, thread_id, role, content, sequence, created_at"
_TOOL_CALL_COLUMNS = "id, message_id, tool_name, tool_input, tool_output, status, created_at, completed_at"


def _timestamp(value: datetime) -> str:
    return value.isoformat(timespec="microseconds")


def _parse_timestamp(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _thread_from_row(row: Mapping[str, Any]) -> ThreadRecord:
    return ThreadRecord(
        id=row["id"],
        agent_id=row["agent_id"],
        title=row["title"],
        created_at=_parse_timestamp(row["created_at"]),
        updated_at=_parse_timestamp(row["updated_at"]),
    )


def _message_from_row(row: Mapping[str, Any], tool_calls: list[ToolCallRecord] | None = None) -> MessageRecord:
    return MessageRecord(
        id=row["id"],
        thread_id=row["thread_id"],
        role=row["role"],
        content=row["content"],
        sequence=row["sequence"],
        created_at=_parse_timestamp(row["created_at"]),
        tool_calls=tool_calls or [],
    )


def _tool_call_from_row(row: Mapping[str, Any]) -> ToolCallRecord:
    return ToolCallRecord(
        id=row["id"],
        message_id=row["message_id"],
        tool_name=row["tool_name"],
        tool_input=json.loads(row["tool_input"]),
        tool_output=json.loads(row["tool_output"]) if row["tool_output"] is not None else None,
        status=row["status"],
        created_at=_parse_timestamp(row["created_at"]),
        completed_at=_parse_timestamp(row["completed_at"]),
    )


class SQLiteConversationStore:
    """Conversation store backed by an embedded SQLite file.

    A single aiosqlite connection is shared by all callers. Every operation runs
    under one lock and commits (or rolls back) before releasing it, so readers
    never observe half of a multi-statement write.
    """

    def __init__(self, path: str) -> None:
        self._path = path
        self._connection: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        if self._connection is not None:
            return
        logger.info("opening sqlite conversation store", extra={"path": self._path})
        try:
            connection = await aiosqlite.connect(self._path)
            connection.row_factory = aiosqlite.Row
            await connection.executescript("PRAGMA journal_mode=WAL;\nPRAGMA foreign_keys=ON;\n" + SCHEMA_SQL)
            await connection.commit()
        except aiosqlite.Error as exc:
            raise StoreError("Store failure during schema setup") from exc
        self._connection = connection

    async def disconnect(self) -> None:
        if self._connection is not None:
            logger.info("closing sqlite conversation store")
            await self._connection.close()
            self._connection = None

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        if self._connection is None:
            raise RuntimeError("conversation store is not connected")
        connection = self._connection
        async with self._lock:
            try:
                yield connection
                await connection.commit()
            except aiosqlite.Error as exc:
                await connection.rollback()
                logger.exception("sqlite store operation failed", extra={"operation": operation})
                raise StoreError(f"Store failure during {operation}") from exc
            except BaseException:
                await connection.rollback()
                raise

    async def create_thread(self, agent_id: str, title: str | None = None) -> ThreadRecord:
        now = _timestamp(utcnow())
        thread_id = new_id("thread")
        async with self._transaction("create_thread") as connection:
            await connection.execute(
                "INSERT INTO threads (id, agent_id, title, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
                (thread_id, agent_id, title or DEFAULT_THREAD_TITLE, now, now),
            )
            row = await self._fetch_thread(connection, thread_id)
        assert row is not None
        logger.debug("thread created", extra={"thread_id": thread_id, "agent_id": agent_id})
        return _thread_from_row(row)

    async def get_thread(self, thread_id: str) -> ThreadRecord:
        async with self._transaction("get_thread") as connection:
            row = await self._fetch_thread(connection, thread_id)
        if row is None:
            raise NotFoundError("Thread", thread_id)
        return _thread_from_row(row)

    async def list_threads(self, agent_id: str | None = None) -> list[ThreadRecord]:
        query = """
            SELECT t.id, t.agent_id, t.title, t.created_at, t.updated_at
            FROM threads t
            WHERE EXISTS (SELECT 1 FROM messages m WHERE m.thread_id = t.id)
        """
        params: tuple[Any, ...] = ()
        if agent_id:
            query += " AND t.agent_id = ?"
            params = (agent_id,)
        query += " ORDER BY t.updated_at DESC, t.created_at DESC"

        async with self._transaction("list_threads") as connection:
            async with connection.execute(query, params) as cursor:
                rows = await cursor.fetchall()
        return [_thread_from_row(row) for row in rows]

    async def delete_thread(self, thread_id: str) -> None:
        async with self._transaction("delete_thread") as connection:
            cursor = await connection.execute("DELETE FROM threads WHERE id = ?", (thread_id,))
            deleted = cursor.rowcount
            await cursor.close()
        if not deleted:
            raise NotFoundError("Thread", thread_id)
        logger.info("thread deleted", extra={"thread_id": thread_id})

    async def append_message(self, thread_id: str, role: MessageRole, content: str) -> MessageRecord:
        message_id = new_id("msg")
        async with self._transaction("append_message") as connection:
            thread = await self._fetch_thread(connection, thread_id)
            if thread is None:
                raise NotFoundError("Thread", thread_id)

            # Never stamp earlier than the thread's last bump, even if the clock steps back.
            stamp = _timestamp(max(utcnow(), _parse_timestamp(thread["updated_at"])))
            async with connection.execute(
                "SELECT COALESCE(MAX(sequence), 0) + 1 AS next_sequence FROM messages WHERE thread_id = ?",
                (thread_id,),
            ) as cursor:
                sequence_row = await cursor.fetchone()
            await connection.execute(
                "INSERT INTO messages (id, thread_id, role, content, sequence, created_at) VALUES (?, ?, ?, ?, ?, ?)",
                (message_id, thread_id, role, content, sequence_row["next_sequence"], stamp),
            )
            await connection.execute("UPDATE threads SET updated_at = ? WHERE id = ?", (stamp, thread_id))
            async with connection.execute(
                f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE id = ?",
                (message_id,),
            ) as cursor:
                row = await cursor.fetchone()
        return _message_from_row(row)

    async def list_messages(self, thread_id: str) -> list[MessageRecord]:
        async with self._transaction("list_messages") as connection:
            if await self._fetch_thread(connection, thread_id) is None:
                raise NotFoundError("Thread", thread_id)
            async with connection.execute(
                f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE thread_id = ? ORDER BY sequence ASC",
                (thread_id,),
            ) as cursor:
                message_rows = await cursor.fetchall()
            async with connection.execute(
                """
                SELECT tc.id, tc.message_id, tc.tool_name, tc.tool_input, tc.tool_output,
                       tc.status, tc.created_at, tc.completed_at
                FROM tool_calls tc
                JOIN messages m ON m.id = tc.message_id
                WHERE m.thread_id = ?
                ORDER BY tc.created_at ASC, tc.rowid ASC
                """,
                (thread_id,),
            ) as cursor:
                tool_call_rows = await cursor.fetchall()

        by_message: dict[str, list[ToolCallRecord]] = {}
        for row in tool_call_rows:
            by_message.setdefault(row["message_id"], []).append(_tool_call_from_row(row))
        return [_message_from_row(row, by_message.get(row["id"])) for row in message_rows]

    async def add_tool_call(self, message_id: str, tool_name: str, tool_input: Any) -> ToolCallRecord:
        tool_call_id = new_id("tool")
        async with self._transaction("add_tool_call") as connection:
            async with connection.execute("SELECT role FROM messages WHERE id = ?", (message_id,)) as cursor:
                owner = await cursor.fetchone()
            if owner is None:
                raise NotFoundError("Message", message_id)
            if owner["role"] != "assistant":
                raise BadRequestError("Tool calls can only be attached to assistant messages")
            await connection.execute(
                """
                INSERT INTO tool_calls (id, message_id, tool_name, tool_input, status, created_at)
                VALUES (?, ?, ?, ?, 'pending', ?)
                """,
                (tool_call_id, message_id, tool_name, json.dumps(tool_input, default=str), _timestamp(utcnow())),
            )
            row = await self._fetch_tool_call(connection, tool_call_id)
        return _tool_call_from_row(row)

    async def complete_tool_call(
        self,
        tool_call_id: str,
        output: Any,
        status: ToolCallStatus = "completed",
    ) -> ToolCallRecord:
        if status not in TERMINAL_TOOL_CALL_STATUSES:
            raise BadRequestError(f"Tool calls can only be completed as 'completed' or 'failed', not {status!r}")

        async with self._transaction("complete_tool_call") as connection:
            existing = await self._fetch_tool_call(connection, tool_call_id)
            if existing is None:
                raise NotFoundError("Tool call", tool_call_id)
            if existing["status"] != "pending":
                raise InvalidTransitionError(f"Tool call is already {existing['status']}")
            await connection.execute(
                "UPDATE tool_calls SET tool_output = ?, status = ?, completed_at = ? WHERE id = ?",
                (json.dumps(output, default=str), status, _timestamp(utcnow()), tool_call_id),
            )
            row = await self._fetch_tool_call(connection, tool_call_id)
        return _tool_call_from_row(row)

    @staticmethod
    async def _fetch_thread(connection: aiosqlite.Connection, thread_id: str) -> aiosqlite.Row | None:
        async with connection.execute(f"SELECT {_THREAD_COLUMNS} FROM threads WHERE id = ?", (thread_id,)) as cursor:
            return await cursor.fetchone()

    @staticmethod
    async def _fetch_tool_call(connection: aiosqlite.Connection, tool_call_id: str) -> aiosqlite.Row | None:
        async with connection.execute(
            f"SELECT {_TOOL_CALL_COLUMNS} FROM tool_calls WHERE id = ?",
            (tool_call_id,),
        ) as cursor:
            return await cursor.fetchone()
