from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
import asyncio
import logging
import weakref

from agent_chat.agents.base import AgentContext, ToolCallRequest
from agent_chat.agents.registry import AgentRegistry
from agent_chat.core.errors import ChatError, InvalidAgentError
from agent_chat.core.settings import Settings
from agent_chat.services.chat_stream import (
    ChatStreamEvent,
    MessageInput,
    ToolCallEvent,
    cumulative_word_chunks,
    done_event,
    error_event,
    flatten_message_content,
    thinking_event,
)
from agent_chat.services.contracts import ConversationStoreProtocol
from agent_chat.services.records import MessageRecord, ToolCallRecord, ToolCallStatus

logger = logging.getLogger(__name__)

_SENTINEL = object()
_UNEXPECTED_ERROR_MESSAGE = "Something went wrong"


@dataclass
class _TurnState:
    assistant_message: MessageRecord | None = None
    tool_calls: list[ToolCallRecord] = field(default_factory=list)


class ChatService:
    """Runs user turns against the thread's agent and persists the outcome.

    A turn walks a fixed sequence: persist the user message, announce
    ``thinking``, invoke the agent, stream the reply as cumulative word
    chunks, persist the assistant message, then record each tool call.
    Streaming turns run in a background task so a vanished client never
    interrupts persistence.
    """

    def __init__(
        self,
        store: ConversationStoreProtocol,
        registry: AgentRegistry,
        settings: Settings,
    ) -> None:
        self._store = store
        self._registry = registry
        self._chunk_delay_seconds = settings.stream_chunk_delay_seconds
        self._thread_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        self._producers: set[asyncio.Task[None]] = set()

    async def run_turn(self, thread_id: str, message: MessageInput) -> MessageRecord:
        state = _TurnState()
        async with self._thread_lock(thread_id):
            async for _ in self._execute_turn(thread_id, message, state, paced=False):
                pass
        assert state.assistant_message is not None
        return state.assistant_message.model_copy(update={"tool_calls": list(state.tool_calls)})

    def stream_turn(self, thread_id: str, message: MessageInput) -> AsyncIterator[ChatStreamEvent]:
        queue: asyncio.Queue[ChatStreamEvent | object] = asyncio.Queue()
        task = asyncio.create_task(self._produce_stream(thread_id, message, queue))
        self._producers.add(task)
        task.add_done_callback(self._producers.discard)
        return self._drain(queue)

    async def wait_for_pending_turns(self) -> None:
        """Block until every background streaming turn has finished persisting."""

        if self._producers:
            await asyncio.gather(*list(self._producers), return_exceptions=True)

    def _thread_lock(self, thread_id: str) -> asyncio.Lock:
        lock = self._thread_locks.get(thread_id)
        if lock is None:
            lock = asyncio.Lock()
            self._thread_locks[thread_id] = lock
        return lock

    @staticmethod
    async def _drain(queue: asyncio.Queue[ChatStreamEvent | object]) -> AsyncIterator[ChatStreamEvent]:
        while True:
            event = await queue.get()
            if event is _SENTINEL:
                return
            yield event  # type: ignore[misc]

    async def _produce_stream(
        self,
        thread_id: str,
        message: MessageInput,
        queue: asyncio.Queue[ChatStreamEvent | object],
    ) -> None:
        try:
            async with self._thread_lock(thread_id):
                async for event in self._execute_turn(thread_id, message, _TurnState(), paced=True):
                    await queue.put(event)
        except ChatError as exc:
            logger.warning(
                "chat turn failed",
                extra={"thread_id": thread_id, "error_type": type(exc).__name__, "error": exc.message},
            )
            await queue.put(error_event(exc.message))
        except Exception:
            logger.exception("chat turn failed unexpectedly", extra={"thread_id": thread_id})
            await queue.put(error_event(_UNEXPECTED_ERROR_MESSAGE))
        finally:
            await queue.put(_SENTINEL)

    async def _execute_turn(
        self,
        thread_id: str,
        message: MessageInput,
        state: _TurnState,
        *,
        paced: bool,
    ) -> AsyncIterator[ChatStreamEvent]:
        thread = await self._store.get_thread(thread_id)
        agent = self._registry.get(thread.agent_id)
        if agent is None:
            raise InvalidAgentError("Agent not found")

        content = flatten_message_content(message)
        history = await self._store.list_messages(thread_id)
        await self._store.append_message(thread_id, "user", content)
        logger.info("user message persisted", extra={"thread_id": thread_id, "agent_id": agent.id})
        yield thinking_event()

        result = await agent.invoke(content, AgentContext(thread_id=thread_id, history=history))
        for text, partial in cumulative_word_chunks(result.content):
            yield {"type": "content", "content": text, "partial": partial}
            if paced and partial and self._chunk_delay_seconds:
                await asyncio.sleep(self._chunk_delay_seconds)

        assistant_message = await self._store.append_message(thread_id, "assistant", result.content)
        state.assistant_message = assistant_message

        for request in result.tool_calls:
            record = await self._record_tool_call(assistant_message.id, request)
            state.tool_calls.append(record)
            yield self._tool_call_event(record)

        logger.info(
            "chat turn complete",
            extra={"thread_id": thread_id, "message_id": assistant_message.id, "tool_calls": len(state.tool_calls)},
        )
        yield done_event()

    async def _record_tool_call(self, message_id: str, request: ToolCallRequest) -> ToolCallRecord:
        pending = await self._store.add_tool_call(message_id, request.name, request.input)
        failed = isinstance(request.output, dict) and "error" in request.output
        status: ToolCallStatus = "failed" if failed else "completed"
        if failed:
            logger.info("tool call failed", extra={"tool_call_id": pending.id, "tool_id": request.tool_id})
        return await self._store.complete_tool_call(pending.id, request.output, status)

    @staticmethod
    def _tool_call_event(record: ToolCallRecord) -> ToolCallEvent:
        return {
            "type": "tool_call",
            "tool_name": record.tool_name,
            "tool_input": record.tool_input,
            "tool_output": record.tool_output,
        }
