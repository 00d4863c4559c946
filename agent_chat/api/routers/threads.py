from collections.abc import AsyncIterator
import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import StreamingResponse

from agent_chat.agents.registry import AgentRegistry
from agent_chat.api.dependencies.services import get_agent_registry, get_chat_service, get_conversation_store
from agent_chat.api.schemas.threads import (
    CreateThreadRequest,
    DeleteThreadResponse,
    MessageListResponse,
    MessageResponse,
    SendMessageRequest,
    ThreadListResponse,
    ThreadResponse,
    TurnResponse,
)
from agent_chat.core.errors import InvalidAgentError
from agent_chat.services.chat_stream import ChatStreamEvent, encode_sse_event
from agent_chat.services.contracts import ChatServiceProtocol, ConversationStoreProtocol

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/threads", tags=["threads"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def _sse_frames(events: AsyncIterator[ChatStreamEvent]) -> AsyncIterator[str]:
    async for event in events:
        yield encode_sse_event(event)


@router.get("", response_model=ThreadListResponse, summary="List threads that have at least one message")
async def list_threads(
    agent_id: str | None = Query(default=None, description="Only return threads owned by this agent"),
    store: ConversationStoreProtocol = Depends(get_conversation_store),
) -> ThreadListResponse:
    threads = await store.list_threads(agent_id or None)
    return ThreadListResponse(threads=[ThreadResponse.from_record(thread) for thread in threads])


@router.post(
    "",
    response_model=ThreadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a thread for a registered agent",
)
async def create_thread(
    payload: CreateThreadRequest,
    store: ConversationStoreProtocol = Depends(get_conversation_store),
    registry: AgentRegistry = Depends(get_agent_registry),
) -> ThreadResponse:
    if payload.agent_id not in registry:
        raise InvalidAgentError("Invalid agent_id")
    thread = await store.create_thread(payload.agent_id, payload.title)
    logger.info("thread created", extra={"thread_id": thread.id, "agent_id": thread.agent_id})
    return ThreadResponse.from_record(thread)


@router.get("/{thread_id}", response_model=ThreadResponse, summary="Get one thread")
async def get_thread(
    thread_id: str,
    store: ConversationStoreProtocol = Depends(get_conversation_store),
) -> ThreadResponse:
    return ThreadResponse.from_record(await store.get_thread(thread_id))


@router.delete("/{thread_id}", response_model=DeleteThreadResponse, summary="Delete a thread and its messages")
async def delete_thread(
    thread_id: str,
    store: ConversationStoreProtocol = Depends(get_conversation_store),
) -> DeleteThreadResponse:
    await store.delete_thread(thread_id)
    return DeleteThreadResponse(success=True)


@router.get("/{thread_id}/messages", response_model=MessageListResponse, summary="List thread messages in order")
async def list_messages(
    thread_id: str,
    store: ConversationStoreProtocol = Depends(get_conversation_store),
) -> MessageListResponse:
    messages = await store.list_messages(thread_id)
    return MessageListResponse(messages=[MessageResponse.from_record(message) for message in messages])


@router.post(
    "/{thread_id}/messages",
    response_model=TurnResponse,
    summary="Run one turn and return the assistant reply",
)
async def send_message(
    thread_id: str,
    payload: SendMessageRequest,
    chat_service: ChatServiceProtocol = Depends(get_chat_service),
) -> TurnResponse:
    assistant_message = await chat_service.run_turn(thread_id, payload.message_input())
    return TurnResponse.from_record(assistant_message)


@router.post(
    "/{thread_id}/messages/stream",
    summary="Run one turn and stream its progress as server-sent events",
    description=(
        "Emits thinking, cumulative content, tool_call and done frames. Failures after the stream opens "
        "are reported as a single error frame."
    ),
)
async def stream_message(
    thread_id: str,
    payload: SendMessageRequest,
    chat_service: ChatServiceProtocol = Depends(get_chat_service),
) -> StreamingResponse:
    logger.info("streaming turn requested", extra={"thread_id": thread_id})
    events = chat_service.stream_turn(thread_id, payload.message_input())
    return StreamingResponse(_sse_frames(events), media_type="text/event-stream", headers=SSE_HEADERS)
