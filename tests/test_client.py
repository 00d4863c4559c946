"""Tests for the async API client against the in-process application."""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import FastAPI
import httpx
import pytest
import pytest_asyncio

from agent_chat.client import AgentChatAPIError, AgentChatClient, parse_sse_lines, turn_incomplete


@pytest_asyncio.fixture
async def api_client(app: FastAPI) -> AsyncIterator[AgentChatClient]:
    async with AgentChatClient("http://testserver/", transport=httpx.ASGITransport(app=app)) as client:
        yield client


def test_parse_sse_lines_groups_frames() -> None:
    lines = ['data: {"type": "thinking", "content": "..."}', "", 'data: {"type": "done"}']

    assert parse_sse_lines(lines) == [{"type": "thinking", "content": "..."}, {"type": "done"}]


def test_turn_incomplete_checks_last_role() -> None:
    assert turn_incomplete([{"role": "assistant"}, {"role": "user"}])
    assert not turn_incomplete([{"role": "user"}, {"role": "assistant"}])
    assert not turn_incomplete([])


@pytest.mark.asyncio
async def test_client_round_trip_through_thread_lifecycle(api_client: AgentChatClient) -> None:
    agents = await api_client.list_agents()
    thread = await api_client.create_thread(agents[0]["id"], title="Sums")

    reply = await api_client.send_message(thread["id"], "Calculate 15 * 23 + 7")
    threads = await api_client.list_threads(agent_id="math-assistant")
    messages = await api_client.list_messages(thread["id"])

    assert reply["content"] == "The answer to 15 * 23 + 7 is 352."
    assert [listed["id"] for listed in threads] == [thread["id"]]
    assert [message["role"] for message in messages] == ["user", "assistant"]
    assert not turn_incomplete(messages)
    assert await api_client.delete_thread(thread["id"]) is True


@pytest.mark.asyncio
async def test_client_stream_stops_at_done(api_client: AgentChatClient) -> None:
    thread = await api_client.create_thread("general-assistant")

    events = [event async for event in api_client.stream_message(thread["id"], "Anything")]

    assert events[0]["type"] == "thinking"
    assert events[-2] == {"type": "content", "content": "The answer is 42", "partial": False}
    assert events[-1] == {"type": "done"}


@pytest.mark.asyncio
async def test_client_raises_api_error_with_server_message(api_client: AgentChatClient) -> None:
    with pytest.raises(AgentChatAPIError) as exc_info:
        await api_client.create_thread("unknown-agent")

    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "Invalid agent_id"

    with pytest.raises(AgentChatAPIError) as exc_info:
        await api_client.get_thread("thread_missing")

    assert exc_info.value.status_code == 404
