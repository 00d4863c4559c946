"""HTTP tests for thread, message and streaming endpoints."""

from __future__ import annotations

import json

import aiosqlite
import httpx
import pytest

from agent_chat.core.settings import Settings


def _sse_events(body: str) -> list[dict]:
    return [json.loads(frame[len("data: ") :]) for frame in body.split("\n\n") if frame.startswith("data: ")]


async def _create_thread(client: httpx.AsyncClient, agent_id: str = "math-assistant", **extra: str) -> dict:
    response = await client.post("/threads", json={"agent_id": agent_id, **extra})
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_create_thread_returns_created_thread(client: httpx.AsyncClient) -> None:
    thread = await _create_thread(client, title="Homework")

    assert thread["agent_id"] == "math-assistant"
    assert thread["title"] == "Homework"
    assert {"id", "created_at", "updated_at"} <= thread.keys()

    fetched = await client.get(f"/threads/{thread['id']}")
    assert fetched.status_code == 200
    assert fetched.json() == thread


@pytest.mark.asyncio
async def test_create_thread_defaults_title(client: httpx.AsyncClient) -> None:
    thread = await _create_thread(client)

    assert thread["title"] == "New Chat"


@pytest.mark.asyncio
async def test_create_thread_with_unknown_agent_is_rejected(client: httpx.AsyncClient, test_settings: Settings) -> None:
    await _create_thread(client)

    response = await client.post("/threads", json={"agent_id": "no-such-agent"})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid agent_id"}
    async with aiosqlite.connect(test_settings.sqlite_path) as connection:
        async with connection.execute("SELECT agent_id FROM threads") as cursor:
            rows = await cursor.fetchall()
    assert [row[0] for row in rows] == ["math-assistant"]


@pytest.mark.asyncio
async def test_create_thread_without_agent_id_is_bad_request(client: httpx.AsyncClient) -> None:
    response = await client.post("/threads", json={"title": "orphan"})

    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid request: agent_id")


@pytest.mark.asyncio
async def test_send_message_runs_calculator_turn(client: httpx.AsyncClient) -> None:
    thread = await _create_thread(client)

    response = await client.post(f"/threads/{thread['id']}/messages", json={"message": "Calculate 15 * 23 + 7"})

    assert response.status_code == 200
    body = response.json()
    assert body["role"] == "assistant"
    assert "352" in body["content"]
    (tool_call,) = body["tool_calls"]
    assert tool_call["tool_name"] == "Calculator"
    assert tool_call["status"] == "completed"
    assert tool_call["tool_input"] == {"expression": "15 * 23 + 7"}


@pytest.mark.asyncio
async def test_thread_is_listed_only_after_first_message(client: httpx.AsyncClient) -> None:
    first = await _create_thread(client)
    second = await _create_thread(client)
    await client.post(f"/threads/{first['id']}/messages", json={"message": "hello"})

    listed = (await client.get("/threads", params={"agent_id": "math-assistant"})).json()["threads"]
    assert [thread["id"] for thread in listed] == [first["id"]]

    await client.post(f"/threads/{second['id']}/messages", json={"message": "2 + 2"})

    listed = (await client.get("/threads", params={"agent_id": "math-assistant"})).json()["threads"]
    assert [thread["id"] for thread in listed] == [second["id"], first["id"]]
    assert (await client.get("/threads", params={"agent_id": "web-researcher"})).json() == {"threads": []}


@pytest.mark.asyncio
async def test_list_messages_returns_turn_with_tool_calls(client: httpx.AsyncClient) -> None:
    thread = await _create_thread(client)
    await client.post(f"/threads/{thread['id']}/messages", json={"message": "Solve 2x + 5 = 13"})

    response = await client.get(f"/threads/{thread['id']}/messages")

    assert response.status_code == 200
    user_message, assistant_message = response.json()["messages"]
    assert user_message["role"] == "user"
    assert user_message["content"] == "Solve 2x + 5 = 13"
    assert user_message["tool_calls"] == []
    assert assistant_message["tool_calls"][0]["tool_name"] == "Equation Solver"
    assert assistant_message["tool_calls"][0]["tool_output"]["solution"] == 4


@pytest.mark.asyncio
async def test_delete_thread_removes_thread_and_messages(client: httpx.AsyncClient) -> None:
    thread = await _create_thread(client)
    await client.post(f"/threads/{thread['id']}/messages", json={"message": "hello"})

    deleted = await client.delete(f"/threads/{thread['id']}")

    assert deleted.status_code == 200
    assert deleted.json() == {"success": True}
    assert (await client.get(f"/threads/{thread['id']}")).status_code == 404
    missing_messages = await client.get(f"/threads/{thread['id']}/messages")
    assert missing_messages.status_code == 404
    assert missing_messages.json() == {"error": "Thread not found"}
    assert (await client.delete(f"/threads/{thread['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_send_message_to_missing_thread_returns_404(client: httpx.AsyncClient) -> None:
    response = await client.post("/threads/thread_missing/messages", json={"message": "hello"})

    assert response.status_code == 404
    assert response.json() == {"error": "Thread not found"}


@pytest.mark.asyncio
async def test_send_empty_message_is_bad_request(client: httpx.AsyncClient) -> None:
    thread = await _create_thread(client)

    response = await client.post(f"/threads/{thread['id']}/messages", json={"message": "   "})

    assert response.status_code == 400
    assert "message must not be empty" in response.json()["error"]


@pytest.mark.asyncio
async def test_send_multimodal_message_persists_flattened_text(client: httpx.AsyncClient) -> None:
    thread = await _create_thread(client, agent_id="web-researcher")
    message = [
        {"type": "text", "text": "What does this show?"},
        {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}},
    ]

    response = await client.post(f"/threads/{thread['id']}/messages", json={"message": message})

    assert response.status_code == 200
    messages = (await client.get(f"/threads/{thread['id']}/messages")).json()["messages"]
    assert messages[0]["content"] == "What does this show? [1 image(s) attached]"


@pytest.mark.asyncio
async def test_stream_emits_cumulative_word_chunks_then_done(client: httpx.AsyncClient) -> None:
    thread = await _create_thread(client, agent_id="general-assistant")

    response = await client.post(f"/threads/{thread['id']}/messages/stream", json={"message": "What is the answer?"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    events = _sse_events(response.text)
    assert events == [
        {"type": "thinking", "content": "Processing your request..."},
        {"type": "content", "content": "The", "partial": True},
        {"type": "content", "content": "The answer", "partial": True},
        {"type": "content", "content": "The answer is", "partial": True},
        {"type": "content", "content": "The answer is 42", "partial": False},
        {"type": "done"},
    ]


@pytest.mark.asyncio
async def test_stream_and_sync_turns_produce_the_same_content(client: httpx.AsyncClient) -> None:
    sync_thread = await _create_thread(client)
    stream_thread = await _create_thread(client)

    sync_reply = (
        await client.post(f"/threads/{sync_thread['id']}/messages", json={"message": "Calculate 15 * 23 + 7"})
    ).json()
    stream_response = await client.post(
        f"/threads/{stream_thread['id']}/messages/stream",
        json={"message": "Calculate 15 * 23 + 7"},
    )

    events = _sse_events(stream_response.text)
    final_content = [event for event in events if event["type"] == "content"][-1]["content"]
    assert final_content == sync_reply["content"]
    tool_events = [event for event in events if event["type"] == "tool_call"]
    assert tool_events[0]["tool_output"] == sync_reply["tool_calls"][0]["tool_output"]


@pytest.mark.asyncio
async def test_stream_to_missing_thread_reports_error_frame(client: httpx.AsyncClient) -> None:
    response = await client.post("/threads/thread_missing/messages/stream", json={"message": "hello"})

    assert response.status_code == 200
    assert _sse_events(response.text) == [{"type": "error", "content": "Thread not found"}]


@pytest.mark.asyncio
async def test_oversized_calculation_is_a_failed_tool_call_not_a_failed_turn(client: httpx.AsyncClient) -> None:
    thread = await _create_thread(client)
    message = "Calculate 9^999*9^999*9^999*9^999*9^999*9^999"

    stream_response = await client.post(f"/threads/{thread['id']}/messages/stream", json={"message": message})
    sync_response = await client.post(f"/threads/{thread['id']}/messages", json={"message": message})

    events = _sse_events(stream_response.text)
    assert [event["type"] for event in events][0] == "thinking"
    assert events[-1] == {"type": "done"}
    (tool_event,) = [event for event in events if event["type"] == "tool_call"]
    assert tool_event["tool_name"] == "Calculator"
    assert tool_event["tool_output"]["error"] == "Failed to calculate expression"
    assert "too large" in tool_event["tool_output"]["message"]

    assert sync_response.status_code == 200
    (tool_call,) = sync_response.json()["tool_calls"]
    assert tool_call["status"] == "failed"
    assert "too large" in tool_call["tool_output"]["message"]
