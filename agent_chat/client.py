"""Async HTTP client for the agent chat API.

Mirrors the server's wire contract: JSON bodies for CRUD endpoints and a
``text/event-stream`` body of ``data: <json>`` frames for streamed turns.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping, Sequence
import json
import logging
from typing import Any

import httpx

from agent_chat.services.chat_stream import MessageInput

logger = logging.getLogger(__name__)

_DATA_PREFIX = "data:"


class AgentChatAPIError(Exception):
    """Raised for any non-2xx response from the agent chat API."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


def turn_incomplete(messages: Sequence[Mapping[str, Any]]) -> bool:
    """Whether the last persisted message is a user message without a reply."""

    return bool(messages) and messages[-1].get("role") == "user"


def parse_sse_lines(lines: Sequence[str]) -> list[dict[str, Any]]:
    """Parse already-split SSE lines into event payloads."""

    events: list[dict[str, Any]] = []
    buffer: list[str] = []
    for line in [*lines, ""]:
        if line.startswith(_DATA_PREFIX):
            buffer.append(line[len(_DATA_PREFIX) :].lstrip())
        elif not line and buffer:
            events.append(json.loads("\n".join(buffer)))
            buffer = []
    return events


class AgentChatClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 60.0,
        bearer_token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {bearer_token}"} if bearer_token else None
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    async def __aenter__(self) -> AgentChatClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_agents(self) -> list[dict[str, Any]]:
        return (await self._request("GET", "/agents"))["agents"]

    async def list_threads(self, agent_id: str | None = None) -> list[dict[str, Any]]:
        params = {"agent_id": agent_id} if agent_id else None
        return (await self._request("GET", "/threads", params=params))["threads"]

    async def create_thread(self, agent_id: str, title: str | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {"agent_id": agent_id}
        if title is not None:
            body["title"] = title
        return await self._request("POST", "/threads", json=body)

    async def get_thread(self, thread_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/threads/{thread_id}")

    async def delete_thread(self, thread_id: str) -> bool:
        return bool((await self._request("DELETE", f"/threads/{thread_id}"))["success"])

    async def list_messages(self, thread_id: str) -> list[dict[str, Any]]:
        return (await self._request("GET", f"/threads/{thread_id}/messages"))["messages"]

    async def send_message(self, thread_id: str, message: MessageInput) -> dict[str, Any]:
        return await self._request("POST", f"/threads/{thread_id}/messages", json={"message": _wire_message(message)})

    async def stream_message(self, thread_id: str, message: MessageInput) -> AsyncIterator[dict[str, Any]]:
        """Yield stream events until ``done`` or ``error``."""

        async with self._client.stream(
            "POST",
            f"/threads/{thread_id}/messages/stream",
            json={"message": _wire_message(message)},
            headers={"Accept": "text/event-stream"},
        ) as response:
            if response.is_error:
                await response.aread()
                raise _api_error(response)

            buffer: list[str] = []
            async for line in response.aiter_lines():
                if line:
                    buffer.append(line)
                    continue
                for event in parse_sse_lines(buffer):
                    yield event
                    if event.get("type") in {"done", "error"}:
                        return
                buffer = []
            for event in parse_sse_lines(buffer):
                yield event

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._client.request(method, path, **kwargs)
        if response.is_error:
            raise _api_error(response)
        return response.json()


def _wire_message(message: MessageInput) -> str | list[dict[str, Any]]:
    if isinstance(message, str):
        return message
    return [dict(part) for part in message]


def _api_error(response: httpx.Response) -> AgentChatAPIError:
    try:
        message = str(response.json().get("error") or response.reason_phrase)
    except (ValueError, AttributeError):
        message = response.text or response.reason_phrase
    logger.debug("agent chat API error", extra={"status_code": response.status_code, "error": message})
    return AgentChatAPIError(response.status_code, message)
