from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
import logging
from typing import Any

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from agent_chat.core.errors import ProviderError
from agent_chat.services.records import MessageRecord

logger = logging.getLogger(__name__)

_PROVIDER_ERROR_MESSAGE = "Completion provider request failed"


def _text_content(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(str(block.get("text") or ""))
        return "".join(parts)
    return ""


def build_prompt(system_prompt: str, history: Sequence[MessageRecord], message: str) -> list[BaseMessage]:
    """Translate persisted thread history plus the new user message into chat messages."""

    messages: list[BaseMessage] = [SystemMessage(content=system_prompt)]
    for record in history:
        if record.role == "user":
            messages.append(HumanMessage(content=record.content))
        else:
            messages.append(AIMessage(content=record.content))
    messages.append(HumanMessage(content=message))
    return messages


class CompletionProvider:
    """Single entry point for chat-completion calls made by agents."""

    def __init__(self, model: BaseChatModel) -> None:
        self._model = model

    async def complete(
        self,
        system_prompt: str,
        message: str,
        history: Sequence[MessageRecord] = (),
        *,
        follow_up: Sequence[BaseMessage] = (),
    ) -> str:
        prompt = build_prompt(system_prompt, history, message) + list(follow_up)
        try:
            response = await self._model.ainvoke(prompt)
        except Exception as exc:
            logger.exception("completion request failed", extra={"history_length": len(history)})
            raise ProviderError(_PROVIDER_ERROR_MESSAGE) from exc
        return _text_content(response.content)

    async def stream(
        self,
        system_prompt: str,
        message: str,
        history: Sequence[MessageRecord] = (),
        *,
        follow_up: Sequence[BaseMessage] = (),
    ) -> AsyncIterator[str]:
        prompt = build_prompt(system_prompt, history, message) + list(follow_up)
        try:
            async for chunk in self._model.astream(prompt):
                text = _text_content(chunk.content)
                if text:
                    yield text
        except Exception as exc:
            logger.exception("completion stream failed", extra={"history_length": len(history)})
            raise ProviderError(_PROVIDER_ERROR_MESSAGE) from exc
