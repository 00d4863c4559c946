from __future__ import annotations

import logging
from pathlib import Path

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_openai import ChatOpenAI

from agent_chat.agents.general_assistant import GeneralAssistantAgent
from agent_chat.agents.math_assistant import MathAssistantAgent
from agent_chat.agents.registry import AgentRegistry
from agent_chat.agents.web_researcher import WebResearcherAgent
from agent_chat.core.settings import Settings
from agent_chat.providers.completion import CompletionProvider

logger = logging.getLogger(__name__)

_MOCK_MESSAGE_DELIMITER = "\n\n--- message ---\n\n"


def load_mock_messages(messages_file: str) -> list[str]:
    path = Path(messages_file)
    raw_content = path.read_text(encoding="utf-8")
    parsed_messages = [chunk.strip() for chunk in raw_content.split(_MOCK_MESSAGE_DELIMITER)]
    messages = [message for message in parsed_messages if message]
    if not messages:
        raise ValueError(
            f"No mock messages found in {path}. Use delimiter {_MOCK_MESSAGE_DELIMITER!r} between messages."
        )
    return messages


def build_completion_model(settings: Settings) -> BaseChatModel | None:
    """Return the chat model behind the completion provider, or ``None`` when unconfigured."""

    if settings.completion_use_mock:
        fake_responses = load_mock_messages(settings.completion_mock_messages_file)
        logger.info("using FakeListChatModel completion provider", extra={"responses_count": len(fake_responses)})
        return FakeListChatModel(responses=fake_responses)

    if not settings.openai_api_key:
        logger.warning("no completion provider configured; model-backed agents are disabled")
        return None

    logger.info("using ChatOpenAI completion provider", extra={"model": settings.completion_model})
    return ChatOpenAI(
        model=settings.completion_model,
        base_url=settings.openai_base_url,
        api_key=settings.openai_api_key,
        temperature=settings.completion_temperature,
        max_tokens=settings.completion_max_tokens,
    )


def build_agent_registry(settings: Settings, *, model: BaseChatModel | None = None) -> AgentRegistry:
    """Register the built-in agents; the general assistant only when a model is available."""

    registry = AgentRegistry([MathAssistantAgent(), WebResearcherAgent()])
    chat_model = model if model is not None else build_completion_model(settings)
    if chat_model is not None:
        registry.register(GeneralAssistantAgent(CompletionProvider(chat_model)))
    return registry
