"""Tests for building the completion model and the default agent registry."""

from __future__ import annotations

from pathlib import Path

from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_openai import ChatOpenAI
import pytest

from agent_chat.agents.factory import build_agent_registry, build_completion_model, load_mock_messages
from agent_chat.core.settings import Settings


def _settings(**overrides: object) -> Settings:
    return Settings(_env_file=None, APP_ENV="test", **overrides)


def test_load_mock_messages_splits_on_delimiter(tmp_path: Path) -> None:
    messages_file = tmp_path / "messages.md"
    messages_file.write_text("first reply\n\n--- message ---\n\nsecond reply\n", encoding="utf-8")

    assert load_mock_messages(str(messages_file)) == ["first reply", "second reply"]


def test_load_mock_messages_rejects_empty_file(tmp_path: Path) -> None:
    messages_file = tmp_path / "empty.md"
    messages_file.write_text("\n\n", encoding="utf-8")

    with pytest.raises(ValueError, match="No mock messages found"):
        load_mock_messages(str(messages_file))


def test_build_completion_model_uses_fake_model_in_mock_mode(tmp_path: Path) -> None:
    messages_file = tmp_path / "messages.md"
    messages_file.write_text("The answer is 42", encoding="utf-8")

    model = build_completion_model(
        _settings(COMPLETION_USE_MOCK=True, COMPLETION_MOCK_MESSAGES_FILE=str(messages_file))
    )

    assert isinstance(model, FakeListChatModel)
    assert model.responses == ["The answer is 42"]


def test_build_completion_model_without_api_key_returns_none() -> None:
    assert build_completion_model(_settings(OPENAI_API_KEY=None)) is None


def test_build_completion_model_with_api_key_uses_openai() -> None:
    model = build_completion_model(_settings(OPENAI_API_KEY="sk-test", COMPLETION_MODEL="gpt-4o-mini"))

    assert isinstance(model, ChatOpenAI)
    assert model.model_name == "gpt-4o-mini"


def test_registry_without_model_omits_general_assistant() -> None:
    registry = build_agent_registry(_settings(OPENAI_API_KEY=None))

    assert [agent.id for agent in registry.all()] == ["math-assistant", "web-researcher"]


def test_registry_with_model_registers_all_built_in_agents() -> None:
    registry = build_agent_registry(_settings(), model=FakeListChatModel(responses=["hi"]))

    assert [agent.id for agent in registry.all()] == ["math-assistant", "web-researcher", "general-assistant"]
