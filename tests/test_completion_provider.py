from __future__ import annotations

from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage
import pytest

from agent_chat.core.errors import ProviderError
from agent_chat.providers.completion import CompletionProvider, build_prompt
from agent_chat.services.records import MessageRecord, utcnow


class FailingChatModel:
    async def ainvoke(self, prompt):
        raise RuntimeError("upstream timeout")

    async def astream(self, prompt):
        yield AIMessage(content="partial")
        raise RuntimeError("stream dropped")


def _record(role: str, content: str, sequence: int) -> MessageRecord:
    return MessageRecord(
        id=f"msg_{sequence}",
        thread_id="thread_1",
        role=role,
        content=content,
        sequence=sequence,
        created_at=utcnow(),
    )


def test_build_prompt_replays_history_between_system_and_new_message() -> None:
    history = [_record("user", "What is 2 + 2?", 1), _record("assistant", "4", 2)]

    prompt = build_prompt("Be brief.", history, "And 3 + 3?")

    assert [type(message) for message in prompt] == [SystemMessage, HumanMessage, AIMessage, HumanMessage]
    assert [message.content for message in prompt] == ["Be brief.", "What is 2 + 2?", "4", "And 3 + 3?"]


@pytest.mark.asyncio
async def test_complete_returns_model_text() -> None:
    provider = CompletionProvider(FakeListChatModel(responses=["The answer is 42"]))

    assert await provider.complete("system", "question") == "The answer is 42"


@pytest.mark.asyncio
async def test_stream_yields_deltas_that_join_to_full_text() -> None:
    provider = CompletionProvider(FakeListChatModel(responses=["The answer is 42"]))

    deltas = [delta async for delta in provider.stream("system", "question")]

    assert len(deltas) > 1
    assert "".join(deltas) == "The answer is 42"


@pytest.mark.asyncio
async def test_complete_failure_raises_provider_error() -> None:
    provider = CompletionProvider(FailingChatModel())

    with pytest.raises(ProviderError) as exc_info:
        await provider.complete("system", "question")

    assert exc_info.value.message == "Completion provider request failed"


@pytest.mark.asyncio
async def test_stream_failure_raises_provider_error_after_partial_output() -> None:
    provider = CompletionProvider(FailingChatModel())
    received: list[str] = []

    with pytest.raises(ProviderError):
        async for delta in provider.stream("system", "question"):
            received.append(delta)

    assert received == ["partial"]
