"""Shared test utilities and fixtures for agent chat tests."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import pytest
import pytest_asyncio
import punq
from fastapi import FastAPI
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from agent_chat.agents.factory import build_agent_registry
from agent_chat.agents.registry import AgentRegistry
from agent_chat.core.settings import Settings
from agent_chat.dependency_injection import build_container
from agent_chat.main import create_app
from agent_chat.services.contracts import ChatServiceProtocol, ConversationStoreProtocol
from agent_chat.services.sqlite_store import SQLiteConversationStore


class FakeDatabaseService:
    """Records every statement and replays queued rows at the Postgres boundary."""

    def __init__(self) -> None:
        self.connected = False
        self.fetchrow_calls: list[tuple[str, tuple]] = []
        self.fetch_calls: list[tuple[str, tuple]] = []
        self.execute_calls: list[tuple[str, tuple]] = []
        self.fetchrow_results: list[object] = []
        self.fetch_results: list[list[object]] = []
        self.transaction_calls: list[dict[str, object]] = []
        self.rolled_back = 0

    async def connect(self) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    async def fetchrow(self, query: str, *args):
        self.fetchrow_calls.append((query, args))
        return self.fetchrow_results.pop(0) if self.fetchrow_results else None

    async def fetch(self, query: str, *args):
        self.fetch_calls.append((query, args))
        return self.fetch_results.pop(0) if self.fetch_results else []

    async def execute(self, query: str, *args):
        self.execute_calls.append((query, args))
        return "OK"

    @asynccontextmanager
    async def transaction(self, **options):
        self.transaction_calls.append(options)
        try:
            yield self
        except BaseException:
            self.rolled_back += 1
            raise


@pytest.fixture
def fake_database_service() -> FakeDatabaseService:
    return FakeDatabaseService()


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        APP_ENV="test",
        STORE_BACKEND="sqlite",
        SQLITE_PATH=str(tmp_path / "agent-chat.db"),
    )


@pytest.fixture
def fake_chat_model() -> FakeListChatModel:
    return FakeListChatModel(responses=["The answer is 42"])


@pytest.fixture
def agent_registry(test_settings: Settings, fake_chat_model: FakeListChatModel) -> AgentRegistry:
    return build_agent_registry(test_settings, model=fake_chat_model)


@pytest_asyncio.fixture
async def sqlite_store(tmp_path) -> AsyncIterator[SQLiteConversationStore]:
    store = SQLiteConversationStore(path=str(tmp_path / "store.db"))
    await store.connect()
    try:
        yield store
    finally:
        await store.disconnect()


@pytest.fixture
def container(test_settings: Settings, agent_registry: AgentRegistry) -> punq.Container:
    return build_container(test_settings, registry=agent_registry)


@pytest_asyncio.fixture
async def app(test_settings: Settings, container: punq.Container) -> AsyncIterator[FastAPI]:
    # ASGITransport does not run lifespan events, so the store is opened here.
    store = container.resolve(ConversationStoreProtocol)
    await store.connect()
    try:
        yield create_app(test_settings, container)
    finally:
        await container.resolve(ChatServiceProtocol).wait_for_pending_turns()
        await store.disconnect()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client
