from __future__ import annotations

import punq
from fastapi import Request

from agent_chat.agents.factory import build_agent_registry
from agent_chat.agents.registry import AgentRegistry
from agent_chat.core.settings import Settings
from agent_chat.services.chat_service import ChatService
from agent_chat.services.contracts import ChatServiceProtocol, ConversationStoreProtocol, DatabaseServiceProtocol
from agent_chat.services.database_service import DatabaseService
from agent_chat.services.postgres_store import PostgresConversationStore
from agent_chat.services.sqlite_store import SQLiteConversationStore


def build_container(settings: Settings, *, registry: AgentRegistry | None = None) -> punq.Container:
    container = punq.Container()
    container.register(Settings, instance=settings)
    container.register(AgentRegistry, instance=registry if registry is not None else build_agent_registry(settings))

    if settings.store_backend == "postgres":
        container.register(
            DatabaseServiceProtocol,
            factory=lambda: DatabaseService(dsn=settings.database_dsn),
            scope=punq.Scope.singleton,
        )
        container.register(ConversationStoreProtocol, factory=PostgresConversationStore, scope=punq.Scope.singleton)
    else:
        container.register(
            ConversationStoreProtocol,
            factory=lambda: SQLiteConversationStore(path=settings.sqlite_path),
            scope=punq.Scope.singleton,
        )

    container.register(ChatServiceProtocol, factory=ChatService, scope=punq.Scope.singleton)
    return container


def get_container(request: Request) -> punq.Container:
    return request.app.state.container
