from fastapi import Request

from agent_chat.agents.registry import AgentRegistry
from agent_chat.dependency_injection import get_container
from agent_chat.services.contracts import ChatServiceProtocol, ConversationStoreProtocol


def get_agent_registry(request: Request) -> AgentRegistry:
    return get_container(request).resolve(AgentRegistry)


def get_conversation_store(request: Request) -> ConversationStoreProtocol:
    return get_container(request).resolve(ConversationStoreProtocol)


def get_chat_service(request: Request) -> ChatServiceProtocol:
    return get_container(request).resolve(ChatServiceProtocol)
