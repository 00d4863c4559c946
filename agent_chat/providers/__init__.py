"""Completion provider adapters used by model-backed agents."""

from agent_chat.providers.completion import CompletionProvider

__all__ = ["CompletionProvider"]
