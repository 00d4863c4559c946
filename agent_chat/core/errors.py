"""Error taxonomy shared by the store, agents and HTTP layer.

Each error carries the HTTP status the API maps it to. Store and registry
errors propagate unchanged up to the routers; tool failures are folded into
tool-call output by the toolbox instead of aborting a turn.
"""

from __future__ import annotations


class ChatError(Exception):
    """Base class for all domain errors surfaced by the chat backend."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(ChatError):
    """A thread, message or tool call referenced by id does not exist."""

    status_code = 404

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} not found")
        self.entity = entity
        self.entity_id = entity_id


class InvalidAgentError(ChatError):
    """An agent id is not present in the registry."""

    status_code = 400


class BadRequestError(ChatError):
    """Malformed input or a missing required field."""

    status_code = 400


class InvalidTransitionError(ChatError):
    """A tool call was asked to leave a terminal status."""

    status_code = 409


class ToolExecutionError(ChatError):
    """A tool ran but could not produce a result."""


class UnknownToolError(ToolExecutionError):
    """The requested tool id is not declared by the agent."""

    def __init__(self, tool_id: str) -> None:
        super().__init__(f"Unknown tool: {tool_id}")
        self.tool_id = tool_id


class ProviderError(ChatError):
    """The completion provider failed or timed out."""


class StoreError(ChatError):
    """The persistence layer failed."""
