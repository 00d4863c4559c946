from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
import logging
from typing import Any

from langchain_core.tools import BaseTool, StructuredTool
from pydantic import ValidationError

from agent_chat.agents.base import ToolCallRequest, ToolDescriptor
from agent_chat.core.errors import ToolExecutionError, UnknownToolError

logger = logging.getLogger(__name__)

_SCHEMA_METADATA_KEYS = frozenset({"title", "description"})


@dataclass(frozen=True)
class Tool:
    descriptor: ToolDescriptor
    runnable: BaseTool


def define_tool(func: Callable[..., Any], *, tool_id: str, name: str, description: str) -> Tool:
    """Wrap a plain function as a schema-described tool.

    Argument descriptions come from the function's Google-style docstring.
    """

    runnable = StructuredTool.from_function(
        func=func,
        name=tool_id,
        description=description,
        parse_docstring=True,
    )
    return Tool(
        descriptor=ToolDescriptor(
            id=tool_id,
            name=name,
            description=description,
            input_schema=_input_schema(runnable),
        ),
        runnable=runnable,
    )


def _input_schema(runnable: BaseTool) -> dict[str, Any]:
    schema = runnable.get_input_schema().model_json_schema()
    return {key: value for key, value in schema.items() if key not in _SCHEMA_METADATA_KEYS}


class Toolbox:
    """Ordered set of tools an agent declares and can execute by id."""

    def __init__(self, tools: Iterable[Tool]) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            if tool.descriptor.id in self._tools:
                raise ValueError(f"duplicate tool id: {tool.descriptor.id}")
            self._tools[tool.descriptor.id] = tool

    @property
    def descriptors(self) -> tuple[ToolDescriptor, ...]:
        return tuple(tool.descriptor for tool in self._tools.values())

    def descriptor(self, tool_id: str) -> ToolDescriptor:
        tool = self._tools.get(tool_id)
        if tool is None:
            raise UnknownToolError(tool_id)
        return tool.descriptor

    async def execute(self, tool_id: str, tool_input: Mapping[str, Any]) -> Any:
        tool = self._tools.get(tool_id)
        if tool is None:
            raise UnknownToolError(tool_id)

        logger.debug("executing tool", extra={"tool_id": tool_id})
        try:
            return await tool.runnable.ainvoke(dict(tool_input))
        except ValidationError as exc:
            fields = ", ".join(".".join(str(part) for part in error["loc"]) for error in exc.errors())
            raise ToolExecutionError(f"Invalid input for {tool.descriptor.name}: {fields}") from exc

    async def call(self, tool_id: str, tool_input: Mapping[str, Any]) -> ToolCallRequest:
        """Execute a tool and capture the outcome, folding any failure into an error output."""

        name = self._tools[tool_id].descriptor.name if tool_id in self._tools else tool_id
        try:
            output = await self.execute(tool_id, tool_input)
        except Exception as exc:
            logger.warning("tool execution failed", extra={"tool_id": tool_id, "error": str(exc)})
            output = {"error": "Tool execution failed", "message": str(exc)}
        return ToolCallRequest(tool_id=tool_id, name=name, input=dict(tool_input), output=output)
