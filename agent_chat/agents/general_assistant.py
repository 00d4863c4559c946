from __future__ import annotations

from collections.abc import AsyncIterator, Mapping, Sequence
import logging
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

from agent_chat.agents.base import AgentContext, AgentResult, ToolCallRequest, ToolDescriptor
from agent_chat.agents.tool_calls import (
    TOOL_CALL_MARKER,
    TOOL_FAILURE_REPLY,
    marker_index,
    parse_tool_call,
    separator,
    tool_result_message,
    with_tool_instructions,
)
from agent_chat.agents.tools import Toolbox, build_assistance_tools
from agent_chat.providers.completion import CompletionProvider

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a helpful AI assistant. You can answer questions, help with various tasks, and have conversations on a wide range of topics.

Key capabilities:
- Answer questions accurately and helpfully
- Provide explanations and educational content
- Help with writing, analysis, and problem-solving
- Engage in natural conversation
- Admit when you don't know something

Be clear and concise, honest about limitations, and respectful."""


class GeneralAssistantAgent:
    """Conversational agent backed by the completion provider.

    The model may ask for one of the agent's tools with a ``TOOL_CALL:`` reply.
    The tool runs once per turn and a second completion turns its result into
    the final answer.
    """

    id = "general-assistant"
    name = "General Assistant"
    description = (
        "A helpful AI assistant that can answer questions, help with tasks, and have conversations "
        "on a wide range of topics"
    )

    def __init__(
        self,
        provider: CompletionProvider,
        *,
        system_prompt: str = SYSTEM_PROMPT,
        toolbox: Toolbox | None = None,
    ) -> None:
        self._provider = provider
        self._toolbox = toolbox or Toolbox(build_assistance_tools())
        self._system_prompt = with_tool_instructions(system_prompt, self._toolbox.descriptors)

    @property
    def tools(self) -> Sequence[ToolDescriptor]:
        return self._toolbox.descriptors

    async def invoke(self, message: str, context: AgentContext | None = None) -> AgentResult:
        history = context.history if context is not None else ()
        logger.debug("requesting completion", extra={"history_length": len(history)})
        reply = await self._provider.complete(self._system_prompt, message, history)

        try:
            call = parse_tool_call(reply)
        except ValueError as exc:
            logger.warning("malformed tool call in completion", extra={"error": str(exc)})
            prefix = reply[: marker_index(reply)]
            return AgentResult(content=prefix + separator(prefix) + TOOL_FAILURE_REPLY)
        if call is None:
            return AgentResult(content=reply)

        request = await self._toolbox.call(call.tool_id, call.input)
        if _failed(request):
            return AgentResult(content=call.prefix + separator(call.prefix) + TOOL_FAILURE_REPLY, tool_calls=[request])

        answer = await self._provider.complete(
            self._system_prompt, message, history, follow_up=_follow_up(reply, request)
        )
        return AgentResult(content=call.prefix + separator(call.prefix) + answer, tool_calls=[request])

    async def stream(self, message: str, context: AgentContext | None = None) -> AsyncIterator[str]:
        history = context.history if context is not None else ()
        # Text that could be the start of a marker is held back until it can be ruled out.
        holdback = len(TOOL_CALL_MARKER) - 1
        reply = ""
        emitted = 0
        async for delta in self._provider.stream(self._system_prompt, message, history):
            reply += delta
            if marker_index(reply) >= 0:
                continue
            safe = max(emitted, len(reply) - holdback)
            if safe > emitted:
                yield reply[emitted:safe]
                emitted = safe

        index = marker_index(reply)
        if index < 0:
            if emitted < len(reply):
                yield reply[emitted:]
            return

        prefix = reply[:index]
        if emitted < index:
            yield prefix[emitted:]
        try:
            call = parse_tool_call(reply)
        except ValueError as exc:
            logger.warning("malformed tool call in completion", extra={"error": str(exc)})
            yield separator(prefix) + TOOL_FAILURE_REPLY
            return

        assert call is not None
        request = await self._toolbox.call(call.tool_id, call.input)
        if _failed(request):
            yield separator(prefix) + TOOL_FAILURE_REPLY
            return
        if separator(prefix):
            yield separator(prefix)
        async for delta in self._provider.stream(
            self._system_prompt, message, history, follow_up=_follow_up(reply, request)
        ):
            yield delta

    async def execute_tool(self, tool_id: str, tool_input: Mapping[str, Any]) -> Any:
        return await self._toolbox.execute(tool_id, tool_input)


def _failed(request: ToolCallRequest) -> bool:
    return isinstance(request.output, dict) and "error" in request.output


def _follow_up(reply: str, request: ToolCallRequest) -> list[BaseMessage]:
    return [AIMessage(content=reply), HumanMessage(content=tool_result_message(request.output))]
