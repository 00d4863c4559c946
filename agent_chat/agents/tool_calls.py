"""Text protocol that lets a completion model request one of its agent's tools.

The model answers with ``TOOL_CALL:{"toolId": ..., "input": {...}}`` somewhere
in its reply. The agent runs the tool, then asks the model for a follow-up
reply that incorporates the tool result.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
import json
from typing import Any

from agent_chat.agents.base import ToolDescriptor

TOOL_CALL_MARKER = "TOOL_CALL:"
TOOL_FAILURE_REPLY = "I encountered an error while using the tool. Let me provide a direct response instead."

_decoder = json.JSONDecoder()


@dataclass(frozen=True)
class ParsedToolCall:
    prefix: str
    tool_id: str
    input: dict[str, Any]


def with_tool_instructions(system_prompt: str, tools: Sequence[ToolDescriptor]) -> str:
    if not tools:
        return system_prompt
    listing = "\n".join(f"- {tool.name}: {tool.description}" for tool in tools)
    example = json.dumps({"toolId": "tool_id", "input": {}})
    return (
        f"{system_prompt}\n\n"
        f"Available tools:\n{listing}\n\n"
        f"When you need to use a tool, respond with: {TOOL_CALL_MARKER}{example}"
    )


def marker_index(text: str) -> int:
    return text.find(TOOL_CALL_MARKER)


def parse_tool_call(text: str) -> ParsedToolCall | None:
    """Extract the first tool call from a model reply.

    Returns ``None`` when the reply carries no marker and raises ``ValueError``
    when the marker is followed by anything but a well-formed call object.
    """

    index = marker_index(text)
    if index < 0:
        return None

    remainder = text[index + len(TOOL_CALL_MARKER) :].lstrip()
    if not remainder.startswith("{"):
        raise ValueError("Tool call is missing its JSON payload")
    try:
        payload, _ = _decoder.raw_decode(remainder)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Tool call payload is not valid JSON: {exc.msg}") from exc

    tool_id = payload.get("toolId") if isinstance(payload, dict) else None
    tool_input = payload.get("input", {}) if isinstance(payload, dict) else None
    if not isinstance(tool_id, str) or not tool_id:
        raise ValueError("Tool call needs a toolId string")
    if not isinstance(tool_input, dict):
        raise ValueError("Tool call input must be an object")
    return ParsedToolCall(prefix=text[:index], tool_id=tool_id, input=tool_input)


def tool_result_message(output: Any) -> str:
    return f"Tool result: {json.dumps(output, default=str)}. Please provide a natural response based on this result."


def separator(prefix: str) -> str:
    """Whitespace placed between text the model wrote before a tool call and what follows it."""

    if not prefix or prefix[-1].isspace():
        return ""
    return "\n\n"
