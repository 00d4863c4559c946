from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
import json
from typing import Any, Literal, TypedDict

THINKING_CONTENT = "Processing your request..."

MessageInput = str | Sequence[Mapping[str, Any]]


class ThinkingEvent(TypedDict):
    type: Literal["thinking"]
    content: str


class ContentEvent(TypedDict):
    type: Literal["content"]
    content: str
    partial: bool


class ToolCallEvent(TypedDict):
    type: Literal["tool_call"]
    tool_name: str
    tool_input: Any
    tool_output: Any


class DoneEvent(TypedDict):
    type: Literal["done"]


class ErrorEvent(TypedDict):
    type: Literal["error"]
    content: str


ChatStreamEventType = Literal["thinking", "content", "tool_call", "done", "error"]
ChatStreamEvent = ThinkingEvent | ContentEvent | ToolCallEvent | DoneEvent | ErrorEvent


def thinking_event() -> ThinkingEvent:
    return {"type": "thinking", "content": THINKING_CONTENT}


def done_event() -> DoneEvent:
    return {"type": "done"}


def error_event(message: str) -> ErrorEvent:
    return {"type": "error", "content": message}


def cumulative_word_chunks(text: str) -> Iterator[tuple[str, bool]]:
    """Yield ``(prefix, partial)`` pairs growing one space-separated word at a time.

    Every prefix is a strict prefix of the next and the last one equals ``text``.
    An empty text yields a single empty, non-partial chunk.
    """
    words = text.split(" ")
    for index in range(len(words)):
        yield " ".join(words[: index + 1]), index < len(words) - 1


def word_deltas(text: str) -> Iterator[str]:
    """Yield word-boundary fragments whose concatenation is ``text``."""
    previous = ""
    for prefix, _ in cumulative_word_chunks(text):
        delta = prefix[len(previous) :]
        previous = prefix
        if delta:
            yield delta


def flatten_message_content(message: MessageInput) -> str:
    """Reduce a text or multimodal message to the text form that gets persisted."""
    if isinstance(message, str):
        return message

    text_parts: list[str] = []
    image_count = 0
    for part in message:
        part_type = part.get("type")
        if part_type == "text":
            text_parts.append(str(part.get("text") or ""))
        elif part_type == "image_url":
            image_count += 1

    flattened = " ".join(text_parts)
    if image_count:
        flattened += f" [{image_count} image(s) attached]"
    return flattened


def encode_sse_event(event: ChatStreamEvent) -> str:
    return f"data: {json.dumps(event, default=str)}\n\n"
