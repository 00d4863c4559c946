from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, field_validator

from agent_chat.services.chat_stream import MessageInput
from agent_chat.services.records import MessageRecord, ThreadRecord, ToolCallRecord


class CreateThreadRequest(BaseModel):
    agent_id: str = Field(..., min_length=1, description="Registered agent that owns the new thread")
    title: str | None = Field(default=None, description='Optional thread title, defaults to "New Chat"')


class ThreadResponse(BaseModel):
    id: str = Field(..., description="Thread identifier")
    agent_id: str = Field(..., description="Agent that owns the thread")
    title: str = Field(..., description="Human-readable thread title")
    created_at: datetime = Field(..., description="Thread creation timestamp")
    updated_at: datetime = Field(..., description="Timestamp of the most recent message append")

    @classmethod
    def from_record(cls, record: ThreadRecord) -> "ThreadResponse":
        return cls(**record.model_dump())


class ThreadListResponse(BaseModel):
    threads: list[ThreadResponse] = Field(default_factory=list, description="Non-empty threads, newest first")


class DeleteThreadResponse(BaseModel):
    success: bool = Field(default=True, description="Whether the thread was deleted")


class ToolCallResponse(BaseModel):
    id: str = Field(..., description="Tool call identifier")
    tool_name: str = Field(..., description="Display name of the invoked tool")
    tool_input: Any = Field(default=None, description="Structured tool input")
    tool_output: Any = Field(default=None, description="Structured tool output, null while pending")
    status: Literal["pending", "completed", "failed"] = Field(..., description="Tool call lifecycle status")
    created_at: datetime = Field(..., description="Tool call creation timestamp")
    completed_at: datetime | None = Field(default=None, description="Terminal transition timestamp")

    @classmethod
    def from_record(cls, record: ToolCallRecord) -> "ToolCallResponse":
        return cls(**record.model_dump(exclude={"message_id"}))


class MessageResponse(BaseModel):
    id: str = Field(..., description="Message identifier")
    thread_id: str = Field(..., description="Owning thread identifier")
    role: Literal["user", "assistant"] = Field(..., description="Message speaker role")
    content: str = Field(..., description="Flattened textual message content")
    created_at: datetime = Field(..., description="Message creation timestamp")
    tool_calls: list[ToolCallResponse] = Field(default_factory=list, description="Tool calls issued by this message")

    @classmethod
    def from_record(cls, record: MessageRecord) -> "MessageResponse":
        return cls(
            id=record.id,
            thread_id=record.thread_id,
            role=record.role,
            content=record.content,
            created_at=record.created_at,
            tool_calls=[ToolCallResponse.from_record(tool_call) for tool_call in record.tool_calls],
        )


class MessageListResponse(BaseModel):
    messages: list[MessageResponse] = Field(default_factory=list, description="Messages in replay order")


class TextPart(BaseModel):
    type: Literal["text"]
    text: str


class ImagePart(BaseModel):
    type: Literal["image_url"]
    image_url: str | dict[str, Any]


ContentPart = Annotated[TextPart | ImagePart, Field(discriminator="type")]


class SendMessageRequest(BaseModel):
    message: str | list[ContentPart] = Field(
        ...,
        description="User message as plain text or as a list of text and image parts",
    )

    @field_validator("message")
    @classmethod
    def _require_content(cls, value: str | list[TextPart | ImagePart]) -> str | list[TextPart | ImagePart]:
        if isinstance(value, str) and not value.strip():
            raise ValueError("message must not be empty")
        if isinstance(value, list) and not value:
            raise ValueError("message must contain at least one part")
        return value

    def message_input(self) -> MessageInput:
        if isinstance(self.message, str):
            return self.message
        return [part.model_dump() for part in self.message]


class TurnResponse(BaseModel):
    id: str = Field(..., description="Assistant message identifier")
    role: Literal["assistant"] = Field(default="assistant", description="Always assistant")
    content: str = Field(..., description="Full assistant reply")
    created_at: datetime = Field(..., description="Assistant message creation timestamp")
    tool_calls: list[ToolCallResponse] = Field(default_factory=list, description="Tool calls recorded for the turn")

    @classmethod
    def from_record(cls, record: MessageRecord) -> "TurnResponse":
        return cls(
            id=record.id,
            content=record.content,
            created_at=record.created_at,
            tool_calls=[ToolCallResponse.from_record(tool_call) for tool_call in record.tool_calls],
        )
