"""Typed stream events produced by a model backend for one turn.

Each event carries a ``type`` discriminator so scripted streams (YAML,
JSON) validate straight into the right variant via ``StreamEventAdapter``.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, Field, TypeAdapter

from cadence.models.tools import ToolCallRequest


class StreamEventType(StrEnum):
    thought = "thought"
    content = "content"
    tool_call_request = "tool_call_request"
    tool_call_response = "tool_call_response"
    tool_call_confirmation = "tool_call_confirmation"
    user_cancelled = "user_cancelled"
    error = "error"
    chat_compressed = "chat_compressed"
    usage_metadata = "usage_metadata"


class ThoughtSummary(BaseModel):
    subject: str = ""
    description: str = ""


class StructuredError(BaseModel):
    message: str
    status: int | None = None


class UsageMetadata(BaseModel):
    prompt_token_count: int = 0
    candidates_token_count: int = 0
    total_token_count: int = 0
    cached_content_token_count: int = 0
    tool_use_prompt_token_count: int = 0
    thoughts_token_count: int = 0
    api_time_ms: int = 0


class ChatCompressionInfo(BaseModel):
    original_token_count: int | None = None
    new_token_count: int | None = None


class ThoughtEvent(BaseModel):
    type: Literal["thought"] = "thought"
    value: ThoughtSummary


class ContentEvent(BaseModel):
    type: Literal["content"] = "content"
    value: str


class ToolCallRequestEvent(BaseModel):
    type: Literal["tool_call_request"] = "tool_call_request"
    value: ToolCallRequest


class ToolCallResponseEvent(BaseModel):
    """Echo of a tool response; owned by the scheduler, ignored by the processor."""

    type: Literal["tool_call_response"] = "tool_call_response"
    value: dict[str, object] = Field(default_factory=dict)


class ToolCallConfirmationEvent(BaseModel):
    """Echo of a confirmation request; owned by the scheduler, ignored by the processor."""

    type: Literal["tool_call_confirmation"] = "tool_call_confirmation"
    value: dict[str, object] = Field(default_factory=dict)


class UserCancelledEvent(BaseModel):
    type: Literal["user_cancelled"] = "user_cancelled"


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    value: StructuredError | str


class ChatCompressedEvent(BaseModel):
    type: Literal["chat_compressed"] = "chat_compressed"
    value: ChatCompressionInfo | None = None


class UsageMetadataEvent(BaseModel):
    type: Literal["usage_metadata"] = "usage_metadata"
    value: UsageMetadata


StreamEvent = Annotated[
    ThoughtEvent
    | ContentEvent
    | ToolCallRequestEvent
    | ToolCallResponseEvent
    | ToolCallConfirmationEvent
    | UserCancelledEvent
    | ErrorEvent
    | ChatCompressedEvent
    | UsageMetadataEvent,
    Field(discriminator="type"),
]

StreamEventAdapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


__all__ = [
    "ChatCompressedEvent",
    "ChatCompressionInfo",
    "ContentEvent",
    "ErrorEvent",
    "StreamEvent",
    "StreamEventAdapter",
    "StreamEventType",
    "StructuredError",
    "ThoughtEvent",
    "ThoughtSummary",
    "ToolCallConfirmationEvent",
    "ToolCallRequestEvent",
    "ToolCallResponseEvent",
    "UsageMetadata",
    "UsageMetadataEvent",
    "UserCancelledEvent",
]
