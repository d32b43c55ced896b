from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

# A query sent to the model: raw user text or a list of content parts
# (tool responses are sent back as parts).
Part = dict[str, Any]
QueryPayload = str | list[Part | str]


class ToolCallStatus(StrEnum):
    validating = "validating"
    scheduled = "scheduled"
    awaiting_approval = "awaiting_approval"
    executing = "executing"
    success = "success"
    error = "error"
    cancelled = "cancelled"


TERMINAL_STATUSES: frozenset[ToolCallStatus] = frozenset(
    {ToolCallStatus.success, ToolCallStatus.error, ToolCallStatus.cancelled}
)
IN_PROGRESS_STATUSES: frozenset[ToolCallStatus] = frozenset(
    {ToolCallStatus.executing, ToolCallStatus.scheduled, ToolCallStatus.validating}
)


class ToolCallRequest(BaseModel):
    call_id: str
    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    is_client_initiated: bool = False


class ToolCallResponse(BaseModel):
    call_id: str
    response_parts: Part | list[Part] | str
    result_display: str | None = None
    error: str | None = None


class TrackedToolCall(BaseModel):
    """A tool call plus its lifecycle state, mutated only by the scheduler."""

    request: ToolCallRequest
    status: ToolCallStatus = ToolCallStatus.validating
    response: ToolCallResponse | None = None
    confirmation_details: dict[str, Any] | None = None
    live_output: str | None = None
    description: str = ""
    response_submitted: bool = False
    started_at: float | None = None
    duration_ms: float | None = None

    @property
    def call_id(self) -> str:
        return self.request.call_id

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


def function_response_part(call_id: str, name: str, response: dict[str, Any]) -> Part:
    return {"functionResponse": {"id": call_id, "name": name, "response": response}}


def merge_part_lists(items: list[Part | list[Part] | str]) -> list[Part | str]:
    """Flatten per-call response payloads into one payload, preserving order."""
    merged: list[Part | str] = []
    for item in items:
        if isinstance(item, list):
            merged.extend(item)
        else:
            merged.append(item)
    return merged


def has_outstanding_tool_calls(tool_calls: list[TrackedToolCall]) -> bool:
    return any(not (call.is_terminal and call.response_submitted) for call in tool_calls)


__all__ = [
    "IN_PROGRESS_STATUSES",
    "Part",
    "QueryPayload",
    "TERMINAL_STATUSES",
    "ToolCallRequest",
    "ToolCallResponse",
    "ToolCallStatus",
    "TrackedToolCall",
    "function_response_part",
    "has_outstanding_tool_calls",
    "merge_part_lists",
]
