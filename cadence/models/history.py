from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from cadence.models.tools import ToolCallStatus, TrackedToolCall


class StreamingState(StrEnum):
    idle = "idle"
    responding = "responding"
    waiting_for_confirmation = "waiting_for_confirmation"


class MessageType(StrEnum):
    user = "user"
    user_shell = "user_shell"
    model = "model"
    model_content = "model_content"
    info = "info"
    error = "error"
    tool_group = "tool_group"


class ToolDisplayStatus(StrEnum):
    pending = "pending"
    confirming = "confirming"
    executing = "executing"
    success = "success"
    error = "error"
    canceled = "canceled"


INCOMPLETE_DISPLAY_STATUSES: frozenset[ToolDisplayStatus] = frozenset(
    {ToolDisplayStatus.pending, ToolDisplayStatus.confirming, ToolDisplayStatus.executing}
)

_DISPLAY_STATUS: dict[ToolCallStatus, ToolDisplayStatus] = {
    ToolCallStatus.validating: ToolDisplayStatus.pending,
    ToolCallStatus.scheduled: ToolDisplayStatus.pending,
    ToolCallStatus.awaiting_approval: ToolDisplayStatus.confirming,
    ToolCallStatus.executing: ToolDisplayStatus.executing,
    ToolCallStatus.success: ToolDisplayStatus.success,
    ToolCallStatus.error: ToolDisplayStatus.error,
    ToolCallStatus.cancelled: ToolDisplayStatus.canceled,
}


class ToolCallDisplay(BaseModel):
    call_id: str
    name: str
    description: str = ""
    result_display: str | None = None
    status: ToolDisplayStatus
    confirmation_details: dict[str, Any] | None = None
    render_output_as_markdown: bool = False


class HistoryItem(BaseModel):
    """One committed (or pending) entry of the displayed conversation."""

    type: MessageType
    text: str = ""
    tools: list[ToolCallDisplay] = Field(default_factory=list)
    id: int | None = None

    def without_id(self) -> HistoryItem:
        return self.model_copy(update={"id": None})

    def with_incomplete_tools_cancelled(self) -> HistoryItem:
        if self.type != MessageType.tool_group:
            return self
        tools = [
            tool.model_copy(update={"status": ToolDisplayStatus.canceled})
            if tool.status in INCOMPLETE_DISPLAY_STATUSES
            else tool
            for tool in self.tools
        ]
        return self.model_copy(update={"tools": tools})


def map_to_display(tool_calls: list[TrackedToolCall]) -> HistoryItem:
    """Project the scheduler's tracked calls into a ``tool_group`` history item."""
    tools: list[ToolCallDisplay] = []
    for call in tool_calls:
        result_display = call.live_output
        if call.response is not None:
            result_display = call.response.result_display
        tools.append(
            ToolCallDisplay(
                call_id=call.call_id,
                name=call.request.name,
                description=call.description,
                result_display=result_display,
                status=_DISPLAY_STATUS[call.status],
                confirmation_details=(
                    call.confirmation_details
                    if call.status == ToolCallStatus.awaiting_approval
                    else None
                ),
            )
        )
    return HistoryItem(type=MessageType.tool_group, tools=tools)


def info_item(text: str) -> HistoryItem:
    return HistoryItem(type=MessageType.info, text=text)


def error_item(text: str) -> HistoryItem:
    return HistoryItem(type=MessageType.error, text=text)


__all__ = [
    "HistoryItem",
    "INCOMPLETE_DISPLAY_STATUSES",
    "MessageType",
    "StreamingState",
    "ToolCallDisplay",
    "ToolDisplayStatus",
    "error_item",
    "info_item",
    "map_to_display",
]
