from __future__ import annotations

from collections.abc import Iterable

from cadence.models.history import StreamingState
from cadence.models.tools import (
    IN_PROGRESS_STATUSES,
    ToolCallStatus,
    TrackedToolCall,
)


def derive_streaming_state(
    is_responding: bool,
    tool_calls: Iterable[TrackedToolCall],
) -> StreamingState:
    """Project the turn flag and tool statuses onto the three-state machine.

    Nothing stores this value; callers recompute it whenever they need it.
    """
    calls = list(tool_calls)
    if any(call.status == ToolCallStatus.awaiting_approval for call in calls):
        return StreamingState.waiting_for_confirmation
    if is_responding or any(
        call.status in IN_PROGRESS_STATUSES or (call.is_terminal and not call.response_submitted)
        for call in calls
    ):
        return StreamingState.responding
    return StreamingState.idle


__all__ = ["derive_streaming_state"]
