from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import StrEnum

from cadence.core.abort import AbortController, AbortSignal
from cadence.models.tools import QueryPayload, ToolCallRequest

_last_timestamp = 0


def next_timestamp() -> int:
    """Millisecond wall clock, bumped so consecutive calls never share a value."""
    global _last_timestamp  # noqa: PLW0603
    _last_timestamp = max(int(time.time() * 1000), _last_timestamp + 1)
    return _last_timestamp


class StreamProcessingStatus(StrEnum):
    completed = "completed"
    user_cancelled = "user_cancelled"
    error = "error"


@dataclass(slots=True)
class Turn:
    """One submit-to-settle cycle owned by the turn controller.

    The abort controller outlives the stream: tool calls scheduled by the
    turn share its signal, so cancelling after the stream settled still
    reaches them.
    """

    is_continuation: bool = False
    turn_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    started_at: int = field(default_factory=next_timestamp)
    abort_controller: AbortController = field(default_factory=AbortController)
    cancelled: bool = False

    @property
    def signal(self) -> AbortSignal:
        return self.abort_controller.signal

    def cancel(self, reason: str = "user cancelled") -> bool:
        """Flip the write-once cancellation flag and abort the token.

        Returns False when the turn was already cancelled.
        """
        if self.cancelled:
            return False
        self.cancelled = True
        self.abort_controller.abort(reason)
        return True


@dataclass(slots=True)
class PreparedQuery:
    """Result of query preprocessing."""

    query_to_send: QueryPayload | None = None
    should_proceed: bool = False
    client_tool_request: ToolCallRequest | None = None

    @classmethod
    def stop(cls, client_tool_request: ToolCallRequest | None = None) -> PreparedQuery:
        return cls(client_tool_request=client_tool_request)

    @classmethod
    def send(cls, query: QueryPayload) -> PreparedQuery:
        return cls(query_to_send=query, should_proceed=True)


__all__ = ["PreparedQuery", "StreamProcessingStatus", "Turn", "next_timestamp"]
