from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from cadence.core.abort import AbortSignal
from cadence.models.tools import ToolCallRequest, TrackedToolCall

ToolCallsListener = Callable[[list[TrackedToolCall]], None]


@runtime_checkable
class ToolScheduler(Protocol):
    @property
    def tool_calls(self) -> list[TrackedToolCall]: ...

    def schedule(self, requests: list[ToolCallRequest], signal: AbortSignal) -> None: ...

    def mark_submitted(self, call_ids: list[str]) -> None: ...

    def subscribe(self, listener: ToolCallsListener) -> Callable[[], None]: ...


__all__ = ["ToolCallsListener", "ToolScheduler"]
