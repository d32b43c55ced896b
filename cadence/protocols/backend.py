from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

from cadence.core.abort import AbortSignal
from cadence.models.events import StreamEvent
from cadence.models.tools import QueryPayload


@runtime_checkable
class ModelBackend(Protocol):
    def open_stream(self, content: QueryPayload, signal: AbortSignal) -> AsyncIterator[StreamEvent]: ...


__all__ = ["ModelBackend"]
