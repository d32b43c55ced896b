from __future__ import annotations

from typing import Protocol, runtime_checkable

from cadence.core.abort import AbortSignal
from cadence.models.tools import QueryPayload
from cadence.models.turn import PreparedQuery


@runtime_checkable
class QueryPreprocessor(Protocol):
    async def prepare(
        self,
        query: QueryPayload,
        timestamp: int,
        signal: AbortSignal,
    ) -> PreparedQuery: ...


__all__ = ["QueryPreprocessor"]
