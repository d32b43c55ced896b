from __future__ import annotations

from typing import Protocol, runtime_checkable

from cadence.models.history import HistoryItem


@runtime_checkable
class HistoryStore(Protocol):
    def add_item(self, item: HistoryItem, base_timestamp: int) -> int: ...


__all__ = ["HistoryStore"]
