"""In-memory committed history with stable, ordered ids."""

from __future__ import annotations

import logging
from collections.abc import Callable

from cadence.models.history import HistoryItem, MessageType

logger = logging.getLogger(__name__)


class InMemoryHistoryStore:
    """Append-only history; ordering follows call sequence, not timestamps."""

    def __init__(self) -> None:
        self._items: list[HistoryItem] = []
        self._message_id_counter = 0
        self._listeners: list[Callable[[HistoryItem], None]] = []

    @property
    def items(self) -> list[HistoryItem]:
        return list(self._items)

    def _next_id(self, base_timestamp: int) -> int:
        self._message_id_counter += 1
        return base_timestamp + self._message_id_counter

    def add_item(self, item: HistoryItem, base_timestamp: int) -> int:
        item_id = self._next_id(base_timestamp)
        if item.type == MessageType.user and self._items:
            last = self._items[-1]
            if last.type == MessageType.user and last.text == item.text:
                logger.debug("Skipping repeated user entry")
                return item_id
        committed = item.model_copy(update={"id": item_id})
        self._items.append(committed)
        for listener in list(self._listeners):
            listener(committed)
        return item_id

    def subscribe(self, listener: Callable[[HistoryItem], None]) -> Callable[[], None]:
        """Call ``listener`` with every item as it is committed."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def update_item(self, item_id: int, **changes: object) -> bool:
        for index, existing in enumerate(self._items):
            if existing.id == item_id:
                self._items[index] = existing.model_copy(update=changes)
                return True
        return False

    def clear(self) -> None:
        self._items.clear()
        self._message_id_counter = 0


__all__ = ["InMemoryHistoryStore"]
