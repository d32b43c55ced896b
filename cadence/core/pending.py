"""The single not-yet-committed history entry shown while a turn streams."""

from __future__ import annotations

import logging

from cadence.models.history import HistoryItem, MessageType
from cadence.protocols.history import HistoryStore

logger = logging.getLogger(__name__)


class PendingDisplayState:
    """Holds at most one pending item and promotes it into history on flush."""

    def __init__(self, history: HistoryStore) -> None:
        self._history = history
        self._item: HistoryItem | None = None

    @property
    def item(self) -> HistoryItem | None:
        return self._item

    @property
    def is_model_text(self) -> bool:
        return self._item is not None and self._item.type in (
            MessageType.model,
            MessageType.model_content,
        )

    def set(self, item: HistoryItem | None) -> None:
        self._item = item

    def set_text(self, text: str) -> None:
        if self._item is None:
            raise RuntimeError("no pending item to update")
        self._item = self._item.model_copy(update={"text": text})

    def flush(self, timestamp: int, *, cancelled: bool = False) -> HistoryItem | None:
        """Commit the pending item (if any) and clear it.

        With ``cancelled`` a pending tool group is committed with every
        unfinished entry marked canceled.
        """
        item = self._item
        if item is None:
            return None
        if cancelled:
            item = item.with_incomplete_tools_cancelled()
        self._history.add_item(item, timestamp)
        self._item = None
        logger.debug("Flushed pending %s item", item.type)
        return item


__all__ = ["PendingDisplayState"]
