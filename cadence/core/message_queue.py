"""FIFO backlog of user lines typed while a turn is in flight."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterator

from cadence.core.metrics import MESSAGE_QUEUE_DEPTH

logger = logging.getLogger(__name__)


def split_queued_lines(text: str) -> list[str]:
    """Split raw input into the non-blank lines that get queued, in order."""
    return [line for line in text.split("\n") if line.strip()]


class MessageQueue:
    """Ordered backlog drained one entry at a time by the turn controller."""

    def __init__(self) -> None:
        self._entries: deque[str] = deque()

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    @property
    def messages(self) -> list[str]:
        return list(self._entries)

    def enqueue(self, text: str) -> int:
        """Append every non-blank line of ``text``. Returns how many were added."""
        lines = split_queued_lines(text)
        self._entries.extend(lines)
        if lines:
            logger.debug("Queued %d line(s); backlog=%d", len(lines), len(self._entries))
        MESSAGE_QUEUE_DEPTH.set(len(self._entries))
        return len(lines)

    def pop(self) -> str | None:
        if not self._entries:
            return None
        entry = self._entries.popleft()
        MESSAGE_QUEUE_DEPTH.set(len(self._entries))
        return entry

    def render(self) -> str:
        """Plain-text panel listing the backlog; empty when nothing is queued."""
        if not self._entries:
            return ""
        lines = [f"Message Queue ({len(self._entries)})"]
        lines.extend(f"- {entry}" for entry in self._entries)
        return "\n".join(lines)


__all__ = ["MessageQueue", "split_queued_lines"]
