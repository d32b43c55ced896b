"""Cooperative cancellation tokens shared by a turn, its stream and its tools."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from cadence.core.errors import AbortError

logger = logging.getLogger(__name__)


class AbortSignal:
    """Read side of an abort token. Aborting is write-once."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None
        self._listeners: list[Callable[[], None]] = []

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def add_listener(self, listener: Callable[[], None]) -> None:
        if self.aborted:
            listener()
            return
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def throw_if_aborted(self) -> None:
        if self.aborted:
            raise AbortError(self._reason or "operation aborted")

    async def wait(self) -> None:
        await self._event.wait()

    def _abort(self, reason: str) -> bool:
        if self.aborted:
            return False
        self._reason = reason
        self._event.set()
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            try:
                listener()
            except Exception:
                logger.exception("abort listener failed")
        return True


class AbortController:
    def __init__(self) -> None:
        self.signal = AbortSignal()

    def abort(self, reason: str = "operation aborted") -> bool:
        """Abort the signal. Returns False when it was already aborted."""
        return self.signal._abort(reason)


__all__ = ["AbortController", "AbortSignal"]
