"""Map user interrupts onto "cancel the active turn"."""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class CancellableTurns(Protocol):
    def cancel_active_turn(self) -> bool: ...


class CancellationMonitor:
    """Forwards interrupts to the controller.

    Repeated interrupts are harmless: the controller ignores a cancel when no
    turn is in flight or the active one is already cancelled.
    """

    def __init__(self, target: CancellableTurns) -> None:
        self._target = target
        self._installed: list[tuple[asyncio.AbstractEventLoop, int]] = []

    def cancel(self) -> bool:
        cancelled = self._target.cancel_active_turn()
        if cancelled:
            logger.info("Interrupt cancelled the active turn")
        else:
            logger.debug("Interrupt ignored; no cancellable turn")
        return cancelled

    async def watch(self, interrupts: AsyncIterator[object]) -> None:
        """Cancel once per item yielded by ``interrupts`` until it is exhausted."""
        async for _ in interrupts:
            self.cancel()

    def install_signal_handler(self, sig: int = signal.SIGINT) -> None:
        """Route ``sig`` on the running loop to :meth:`cancel` (Unix only)."""
        loop = asyncio.get_running_loop()
        loop.add_signal_handler(sig, self.cancel)
        self._installed.append((loop, sig))

    def remove_signal_handlers(self) -> None:
        while self._installed:
            loop, sig = self._installed.pop()
            loop.remove_signal_handler(sig)


__all__ = ["CancellableTurns", "CancellationMonitor"]
