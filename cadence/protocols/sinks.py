from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable

from cadence.models.events import UsageMetadata

AuthErrorHandler = Callable[[], None]
MemoryRefresher = Callable[[], Awaitable[None]]


@runtime_checkable
class UsageSink(Protocol):
    def start_new_turn(self) -> None: ...

    def add_usage(self, metadata: UsageMetadata) -> None: ...


__all__ = ["AuthErrorHandler", "MemoryRefresher", "UsageSink"]
