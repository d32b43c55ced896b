"""Name → async callable lookup for the local tool scheduler."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from cadence.core.abort import AbortSignal

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ToolResult:
    """What a tool hands back: content for the model plus an optional display string."""

    output: str | dict[str, Any] = ""
    display: str | None = None
    error: str | None = None


ToolFunction = Callable[[dict[str, Any], AbortSignal], Awaitable[ToolResult | str | dict[str, Any]]]


@dataclass(slots=True)
class RegisteredTool:
    name: str
    func: ToolFunction
    description: str = ""
    requires_approval: bool = False

    def describe(self, args: dict[str, Any]) -> str:
        if not args:
            return self.description or self.name
        rendered = ", ".join(f"{key}={value!r}" for key, value in args.items())
        return f"{self.description or self.name} ({rendered})"


class ToolRegistry:
    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}

    def register(
        self,
        name: str,
        func: ToolFunction,
        *,
        description: str = "",
        requires_approval: bool = False,
    ) -> RegisteredTool:
        if name in self._tools:
            logger.warning("Replacing registered tool %s", name)
        tool = RegisteredTool(
            name=name,
            func=func,
            description=description,
            requires_approval=requires_approval,
        )
        self._tools[name] = tool
        return tool

    def tool(
        self,
        name: str | None = None,
        *,
        description: str = "",
        requires_approval: bool = False,
    ) -> Callable[[ToolFunction], ToolFunction]:
        """Decorator form of :meth:`register`."""

        def decorator(func: ToolFunction) -> ToolFunction:
            self.register(
                name or func.__name__,
                func,
                description=description or (func.__doc__ or "").strip(),
                requires_approval=requires_approval,
            )
            return func

        return decorator

    def get(self, name: str) -> RegisteredTool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return sorted(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


__all__ = ["RegisteredTool", "ToolFunction", "ToolRegistry", "ToolResult"]
