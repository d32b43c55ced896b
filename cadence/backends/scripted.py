"""Replay model streams from a YAML scenario.

A scenario lists the prompts to submit, canned tools and one entry per model
stream. Each ``open_stream`` call consumes the next scripted turn::

    prompts:
      - "What is in the repo?"
    tools:
      list_files:
        description: List files
        output: "README.md"
    turns:
      - events:
          - {type: content, value: "Let me look."}
          - {type: tool_call_request, value: {call_id: c1, name: list_files}}
      - events:
          - {type: content, value: "There is a README."}
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import AsyncIterator, Iterable
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field

from cadence.core.abort import AbortSignal
from cadence.core.errors import AbortError, CadenceError, UnauthorizedError
from cadence.models.events import StreamEvent
from cadence.models.tools import QueryPayload
from cadence.tools.registry import ToolFunction, ToolRegistry, ToolResult

logger = logging.getLogger(__name__)


class ScriptedTurn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    events: list[StreamEvent] = Field(default_factory=list)
    delay: float = Field(default=0.0, ge=0.0)
    """Seconds to wait before each event."""
    failure: Literal["unauthorized", "abort", "error"] | None = Field(default=None, alias="raise")
    """Raised after the scripted events have been yielded."""
    error_message: str = "scripted backend failure"


class ScriptedTool(BaseModel):
    description: str = ""
    output: str | dict[str, Any] = ""
    display: str | None = None
    error: str | None = None
    requires_approval: bool = False
    delay: float = Field(default=0.0, ge=0.0)


class Scenario(BaseModel):
    prompts: list[str] = Field(default_factory=list)
    tools: dict[str, ScriptedTool] = Field(default_factory=dict)
    turns: list[ScriptedTurn] = Field(default_factory=list)


def load_scenario(path: str | Path) -> Scenario:
    scenario_path = Path(path)
    if not scenario_path.exists():
        raise FileNotFoundError(f"scenario file not found: {scenario_path}")
    loaded = yaml.safe_load(scenario_path.read_text(encoding="utf-8")) or {}
    if not isinstance(loaded, dict):
        raise ValueError("scenario file must contain a top-level mapping")
    return Scenario.model_validate(loaded)


def _canned_tool(canned: ScriptedTool) -> ToolFunction:
    async def run(args: dict[str, Any], signal: AbortSignal) -> ToolResult:
        if canned.delay:
            await asyncio.sleep(canned.delay)
        signal.throw_if_aborted()
        return ToolResult(output=canned.output, display=canned.display, error=canned.error)

    return run


def register_scenario_tools(registry: ToolRegistry, scenario: Scenario) -> None:
    for name, canned in scenario.tools.items():
        registry.register(
            name,
            _canned_tool(canned),
            description=canned.description,
            requires_approval=canned.requires_approval,
        )


class ScriptedBackend:
    """Model backend that replays scripted turns in order."""

    def __init__(self, turns: Iterable[ScriptedTurn]) -> None:
        self._turns: deque[ScriptedTurn] = deque(turns)
        self.received: list[QueryPayload] = []

    @classmethod
    def from_scenario(cls, scenario: Scenario) -> ScriptedBackend:
        return cls(scenario.turns)

    @property
    def remaining(self) -> int:
        return len(self._turns)

    def open_stream(self, content: QueryPayload, signal: AbortSignal) -> AsyncIterator[StreamEvent]:
        self.received.append(content)
        turn = self._turns.popleft() if self._turns else None
        return self._replay(turn, signal)

    async def _replay(
        self,
        turn: ScriptedTurn | None,
        signal: AbortSignal,
    ) -> AsyncIterator[StreamEvent]:
        if turn is None:
            raise CadenceError("scripted backend has no turns left")
        for event in turn.events:
            if turn.delay:
                await asyncio.sleep(turn.delay)
            signal.throw_if_aborted()
            yield event
        if turn.failure == "unauthorized":
            raise UnauthorizedError(turn.error_message)
        if turn.failure == "abort":
            raise AbortError(turn.error_message)
        if turn.failure == "error":
            raise CadenceError(turn.error_message)
        logger.debug("Scripted turn replayed %d event(s)", len(turn.events))


__all__ = [
    "Scenario",
    "ScriptedBackend",
    "ScriptedTool",
    "ScriptedTurn",
    "load_scenario",
    "register_scenario_tools",
]
