"""Terminal front-end for a turn controller.

Reads from stdin, writes to stdout. Committed history is printed as it is
committed; the message queue is shown whenever a line gets queued.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import Any

from cadence.core.cancellation import CancellationMonitor
from cadence.core.controller import TurnController
from cadence.core.history import InMemoryHistoryStore
from cadence.models.history import HistoryItem, MessageType, ToolDisplayStatus
from cadence.models.tools import ToolCallStatus, TrackedToolCall
from cadence.tools.scheduler import ConfirmationOutcome, LocalToolScheduler

logger = logging.getLogger(__name__)


@dataclass
class CLIChannelConfig:
    prompt: str = "cadence> "
    color: bool = True


_BOLD = "\033[1m"
_CYAN = "\033[36m"
_RED = "\033[31m"
_DIM = "\033[2m"
_RESET = "\033[0m"

_TOOL_MARKERS: dict[ToolDisplayStatus, str] = {
    ToolDisplayStatus.pending: "o",
    ToolDisplayStatus.confirming: "?",
    ToolDisplayStatus.executing: "~",
    ToolDisplayStatus.success: "+",
    ToolDisplayStatus.error: "x",
    ToolDisplayStatus.canceled: "-",
}


def format_history_item(item: HistoryItem) -> str:
    """Plain-text rendering of one committed history entry."""
    if item.type == MessageType.user:
        return f"> {item.text}"
    if item.type == MessageType.user_shell:
        return f"$ {item.text}"
    if item.type == MessageType.info:
        return f"i {item.text}"
    if item.type == MessageType.error:
        return f"! {item.text}"
    if item.type == MessageType.tool_group:
        lines = []
        for tool in item.tools:
            line = f"[{_TOOL_MARKERS[tool.status]}] {tool.name}"
            if tool.description and tool.description != tool.name:
                line += f": {tool.description}"
            if tool.result_display:
                line += f" -> {tool.result_display}"
            lines.append(line)
        return "\n".join(lines)
    return item.text


class CLIChannel:
    """stdin/stdout loop driving one controller."""

    def __init__(
        self,
        controller: TurnController,
        history: InMemoryHistoryStore,
        *,
        scheduler: LocalToolScheduler | None = None,
        monitor: CancellationMonitor | None = None,
        config: CLIChannelConfig | None = None,
    ) -> None:
        self._controller = controller
        self._history = history
        self._scheduler = scheduler
        self._monitor = monitor or CancellationMonitor(controller)
        self._config = config or CLIChannelConfig()
        self._running = False
        self._tasks: set[asyncio.Task[None]] = set()
        self._prompted_call_ids: set[str] = set()
        self._unsubscribers = [history.subscribe(self._on_commit)]
        if scheduler is not None:
            self._unsubscribers.append(scheduler.subscribe(self._on_tool_calls))

        # Honor explicit config, but keep piped output free of escape codes.
        self._color = self._config.color and sys.stdout.isatty()

    # ── Lifecycle ────────────────────────────────────────────────────

    async def run(self) -> None:
        self._running = True
        self._print_welcome()
        loop = asyncio.get_running_loop()
        try:
            while self._running:
                line = await loop.run_in_executor(None, self._read_line)
                if line is None:
                    break
                await self.handle_line(line)
        finally:
            await self.stop()

    async def stop(self) -> None:
        self._running = False
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def handle_line(self, line: str) -> None:
        text = line.strip()
        if not text:
            return
        if await self._handle_builtin(text):
            return
        queued_before = len(self._controller.message_queue)
        self._spawn(self._controller.submit_query(text))
        await asyncio.sleep(0)
        if len(self._controller.message_queue) > queued_before:
            self._emit(self._controller.message_queue.render(), _DIM)

    # ── Input handling ───────────────────────────────────────────────

    def _read_line(self) -> str | None:
        """Blocking readline, run inside an executor thread."""
        try:
            return input(self._config.prompt)
        except EOFError:
            return None

    async def _handle_builtin(self, text: str) -> bool:
        """Process built-in slash commands. Returns True if handled."""
        command, _, argument = text.partition(" ")
        command = command.lower()
        if command == "/quit":
            self._running = False
            return True
        if command == "/help":
            self._print_help()
            return True
        if command == "/cancel":
            if not self._monitor.cancel():
                self._emit("Nothing to cancel.", _DIM)
            return True
        if command == "/queue":
            self._emit(self._controller.message_queue.render() or "Message queue is empty.", _DIM)
            return True
        if command in ("/approve", "/deny") and self._scheduler is not None:
            outcome = (
                ConfirmationOutcome.proceed_once
                if command == "/approve"
                else ConfirmationOutcome.cancel
            )
            if argument.strip():
                call_ids = [argument.strip()]
            else:
                call_ids = [call.call_id for call in self._scheduler.awaiting_approval()]
            for call_id in call_ids:
                await self._scheduler.confirm(call_id, outcome)
            return True
        return False

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ── Output helpers ───────────────────────────────────────────────

    def _on_commit(self, item: HistoryItem) -> None:
        style = _RED if item.type == MessageType.error else None
        if item.type in (MessageType.model, MessageType.model_content):
            style = _CYAN
        self._emit(format_history_item(item), style)

    def _on_tool_calls(self, tool_calls: list[TrackedToolCall]) -> None:
        for call in tool_calls:
            if (
                call.status == ToolCallStatus.awaiting_approval
                and call.call_id not in self._prompted_call_ids
            ):
                self._prompted_call_ids.add(call.call_id)
                self._emit(
                    f"{call.description or call.request.name} needs approval: "
                    f"/approve {call.call_id} or /deny {call.call_id}",
                    _DIM,
                )

    def _emit(self, text: str, style: str | None = None) -> None:
        if self._color and style:
            print(f"{_BOLD}{style}{text}{_RESET}", flush=True)
        else:
            print(text, flush=True)

    def _print_welcome(self) -> None:
        lines = [
            "Cadence CLI",
            "Type /help for commands, /quit to exit.",
        ]
        for line in lines:
            print(line, flush=True)

    def _print_help(self) -> None:
        lines = [
            "/help            show this message",
            "/cancel          cancel the active turn",
            "/queue           show queued messages",
            "/approve [id]    approve a pending tool call",
            "/deny [id]       reject a pending tool call",
            "/quit            exit the session",
        ]
        for line in lines:
            print(line, flush=True)


__all__ = ["CLIChannel", "CLIChannelConfig", "format_history_item"]
