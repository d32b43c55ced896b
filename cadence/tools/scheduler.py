"""In-process tool scheduler.

Tracks one batch of tool calls through
``validating → scheduled | awaiting_approval → executing → terminal`` and
notifies subscribers on every transition. Terminal states are sticky: a tool
that finishes after its call was cancelled does not overwrite the outcome.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable, Iterable
from enum import StrEnum
from typing import Any

from cadence.core.abort import AbortSignal
from cadence.core.errors import AbortError, ToolSchedulingError, get_error_message
from cadence.core.logging import correlation_scope
from cadence.core.metrics import TOOL_CALL_TRANSITIONS_TOTAL
from cadence.models.tools import (
    ToolCallRequest,
    ToolCallResponse,
    ToolCallStatus,
    TrackedToolCall,
    function_response_part,
)
from cadence.protocols.tools import ToolCallsListener
from cadence.tools.registry import RegisteredTool, ToolRegistry, ToolResult

logger = logging.getLogger(__name__)

CANCELLED_RESPONSE = "Tool call cancelled by user."


class ConfirmationOutcome(StrEnum):
    proceed_once = "proceed_once"
    cancel = "cancel"


class LocalToolScheduler:
    def __init__(
        self,
        registry: ToolRegistry,
        *,
        approval_required: Iterable[str] = (),
        auto_approve: bool = False,
    ) -> None:
        self._registry = registry
        self._approval_required = frozenset(approval_required)
        self._auto_approve = auto_approve
        self._calls: list[TrackedToolCall] = []
        self._listeners: list[ToolCallsListener] = []
        self._tasks: set[asyncio.Task[None]] = set()
        self._signal: AbortSignal | None = None

    # ── ToolScheduler protocol ───────────────────────────────────────

    @property
    def tool_calls(self) -> list[TrackedToolCall]:
        return list(self._calls)

    def subscribe(self, listener: ToolCallsListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def schedule(self, requests: list[ToolCallRequest], signal: AbortSignal) -> None:
        """Track ``requests`` as a new batch and start processing it."""
        if self.is_running():
            raise ToolSchedulingError(
                "Cannot schedule new tool calls while others are running"
            )
        self._calls = [
            call for call in self._calls if not (call.is_terminal and call.response_submitted)
        ]
        batch = [
            TrackedToolCall(request=request, started_at=time.monotonic())
            for request in requests
        ]
        self._calls.extend(batch)
        self._signal = signal
        logger.debug("Scheduled %d tool call(s)", len(batch))
        self._notify()
        call_ids = [call.call_id for call in batch]
        signal.add_listener(lambda: self._cancel_batch(call_ids))
        self._spawn(self._process_batch(call_ids, signal))

    def mark_submitted(self, call_ids: list[str]) -> None:
        wanted = set(call_ids)
        changed = False
        for index, call in enumerate(self._calls):
            if call.call_id in wanted and not call.response_submitted:
                self._calls[index] = call.model_copy(update={"response_submitted": True})
                changed = True
        if changed:
            self._notify()

    # ── Public helpers ───────────────────────────────────────────────

    def is_running(self) -> bool:
        return any(not call.is_terminal for call in self._calls)

    def awaiting_approval(self) -> list[TrackedToolCall]:
        return [call for call in self._calls if call.status == ToolCallStatus.awaiting_approval]

    async def confirm(self, call_id: str, outcome: ConfirmationOutcome | str) -> None:
        """Resolve a call parked in ``awaiting_approval``."""
        call = self._find(call_id)
        if call is None or call.status != ToolCallStatus.awaiting_approval:
            logger.info("Ignoring confirmation for %s; not awaiting approval", call_id)
            return
        signal = self._signal
        if ConfirmationOutcome(outcome) is ConfirmationOutcome.cancel or (
            signal is not None and signal.aborted
        ):
            self._cancel_call(call, "User cancelled the operation")
            return
        self._set_status(call_id, ToolCallStatus.scheduled)
        if signal is not None:
            await self._execute_scheduled(signal)

    async def drain(self) -> None:
        """Wait for background batch processing to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ── Lifecycle ────────────────────────────────────────────────────

    async def _process_batch(self, call_ids: list[str], signal: AbortSignal) -> None:
        for call_id in call_ids:
            call = self._find(call_id)
            if call is None or call.is_terminal:
                continue
            tool = self._registry.get(call.request.name)
            if tool is None:
                self._fail(call, f"Tool '{call.request.name}' not found in registry")
                continue
            description = tool.describe(call.request.args)
            if self._needs_approval(tool):
                self._set_status(
                    call_id,
                    ToolCallStatus.awaiting_approval,
                    description=description,
                    confirmation_details={
                        "type": "exec",
                        "title": f"Allow {tool.name}?",
                        "args": call.request.args,
                    },
                )
            else:
                self._set_status(call_id, ToolCallStatus.scheduled, description=description)
        await self._execute_scheduled(signal)

    def _needs_approval(self, tool: RegisteredTool) -> bool:
        if self._auto_approve:
            return False
        return tool.requires_approval or tool.name in self._approval_required

    async def _execute_scheduled(self, signal: AbortSignal) -> None:
        # Claim every scheduled call before awaiting so a concurrent confirm
        # cannot start the same call twice.
        started: list[tuple[TrackedToolCall, RegisteredTool]] = []
        for call in [c for c in self._calls if c.status == ToolCallStatus.scheduled]:
            tool = self._registry.get(call.request.name)
            if tool is None:
                self._fail(call, f"Tool '{call.request.name}' not found in registry")
                continue
            self._set_status(call.call_id, ToolCallStatus.executing)
            started.append((call, tool))
        if started:
            await asyncio.gather(*(self._execute(call, tool, signal) for call, tool in started))

    async def _execute(
        self,
        call: TrackedToolCall,
        tool: RegisteredTool,
        signal: AbortSignal,
    ) -> None:
        with correlation_scope(call_id=call.call_id):
            try:
                result = await tool.func(dict(call.request.args), signal)
            except AbortError:
                self._cancel_call(call, CANCELLED_RESPONSE)
                return
            except Exception as exc:
                logger.warning("Tool %s failed: %s", call.request.name, exc)
                self._fail(call, get_error_message(exc))
                return
            logger.debug("Tool %s finished", call.request.name)
            self._complete(call, _normalize_result(result))

    def _complete(self, call: TrackedToolCall, result: ToolResult) -> None:
        request = call.request
        if result.error is not None:
            self._fail(call, result.error, display=result.display)
            return
        payload: dict[str, Any] = (
            result.output if isinstance(result.output, dict) else {"output": result.output}
        )
        response = ToolCallResponse(
            call_id=request.call_id,
            response_parts=function_response_part(request.call_id, request.name, payload),
            result_display=result.display,
        )
        self._set_status(call.call_id, ToolCallStatus.success, response=response)

    def _fail(self, call: TrackedToolCall, message: str, *, display: str | None = None) -> None:
        request = call.request
        response = ToolCallResponse(
            call_id=request.call_id,
            response_parts=function_response_part(
                request.call_id, request.name, {"error": message}
            ),
            result_display=display or message,
            error=message,
        )
        self._set_status(call.call_id, ToolCallStatus.error, response=response)

    def _cancel_call(self, call: TrackedToolCall, message: str) -> None:
        request = call.request
        response = ToolCallResponse(
            call_id=request.call_id,
            response_parts=function_response_part(
                request.call_id, request.name, {"error": message}
            ),
            result_display=message,
        )
        self._set_status(call.call_id, ToolCallStatus.cancelled, response=response)

    def _cancel_batch(self, call_ids: list[str]) -> None:
        wanted = set(call_ids)
        pending = [
            call for call in self._calls if call.call_id in wanted and not call.is_terminal
        ]
        if pending:
            logger.info("Abort signal cancelled %d tool call(s)", len(pending))
        for call in pending:
            self._cancel_call(call, CANCELLED_RESPONSE)

    # ── State ────────────────────────────────────────────────────────

    def _find(self, call_id: str) -> TrackedToolCall | None:
        for call in self._calls:
            if call.call_id == call_id:
                return call
        return None

    def _set_status(self, call_id: str, status: ToolCallStatus, **changes: Any) -> None:
        for index, call in enumerate(self._calls):
            if call.call_id != call_id:
                continue
            if call.is_terminal:
                logger.debug("Ignoring %s for finished call %s", status, call_id)
                return
            update: dict[str, Any] = {"status": status, **changes}
            if status in (ToolCallStatus.success, ToolCallStatus.error, ToolCallStatus.cancelled):
                if call.started_at is not None:
                    update["duration_ms"] = (time.monotonic() - call.started_at) * 1000
            self._calls[index] = call.model_copy(update=update)
            TOOL_CALL_TRANSITIONS_TOTAL.labels(status=status.value).inc()
            logger.debug("Tool call %s → %s", call_id, status)
            self._notify()
            return

    def _notify(self) -> None:
        snapshot = list(self._calls)
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Tool call listener failed")

    def _spawn(self, coro: Any) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


def _normalize_result(result: ToolResult | str | dict[str, Any]) -> ToolResult:
    if isinstance(result, ToolResult):
        return result
    if isinstance(result, dict):
        return ToolResult(output=result, display=json.dumps(result, default=str))
    return ToolResult(output=str(result), display=str(result))


__all__ = ["CANCELLED_RESPONSE", "ConfirmationOutcome", "LocalToolScheduler"]
