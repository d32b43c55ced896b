"""Turn controller: drives one exchange with the model at a time.

Every submission path funnels through ``submit_query``. A fresh query that
arrives while a turn is busy is queued line by line; queued lines and tool
continuations are drained by a loop under a single turn lock, so two turns
never stream concurrently and long tool chains never grow the call stack.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from cadence.core.errors import AbortError, UnauthorizedError, get_error_message
from cadence.core.error_parsing import AuthType
from cadence.core.logging import correlation_scope
from cadence.core.message_queue import MessageQueue
from cadence.core.metrics import (
    CANCELLATIONS_TOTAL,
    TOOL_CALLS_SCHEDULED_TOTAL,
    TURN_ERRORS_TOTAL,
    observe_turn_duration,
)
from cadence.core.pending import PendingDisplayState
from cadence.core.preprocessor import DefaultQueryPreprocessor
from cadence.core.session_stats import SessionStats
from cadence.core.stream_processor import StreamEventProcessor
from cadence.core.streaming_state import derive_streaming_state
from cadence.core.telemetry import get_tracer
from cadence.models.events import StructuredError, ThoughtSummary
from cadence.models.history import (
    HistoryItem,
    MessageType,
    StreamingState,
    info_item,
    map_to_display,
)
from cadence.models.tools import (
    QueryPayload,
    ToolCallRequest,
    TrackedToolCall,
    has_outstanding_tool_calls,
    merge_part_lists,
)
from cadence.models.turn import StreamProcessingStatus, Turn
from cadence.protocols.backend import ModelBackend
from cadence.protocols.history import HistoryStore
from cadence.protocols.preprocess import QueryPreprocessor
from cadence.protocols.sinks import AuthErrorHandler, MemoryRefresher, UsageSink
from cadence.protocols.tools import ToolScheduler

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

REQUEST_CANCELLED_TEXT = "Request cancelled."


class TurnController:
    """Owns the active turn, the pending display item and the message queue."""

    def __init__(
        self,
        *,
        backend: ModelBackend,
        scheduler: ToolScheduler,
        history: HistoryStore,
        preprocessor: QueryPreprocessor | None = None,
        usage: UsageSink | None = None,
        on_auth_error: AuthErrorHandler | None = None,
        memory_refresh: MemoryRefresher | None = None,
        model_name: str = "model",
        auth_type: AuthType | None = None,
        split_long_messages: bool = True,
    ) -> None:
        self._backend = backend
        self._scheduler = scheduler
        self._history = history
        self._preprocessor = preprocessor or DefaultQueryPreprocessor(history=history)
        self._usage = usage or SessionStats()
        self._on_auth_error = on_auth_error
        self._memory_refresh = memory_refresh
        self._model_name = model_name
        self._auth_type = auth_type
        self._split_long_messages = split_long_messages

        self.message_queue = MessageQueue()
        self.pending = PendingDisplayState(history)
        self.thought: ThoughtSummary | None = None

        self._is_responding = False
        self._turn: Turn | None = None
        self._prompt_id: str | None = None
        self._turn_lock = asyncio.Lock()
        self._background: set[asyncio.Task[None]] = set()
        self._batch_turns: dict[str, Turn] = {}
        self._submitted_call_ids: set[str] = set()
        self._displayed_call_ids: set[str] = set()
        self._settled = asyncio.Event()
        self._settled.set()
        self._unsubscribe = scheduler.subscribe(self._on_tool_calls_update)

    # ── Read-only projections ────────────────────────────────────────

    @property
    def streaming_state(self) -> StreamingState:
        return derive_streaming_state(self._is_responding, self._scheduler.tool_calls)

    @property
    def is_responding(self) -> bool:
        return self._is_responding

    @property
    def active_turn(self) -> Turn | None:
        return self._turn

    def pending_history_items(self) -> list[HistoryItem]:
        """Pending item first, then the live tool group unless it is the same group."""
        items: list[HistoryItem] = []
        pending = self.pending.item
        if pending is not None:
            items.append(pending)
        live = self._undisplayed_calls(self._scheduler.tool_calls)
        if live:
            group = map_to_display(live)
            already_pending = (
                pending is not None
                and pending.type == MessageType.tool_group
                and [tool.call_id for tool in pending.tools]
                == [tool.call_id for tool in group.tools]
            )
            if not already_pending:
                items.append(group)
        return items

    # ── Submission ───────────────────────────────────────────────────

    async def submit_query(self, query: QueryPayload, *, is_continuation: bool = False) -> None:
        """Start a turn, or queue ``query`` when one is already in flight."""
        if not is_continuation and self._is_busy():
            if isinstance(query, str):
                self.message_queue.enqueue(query)
            else:
                logger.debug("Ignoring non-text submission while a turn is active")
            return

        self._settled.clear()
        try:
            async with self._turn_lock:
                next_query: QueryPayload | None = query
                continuation = is_continuation
                dequeued = False
                while next_query is not None:
                    next_query = await self._run_turn(
                        next_query,
                        is_continuation=continuation,
                        dequeued=dequeued,
                    )
                    continuation = False
                    dequeued = True
        finally:
            self._refresh_settled()

    async def wait_until_idle(self) -> None:
        """Wait until no turn, continuation or tool call is outstanding."""
        while True:
            await self._settled.wait()
            await asyncio.sleep(0)
            if self._is_settled():
                return
            self._settled.clear()

    def cancel_active_turn(self) -> bool:
        """Cancel the in-flight turn. Returns False when there was nothing to cancel."""
        turn = self._turn
        if turn is None or self.streaming_state is StreamingState.idle:
            return False
        if not turn.cancel("user cancelled"):
            return False

        CANCELLATIONS_TOTAL.labels(source="user").inc()
        logger.info("Turn %s cancelled by user", turn.turn_id)
        timestamp = turn.started_at
        self.pending.flush(timestamp, cancelled=True)
        live = self._undisplayed_calls(self._scheduler.tool_calls)
        if live and not all(call.is_terminal for call in live):
            self._displayed_call_ids.update(call.call_id for call in live)
            self._history.add_item(
                map_to_display(live).with_incomplete_tools_cancelled(),
                timestamp,
            )
        self._history.add_item(info_item(REQUEST_CANCELLED_TEXT), timestamp)
        self._is_responding = False
        self._refresh_settled()
        return True

    async def aclose(self) -> None:
        self._unsubscribe()
        tasks = list(self._background)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # ── Turn lifecycle ───────────────────────────────────────────────

    async def _run_turn(
        self,
        query: QueryPayload,
        *,
        is_continuation: bool,
        dequeued: bool = False,
    ) -> QueryPayload | None:
        """Run one turn and return the queued query that should run next, if any."""
        turn = Turn(is_continuation=is_continuation)
        self._turn = turn
        self._usage.start_new_turn()

        if not is_continuation and not dequeued and self.message_queue:
            # Queued input always runs first; the new text joins the back of the line.
            if isinstance(query, str):
                self.message_queue.enqueue(query)
            return self.message_queue.pop()

        if not is_continuation or self._prompt_id is None:
            self._prompt_id = turn.turn_id
        kind = "continuation" if is_continuation else "fresh"
        with (
            correlation_scope(
                turn_id=turn.turn_id,
                prompt_id=self._prompt_id,
                continuation=is_continuation,
            ),
            _tracer.start_as_current_span("cadence.turn") as span,
            observe_turn_duration(kind),
        ):
            span.set_attribute("cadence.turn.id", turn.turn_id)
            span.set_attribute("cadence.turn.continuation", is_continuation)
            return await self._stream_turn(turn, query)

    async def _stream_turn(self, turn: Turn, query: QueryPayload) -> QueryPayload | None:
        self._is_responding = True
        self.thought = None

        prepared = await self._preprocessor.prepare(query, turn.started_at, turn.signal)
        if prepared.client_tool_request is not None:
            self._schedule_tool_calls([prepared.client_tool_request], turn, origin="client")
        if not prepared.should_proceed or prepared.query_to_send is None:
            self._is_responding = False
            logger.debug("Preprocessing stopped the turn")
            return self._next_queued()

        processor = StreamEventProcessor(
            turn=turn,
            pending=self.pending,
            history=self._history,
            usage=self._usage,
            schedule_tool_calls=self._schedule_tool_calls,
            on_thought=self._set_thought,
            model_name=self._model_name,
            auth_type=self._auth_type,
            split_long_messages=self._split_long_messages,
        )
        status = StreamProcessingStatus.completed
        has_error = False
        try:
            if self._memory_refresh is not None:
                await self._memory_refresh()
            stream = self._backend.open_stream(prepared.query_to_send, turn.signal)
            status = await processor.process(stream)
        except UnauthorizedError:
            has_error = True
            status = StreamProcessingStatus.error
            TURN_ERRORS_TOTAL.labels(kind="auth").inc()
            logger.warning("Backend rejected credentials; aborting turn %s", turn.turn_id)
            turn.abort_controller.abort("unauthorized")
            if self._on_auth_error is not None:
                self._on_auth_error()
        except AbortError:
            has_error = True
            status = StreamProcessingStatus.user_cancelled
            logger.info("Turn %s aborted", turn.turn_id)
        except Exception as exc:
            has_error = True
            if turn.cancelled:
                status = StreamProcessingStatus.user_cancelled
                logger.info("Turn %s failed after cancellation: %s", turn.turn_id, exc)
            else:
                status = StreamProcessingStatus.error
                TURN_ERRORS_TOTAL.labels(kind="backend").inc()
                logger.exception("Turn %s failed", turn.turn_id)
                processor.handle_error(StructuredError(message=get_error_message(exc)))
        finally:
            self.pending.flush(turn.started_at)
            self._is_responding = False

        if turn.cancelled or has_error or status is not StreamProcessingStatus.completed:
            return None
        return self._next_queued()

    def _next_queued(self) -> QueryPayload | None:
        if has_outstanding_tool_calls(self._scheduler.tool_calls):
            return None
        return self.message_queue.pop()

    def _set_thought(self, thought: ThoughtSummary | None) -> None:
        self.thought = thought

    def _schedule_tool_calls(
        self,
        requests: list[ToolCallRequest],
        turn: Turn,
        origin: str = "model",
    ) -> None:
        for request in requests:
            self._batch_turns[request.call_id] = turn
        TOOL_CALLS_SCHEDULED_TOTAL.labels(origin=origin).inc(len(requests))
        logger.info(
            "Scheduling %d tool call(s): %s",
            len(requests),
            ", ".join(request.name for request in requests),
        )
        self._scheduler.schedule(requests, turn.signal)

    # ── Tool re-entry ────────────────────────────────────────────────

    def _on_tool_calls_update(self, tool_calls: list[TrackedToolCall]) -> None:
        self._commit_finished_batch(tool_calls)

        completed = [
            call
            for call in tool_calls
            if call.is_terminal
            and not call.response_submitted
            and call.call_id not in self._submitted_call_ids
        ]
        # Responses go back together once the whole batch has settled.
        if completed and all(call.is_terminal for call in tool_calls):
            call_ids = [call.call_id for call in completed]
            self._submitted_call_ids.update(call_ids)
            self._scheduler.mark_submitted(call_ids)

            cancelled_turn = any(
                turn.cancelled
                for turn in (self._batch_turns.pop(call_id, None) for call_id in call_ids)
                if turn is not None
            )
            if cancelled_turn:
                logger.info(
                    "Not resubmitting %d tool response(s) from a cancelled turn", len(completed)
                )
            else:
                parts = merge_part_lists(
                    [call.response.response_parts for call in completed if call.response]
                )
                self._spawn(self.submit_query(parts, is_continuation=True))
        self._refresh_settled()

    def _commit_finished_batch(self, tool_calls: list[TrackedToolCall]) -> None:
        batch = self._undisplayed_calls(tool_calls)
        if not batch or not all(call.is_terminal for call in batch):
            return
        self._displayed_call_ids.update(call.call_id for call in batch)
        timestamp = self._turn.started_at if self._turn is not None else 0
        self._history.add_item(map_to_display(batch), timestamp)

    def _undisplayed_calls(self, tool_calls: list[TrackedToolCall]) -> list[TrackedToolCall]:
        return [call for call in tool_calls if call.call_id not in self._displayed_call_ids]

    # ── Settling ─────────────────────────────────────────────────────

    def _is_busy(self) -> bool:
        # A continuation that is spawned but not yet running still owns the next turn.
        return self.streaming_state is not StreamingState.idle or bool(self._background)

    def _is_settled(self) -> bool:
        return (
            self.streaming_state is StreamingState.idle
            and not self._background
            and not self._turn_lock.locked()
        )

    def _refresh_settled(self) -> None:
        if self._is_settled():
            self._settled.set()
        else:
            self._settled.clear()

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        self._settled.clear()
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task[None]) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Continuation turn failed", exc_info=task.exception())
        self._refresh_settled()


__all__ = ["REQUEST_CANCELLED_TEXT", "TurnController"]
