"""Classify events from one model stream and apply their side effects.

A processor lives for exactly one stream. It accumulates the in-progress
model text and the tool-call requests discovered along the way; requests are
handed to the scheduler as one batch once the stream is exhausted.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field

from cadence.core.error_parsing import AuthType, parse_and_format_api_error
from cadence.core.markdown import find_last_safe_split_point
from cadence.core.metrics import CANCELLATIONS_TOTAL, STREAM_EVENTS_TOTAL
from cadence.core.pending import PendingDisplayState
from cadence.models.events import (
    ChatCompressedEvent,
    ChatCompressionInfo,
    ContentEvent,
    ErrorEvent,
    StreamEvent,
    StructuredError,
    ThoughtEvent,
    ThoughtSummary,
    ToolCallRequestEvent,
    UsageMetadataEvent,
    UserCancelledEvent,
)
from cadence.models.history import HistoryItem, MessageType, error_item, info_item
from cadence.models.tools import ToolCallRequest
from cadence.models.turn import StreamProcessingStatus, Turn
from cadence.protocols.history import HistoryStore
from cadence.protocols.sinks import UsageSink

logger = logging.getLogger(__name__)

USER_CANCELLED_TEXT = "User cancelled the request."


def compression_notice(model: str, info: ChatCompressionInfo | None) -> str:
    original = "unknown"
    compressed = "unknown"
    if info is not None:
        if info.original_token_count is not None:
            original = str(info.original_token_count)
        if info.new_token_count is not None:
            compressed = str(info.new_token_count)
    return (
        f"IMPORTANT: This conversation approached the input token limit for {model}. "
        "A compressed context will be sent for future messages "
        f"(compressed from: {original} to {compressed} tokens)."
    )


@dataclass
class StreamEventProcessor:
    turn: Turn
    pending: PendingDisplayState
    history: HistoryStore
    usage: UsageSink
    schedule_tool_calls: Callable[[list[ToolCallRequest], Turn], None]
    on_thought: Callable[[ThoughtSummary | None], None]
    model_name: str = "model"
    auth_type: AuthType | None = None
    split_long_messages: bool = True
    splitter: Callable[[str], int] = find_last_safe_split_point
    tool_call_requests: list[ToolCallRequest] = field(default_factory=list, init=False)
    _buffer: str = field(default="", init=False, repr=False)

    @property
    def buffer(self) -> str:
        return self._buffer

    async def process(self, stream: AsyncIterator[StreamEvent]) -> StreamProcessingStatus:
        """Consume ``stream`` in arrival order, then schedule discovered tool calls."""
        async for event in stream:
            STREAM_EVENTS_TOTAL.labels(event_type=event.type).inc()
            if self.turn.cancelled:
                continue
            if isinstance(event, ThoughtEvent):
                self.on_thought(event.value)
            elif isinstance(event, ContentEvent):
                self.handle_content(event.value)
            elif isinstance(event, ToolCallRequestEvent):
                self.tool_call_requests.append(event.value)
            elif isinstance(event, UserCancelledEvent):
                self.handle_user_cancelled()
            elif isinstance(event, ErrorEvent):
                self.handle_error(event.value)
            elif isinstance(event, ChatCompressedEvent):
                self.handle_chat_compressed(event.value)
            elif isinstance(event, UsageMetadataEvent):
                self.usage.add_usage(event.value)
            # Confirmation/response echoes belong to the tool scheduler.

        if self.turn.cancelled:
            if self.tool_call_requests:
                logger.info(
                    "Dropping %d tool call request(s) from cancelled turn",
                    len(self.tool_call_requests),
                )
            return StreamProcessingStatus.user_cancelled
        if self.tool_call_requests:
            self.schedule_tool_calls(list(self.tool_call_requests), self.turn)
        return StreamProcessingStatus.completed

    # ── Side effects shared with the controller ─────────────────────

    def handle_content(self, delta: str) -> str:
        """Append ``delta`` and commit whatever prefix is safe to render statically."""
        if self.turn.cancelled:
            return ""
        timestamp = self.turn.started_at
        buffer = self._buffer + delta
        if not self.pending.is_model_text:
            self.pending.flush(timestamp)
            self.pending.set(HistoryItem(type=MessageType.model))
            buffer = delta

        split_point = self.splitter(buffer) if self.split_long_messages else len(buffer)
        if split_point in (0, len(buffer)):
            self.pending.set_text(buffer)
        else:
            pending_type = self.pending.item.type if self.pending.item else MessageType.model
            self.history.add_item(
                HistoryItem(type=pending_type, text=buffer[:split_point]),
                timestamp,
            )
            buffer = buffer[split_point:]
            self.pending.set(HistoryItem(type=MessageType.model_content, text=buffer))
        self._buffer = buffer
        return buffer

    def handle_user_cancelled(self) -> None:
        if not self.turn.cancel("backend reported user cancellation"):
            return
        CANCELLATIONS_TOTAL.labels(source="stream").inc()
        timestamp = self.turn.started_at
        self.pending.flush(timestamp, cancelled=True)
        self.history.add_item(info_item(USER_CANCELLED_TEXT), timestamp)

    def handle_chat_compressed(self, info: ChatCompressionInfo | None) -> None:
        self.history.add_item(
            info_item(compression_notice(self.model_name, info)),
            self.turn.started_at,
        )

    def handle_error(self, error: StructuredError | str) -> None:
        timestamp = self.turn.started_at
        self.pending.flush(timestamp)
        text = parse_and_format_api_error(error, self.auth_type)
        logger.warning("Stream error: %s", text)
        self.history.add_item(error_item(text), timestamp)


__all__ = ["StreamEventProcessor", "USER_CANCELLED_TEXT", "compression_notice"]
