from __future__ import annotations

from cadence.models.events import (
    ChatCompressedEvent,
    ChatCompressionInfo,
    ContentEvent,
    ErrorEvent,
    StreamEvent,
    StreamEventAdapter,
    StreamEventType,
    StructuredError,
    ThoughtEvent,
    ThoughtSummary,
    ToolCallConfirmationEvent,
    ToolCallRequestEvent,
    ToolCallResponseEvent,
    UsageMetadata,
    UsageMetadataEvent,
    UserCancelledEvent,
)
from cadence.models.history import (
    HistoryItem,
    MessageType,
    StreamingState,
    ToolCallDisplay,
    ToolDisplayStatus,
    map_to_display,
)
from cadence.models.tools import (
    QueryPayload,
    ToolCallRequest,
    ToolCallResponse,
    ToolCallStatus,
    TrackedToolCall,
)
from cadence.models.turn import PreparedQuery, StreamProcessingStatus, Turn

__all__ = [
    "ChatCompressedEvent",
    "ChatCompressionInfo",
    "ContentEvent",
    "ErrorEvent",
    "HistoryItem",
    "MessageType",
    "PreparedQuery",
    "QueryPayload",
    "StreamEvent",
    "StreamEventAdapter",
    "StreamEventType",
    "StreamProcessingStatus",
    "StreamingState",
    "StructuredError",
    "ThoughtEvent",
    "ThoughtSummary",
    "ToolCallConfirmationEvent",
    "ToolCallDisplay",
    "ToolCallRequest",
    "ToolCallRequestEvent",
    "ToolCallResponse",
    "ToolCallResponseEvent",
    "ToolCallStatus",
    "ToolDisplayStatus",
    "TrackedToolCall",
    "Turn",
    "UsageMetadata",
    "UsageMetadataEvent",
    "UserCancelledEvent",
    "map_to_display",
]
