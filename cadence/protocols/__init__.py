from __future__ import annotations

from cadence.protocols.backend import ModelBackend
from cadence.protocols.history import HistoryStore
from cadence.protocols.preprocess import QueryPreprocessor
from cadence.protocols.sinks import AuthErrorHandler, MemoryRefresher, UsageSink
from cadence.protocols.tools import ToolCallsListener, ToolScheduler

__all__ = [
    "AuthErrorHandler",
    "HistoryStore",
    "MemoryRefresher",
    "ModelBackend",
    "QueryPreprocessor",
    "ToolCallsListener",
    "ToolScheduler",
    "UsageSink",
]
