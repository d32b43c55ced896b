"""Structured logging setup with correlation context propagation.

Every record emitted while a turn is running carries the turn id (and the
tool call id inside scheduler work), so a chain of continuation turns can be
followed through the logs. Continuation turns keep the prompt id of the user
query that started the chain.
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

from opentelemetry import trace

# Exporter chatter would otherwise drown turn logs at DEBUG.
_QUIET_LOGGERS = ("grpc", "opentelemetry")

_TEXT_TAGS = (
    ("turn_id", "turn"),
    ("prompt_id", "prompt"),
    ("call_id", "call"),
    ("otel_trace_id", "trace"),
)


@dataclass(frozen=True, slots=True)
class CorrelationContext:
    """Identifiers tying a record to a turn chain and, inside it, a tool call."""

    turn_id: str | None = None
    prompt_id: str | None = None
    call_id: str | None = None
    continuation: bool | None = None


_EMPTY_CONTEXT = CorrelationContext()
_CORRELATION_CONTEXT: contextvars.ContextVar[CorrelationContext] = contextvars.ContextVar(
    "cadence_correlation_context",
    default=_EMPTY_CONTEXT,
)


def get_correlation_context() -> CorrelationContext:
    return _CORRELATION_CONTEXT.get()


def _current_trace_id() -> str:
    ctx = trace.get_current_span().get_span_context()
    if ctx and ctx.trace_id:
        return format(ctx.trace_id, "032x")
    return ""


class CorrelationFilter(logging.Filter):
    """Stamp the active turn chain and trace id onto each ``LogRecord``."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = get_correlation_context()
        record.turn_id = context.turn_id
        record.prompt_id = context.prompt_id
        record.call_id = context.call_id
        record.continuation = context.continuation
        record.otel_trace_id = _current_trace_id()
        return True


class _TextFormatter(logging.Formatter):
    """Human-readable lines; correlation tags appear only when they are set."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        tags = [
            f"{tag}={value}"
            for attr, tag in _TEXT_TAGS
            if (value := getattr(record, attr, None))
        ]
        if getattr(record, "continuation", None):
            tags.append("continuation")
        if not tags:
            return line
        head, sep, rest = line.partition("\n")
        return f"{head} [{' '.join(tags)}]{sep}{rest}"


class _JsonFormatter(logging.Formatter):
    """One compact JSON object per record; unset correlation fields are omitted."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for attr in ("turn_id", "prompt_id", "call_id", "continuation"):
            value = getattr(record, attr, None)
            if value is not None:
                payload[attr] = value
        trace_id = getattr(record, "otel_trace_id", "")
        if trace_id:
            payload["trace_id"] = trace_id
        if record.exc_info is not None:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def setup_logging(level: int | str = logging.INFO, json_output: bool = False) -> None:
    """Configure root logging with correlation-aware output on stderr.

    stdout belongs to the conversation, so logs never go there.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.filters.clear()

    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(_JsonFormatter() if json_output else _TextFormatter())
    handler.addFilter(CorrelationFilter())
    root_logger.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(root_logger.level, logging.WARNING))


@contextmanager
def correlation_scope(
    *,
    turn_id: str | None = None,
    prompt_id: str | None = None,
    call_id: str | None = None,
    continuation: bool | None = None,
) -> Iterator[CorrelationContext]:
    """Apply correlation ids to the current task; unset ids inherit the outer scope."""
    current = get_correlation_context()
    updated = CorrelationContext(
        turn_id=current.turn_id if turn_id is None else turn_id,
        prompt_id=current.prompt_id if prompt_id is None else prompt_id,
        call_id=current.call_id if call_id is None else call_id,
        continuation=current.continuation if continuation is None else continuation,
    )
    token = _CORRELATION_CONTEXT.set(updated)
    try:
        yield updated
    finally:
        _CORRELATION_CONTEXT.reset(token)


__all__ = [
    "CorrelationContext",
    "CorrelationFilter",
    "correlation_scope",
    "get_correlation_context",
    "setup_logging",
]
