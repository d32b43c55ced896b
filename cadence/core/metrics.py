"""Prometheus metrics for turn orchestration.

All metric objects are module-level singletons registered on the default
``prometheus_client`` registry.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager

from prometheus_client import Counter, Gauge, Histogram, generate_latest, start_http_server

TURNS_TOTAL = Counter("cadence_turns_total", "Turns started", ["kind"])
TURN_DURATION_SECONDS = Histogram(
    "cadence_turn_duration_seconds", "Turn processing duration in seconds", ["kind"]
)
TURN_ERRORS_TOTAL = Counter("cadence_turn_errors_total", "Turns that ended in an error", ["kind"])
STREAM_EVENTS_TOTAL = Counter(
    "cadence_stream_events_total", "Stream events processed", ["event_type"]
)
TOKENS_TOTAL = Counter("cadence_tokens_total", "Tokens reported by usage metadata", ["direction"])
TOOL_CALLS_SCHEDULED_TOTAL = Counter(
    "cadence_tool_calls_scheduled_total", "Tool calls submitted to the scheduler", ["origin"]
)
TOOL_CALL_TRANSITIONS_TOTAL = Counter(
    "cadence_tool_call_transitions_total", "Tool call status transitions", ["status"]
)
CANCELLATIONS_TOTAL = Counter("cadence_cancellations_total", "Cancelled turns", ["source"])
MESSAGE_QUEUE_DEPTH = Gauge("cadence_message_queue_depth", "Queued user lines")

metrics_generate_latest = generate_latest


def start_metrics_server(port: int) -> None:
    start_http_server(port)


@contextmanager
def observe_turn_duration(kind: str) -> Iterator[None]:
    """Increment the turn counter and observe wall time, even on failure."""
    TURNS_TOTAL.labels(kind=kind).inc()
    start = time.monotonic()
    try:
        yield
    finally:
        TURN_DURATION_SECONDS.labels(kind=kind).observe(time.monotonic() - start)


__all__ = [
    "CANCELLATIONS_TOTAL",
    "MESSAGE_QUEUE_DEPTH",
    "STREAM_EVENTS_TOTAL",
    "TOKENS_TOTAL",
    "TOOL_CALLS_SCHEDULED_TOTAL",
    "TOOL_CALL_TRANSITIONS_TOTAL",
    "TURNS_TOTAL",
    "TURN_DURATION_SECONDS",
    "TURN_ERRORS_TOTAL",
    "metrics_generate_latest",
    "observe_turn_duration",
    "start_metrics_server",
]
