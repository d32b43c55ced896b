"""Per-session token accounting fed by usage metadata events."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from cadence.core.metrics import TOKENS_TOTAL
from cadence.models.events import UsageMetadata

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TokenUsage:
    prompt: int = 0
    candidates: int = 0
    total: int = 0
    cached: int = 0
    tool_use_prompt: int = 0
    thoughts: int = 0
    api_time_ms: int = 0

    def add(self, metadata: UsageMetadata) -> None:
        self.prompt += metadata.prompt_token_count
        self.candidates += metadata.candidates_token_count
        self.total += metadata.total_token_count
        self.cached += metadata.cached_content_token_count
        self.tool_use_prompt += metadata.tool_use_prompt_token_count
        self.thoughts += metadata.thoughts_token_count
        self.api_time_ms += metadata.api_time_ms


@dataclass(slots=True)
class SessionStats:
    """Cumulative and current-turn usage; implements ``UsageSink``."""

    turn_count: int = 0
    cumulative: TokenUsage = field(default_factory=TokenUsage)
    current_turn: TokenUsage = field(default_factory=TokenUsage)

    def start_new_turn(self) -> None:
        self.turn_count += 1
        self.current_turn = TokenUsage()

    def add_usage(self, metadata: UsageMetadata) -> None:
        self.cumulative.add(metadata)
        self.current_turn.add(metadata)
        TOKENS_TOTAL.labels(direction="prompt").inc(metadata.prompt_token_count)
        TOKENS_TOTAL.labels(direction="candidates").inc(metadata.candidates_token_count)
        TOKENS_TOTAL.labels(direction="cached").inc(metadata.cached_content_token_count)
        TOKENS_TOTAL.labels(direction="thoughts").inc(metadata.thoughts_token_count)
        TOKENS_TOTAL.labels(direction="tool_use_prompt").inc(metadata.tool_use_prompt_token_count)
        logger.debug(
            "usage: prompt=%d candidates=%d total=%d",
            metadata.prompt_token_count,
            metadata.candidates_token_count,
            metadata.total_token_count,
        )


__all__ = ["SessionStats", "TokenUsage"]
