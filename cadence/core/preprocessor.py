"""Default query preprocessing: local commands first, then the model."""

from __future__ import annotations

import logging
import re
import secrets
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from cadence.core.abort import AbortSignal
from cadence.models.history import HistoryItem, MessageType
from cadence.models.tools import QueryPayload, ToolCallRequest
from cadence.models.turn import PreparedQuery
from cadence.protocols.history import HistoryStore

logger = logging.getLogger(__name__)

_AT_REFERENCE = re.compile(r"(?:^|\s)@\S")


@dataclass(slots=True)
class ScheduleToolAction:
    """A slash command asking the client to run a tool on the user's behalf."""

    tool_name: str
    tool_args: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class AtCommandResult:
    processed_query: QueryPayload | None
    should_proceed: bool = True


SlashCommandHandler = Callable[[str], Awaitable[bool | ScheduleToolAction]]
ShellCommandHandler = Callable[[str, AbortSignal], bool]
AtCommandHandler = Callable[[str, int, AbortSignal], Awaitable[AtCommandResult]]


def is_at_command(text: str) -> bool:
    """True when ``text`` references a path with ``@`` at a word boundary."""
    return _AT_REFERENCE.search(text) is not None


def client_call_id(tool_name: str) -> str:
    return f"{tool_name}-{int(time.time() * 1000)}-{secrets.token_hex(6)}"


class DefaultQueryPreprocessor:
    """Turns raw input into the payload sent to the model.

    Tool-response payloads pass through untouched. Text is trimmed and offered
    to the slash-command, shell and at-command handlers in that order; text
    none of them claims is recorded as a ``user`` history entry and sent.
    """

    def __init__(
        self,
        *,
        history: HistoryStore,
        slash_command: SlashCommandHandler | None = None,
        shell_command: ShellCommandHandler | None = None,
        at_command: AtCommandHandler | None = None,
        shell_mode: bool = False,
    ) -> None:
        self._history = history
        self._slash_command = slash_command
        self._shell_command = shell_command
        self._at_command = at_command
        self.shell_mode = shell_mode

    async def prepare(
        self,
        query: QueryPayload,
        timestamp: int,
        signal: AbortSignal,
    ) -> PreparedQuery:
        if signal.aborted:
            return PreparedQuery.stop()
        if not isinstance(query, str):
            return PreparedQuery.send(query)

        text = query.strip()
        if not text:
            return PreparedQuery.stop()
        logger.info("User prompt received (%d chars)", len(text))
        logger.debug("User query: %r", text)

        if self._slash_command is not None:
            outcome = await self._slash_command(text)
            if isinstance(outcome, ScheduleToolAction):
                request = ToolCallRequest(
                    call_id=client_call_id(outcome.tool_name),
                    name=outcome.tool_name,
                    args=outcome.tool_args,
                    is_client_initiated=True,
                )
                return PreparedQuery.stop(client_tool_request=request)
            if outcome:
                return PreparedQuery.stop()

        if (
            self.shell_mode
            and self._shell_command is not None
            and self._shell_command(text, signal)
        ):
            return PreparedQuery.stop()

        if self._at_command is not None and is_at_command(text):
            result = await self._at_command(text, timestamp, signal)
            if not result.should_proceed or result.processed_query is None:
                logger.debug("At-command produced nothing to send")
                return PreparedQuery.stop()
            return PreparedQuery.send(result.processed_query)

        self._history.add_item(HistoryItem(type=MessageType.user, text=text), timestamp)
        return PreparedQuery.send(text)


__all__ = [
    "AtCommandHandler",
    "AtCommandResult",
    "DefaultQueryPreprocessor",
    "ScheduleToolAction",
    "ShellCommandHandler",
    "SlashCommandHandler",
    "client_call_id",
    "is_at_command",
]
