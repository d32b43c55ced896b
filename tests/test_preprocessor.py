from __future__ import annotations

import pytest
from cadence.core.abort import AbortController, AbortSignal
from cadence.core.history import InMemoryHistoryStore
from cadence.core.preprocessor import (
    AtCommandResult,
    DefaultQueryPreprocessor,
    ScheduleToolAction,
    client_call_id,
    is_at_command,
)
from cadence.models.history import MessageType


def signal() -> AbortSignal:
    return AbortController().signal


class TestPlainText:
    @pytest.mark.asyncio
    async def test_text_is_trimmed_recorded_and_sent(self, history: InMemoryHistoryStore) -> None:
        prepared = await DefaultQueryPreprocessor(history=history).prepare("  hello  ", 7, signal())

        assert prepared.should_proceed is True
        assert prepared.query_to_send == "hello"
        [item] = history.items
        assert item.type == MessageType.user
        assert item.text == "hello"

    @pytest.mark.asyncio
    async def test_blank_text_stops(self, history: InMemoryHistoryStore) -> None:
        prepared = await DefaultQueryPreprocessor(history=history).prepare(" \n ", 1, signal())

        assert prepared.should_proceed is False
        assert history.items == []

    @pytest.mark.asyncio
    async def test_parts_pass_through(self, history: InMemoryHistoryStore) -> None:
        parts = [{"functionResponse": {"id": "c1"}}]
        prepared = await DefaultQueryPreprocessor(history=history).prepare(parts, 1, signal())

        assert prepared.query_to_send == parts
        assert history.items == []

    @pytest.mark.asyncio
    async def test_aborted_signal_stops(self, history: InMemoryHistoryStore) -> None:
        controller = AbortController()
        controller.abort()

        prepared = await DefaultQueryPreprocessor(history=history).prepare(
            "hello", 1, controller.signal
        )
        assert prepared.should_proceed is False


class TestCommands:
    @pytest.mark.asyncio
    async def test_handled_slash_command_stops(self, history: InMemoryHistoryStore) -> None:
        seen: list[str] = []

        async def slash(text: str) -> bool:
            seen.append(text)
            return text == "/clear"

        preprocessor = DefaultQueryPreprocessor(history=history, slash_command=slash)

        assert (await preprocessor.prepare("/clear", 1, signal())).should_proceed is False
        assert (await preprocessor.prepare("/unknown", 2, signal())).query_to_send == "/unknown"
        assert seen == ["/clear", "/unknown"]

    @pytest.mark.asyncio
    async def test_schedule_tool_action_builds_client_request(
        self,
        history: InMemoryHistoryStore,
    ) -> None:
        async def slash(text: str) -> ScheduleToolAction:
            return ScheduleToolAction("save_memory", {"fact": "tea"})

        prepared = await DefaultQueryPreprocessor(history=history, slash_command=slash).prepare(
            "/memory add tea", 1, signal()
        )

        assert prepared.should_proceed is False
        request = prepared.client_tool_request
        assert request is not None
        assert request.is_client_initiated is True
        assert request.name == "save_memory"
        assert request.call_id.startswith("save_memory-")

    @pytest.mark.asyncio
    async def test_shell_mode_consumes_input(self, history: InMemoryHistoryStore) -> None:
        ran: list[str] = []

        def shell(text: str, _signal: AbortSignal) -> bool:
            ran.append(text)
            return True

        preprocessor = DefaultQueryPreprocessor(
            history=history, shell_command=shell, shell_mode=True
        )
        prepared = await preprocessor.prepare("ls -la", 1, signal())

        assert prepared.should_proceed is False
        assert ran == ["ls -la"]

    @pytest.mark.asyncio
    async def test_shell_handler_ignored_outside_shell_mode(
        self,
        history: InMemoryHistoryStore,
    ) -> None:
        def shell(text: str, _signal: AbortSignal) -> bool:
            raise AssertionError("should not run")

        preprocessor = DefaultQueryPreprocessor(history=history, shell_command=shell)
        assert (await preprocessor.prepare("ls", 1, signal())).query_to_send == "ls"

    @pytest.mark.asyncio
    async def test_at_command_replaces_query(self, history: InMemoryHistoryStore) -> None:
        async def at_command(text: str, timestamp: int, _signal: AbortSignal) -> AtCommandResult:
            return AtCommandResult([{"text": text}, {"text": "<file contents>"}])

        preprocessor = DefaultQueryPreprocessor(history=history, at_command=at_command)
        prepared = await preprocessor.prepare("explain @src/main.py", 1, signal())

        assert prepared.query_to_send == [
            {"text": "explain @src/main.py"},
            {"text": "<file contents>"},
        ]

    @pytest.mark.asyncio
    async def test_at_command_can_stop(self, history: InMemoryHistoryStore) -> None:
        async def at_command(text: str, timestamp: int, _signal: AbortSignal) -> AtCommandResult:
            return AtCommandResult(None, should_proceed=False)

        preprocessor = DefaultQueryPreprocessor(history=history, at_command=at_command)
        assert (await preprocessor.prepare("@missing", 1, signal())).should_proceed is False


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("@file.txt", True),
        ("look at @src/app.py please", True),
        ("mail me at user@example.com", False),
        ("a lone @ sign", False),
    ],
)
def test_is_at_command(text: str, expected: bool) -> None:
    assert is_at_command(text) is expected


def test_client_call_ids_are_unique() -> None:
    assert client_call_id("t") != client_call_id("t")
