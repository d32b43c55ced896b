from __future__ import annotations

from pathlib import Path

import pytest
from cadence.backends.scripted import (
    Scenario,
    ScriptedBackend,
    ScriptedTurn,
    load_scenario,
    register_scenario_tools,
)
from cadence.core.abort import AbortController
from cadence.core.errors import AbortError, CadenceError, UnauthorizedError
from cadence.models.events import ContentEvent, StreamEvent, ToolCallRequestEvent
from cadence.tools.registry import ToolRegistry

SCENARIOS = Path(__file__).parent.parent / "scenarios"


async def collect(backend: ScriptedBackend, query: str = "hi") -> list[StreamEvent]:
    return [event async for event in backend.open_stream(query, AbortController().signal)]


def test_demo_scenario_parses() -> None:
    scenario = load_scenario(SCENARIOS / "demo.yaml")

    assert scenario.prompts == ["What is in the project?", "Thanks"]
    assert set(scenario.tools) == {"list_files", "write_file"}
    assert scenario.tools["write_file"].requires_approval is True
    first = scenario.turns[0].events
    assert any(isinstance(event, ToolCallRequestEvent) for event in first)


def test_failure_alias_parses() -> None:
    scenario = load_scenario(SCENARIOS / "failure.yaml")
    assert scenario.turns[1].failure == "error"
    assert scenario.turns[1].error_message == "connection reset"


def test_missing_scenario(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_scenario(tmp_path / "nope.yaml")


def test_non_mapping_scenario(tmp_path: Path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("- 1\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_scenario(path)


@pytest.mark.asyncio
async def test_turns_replay_in_order() -> None:
    backend = ScriptedBackend(
        [
            ScriptedTurn(events=[ContentEvent(value="one")]),
            ScriptedTurn(events=[ContentEvent(value="two")]),
        ]
    )

    first = await collect(backend, "a")
    second = await collect(backend, "b")

    assert [event.value for event in first + second] == ["one", "two"]
    assert backend.received == ["a", "b"]
    assert backend.remaining == 0


@pytest.mark.asyncio
async def test_exhausted_backend_raises() -> None:
    with pytest.raises(CadenceError, match="no turns left"):
        await collect(ScriptedBackend([]))


@pytest.mark.parametrize(
    ("failure", "error"),
    [("unauthorized", UnauthorizedError), ("abort", AbortError), ("error", CadenceError)],
)
@pytest.mark.asyncio
async def test_failures_raise_after_events(failure: str, error: type[Exception]) -> None:
    turn = ScriptedTurn.model_validate(
        {"events": [{"type": "content", "value": "x"}], "raise": failure}
    )
    backend = ScriptedBackend([turn])
    seen: list[StreamEvent] = []

    with pytest.raises(error):
        async for event in backend.open_stream("q", AbortController().signal):
            seen.append(event)

    assert len(seen) == 1


@pytest.mark.asyncio
async def test_aborted_signal_stops_replay() -> None:
    backend = ScriptedBackend([ScriptedTurn(events=[ContentEvent(value="x")])])
    controller = AbortController()
    controller.abort("user cancelled")

    with pytest.raises(AbortError):
        async for _ in backend.open_stream("q", controller.signal):
            pass


@pytest.mark.asyncio
async def test_scenario_tools_are_registered() -> None:
    scenario = load_scenario(SCENARIOS / "demo.yaml")
    registry = ToolRegistry()
    register_scenario_tools(registry, scenario)

    tool = registry.get("list_files")
    assert tool is not None
    result = await tool.func({}, AbortController().signal)
    assert result.display == "3 entries"
    assert registry.get("write_file").requires_approval is True  # type: ignore[union-attr]


def test_empty_scenario_defaults() -> None:
    scenario = Scenario()
    assert scenario.prompts == []
    assert ScriptedBackend.from_scenario(scenario).remaining == 0
