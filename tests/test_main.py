"""End-to-end replay of the bundled scenarios."""

from __future__ import annotations

from pathlib import Path

import pytest
from cadence.backends.scripted import load_scenario
from cadence.config import CadenceSettings
from cadence.main import build_runtime, cli, replay_scenario
from cadence.models.history import MessageType, ToolDisplayStatus
from click.testing import CliRunner

SCENARIOS = Path(__file__).parent.parent / "scenarios"


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    # Keep the root logger pointed at pytest's capture rather than the runner's stream.
    monkeypatch.setattr("cadence.main.setup_logging", lambda *args, **kwargs: None)


@pytest.mark.parametrize("queued", [False, True])
@pytest.mark.asyncio
async def test_demo_replay_runs_tool_round_trip(queued: bool) -> None:
    scenario = load_scenario(SCENARIOS / "demo.yaml")
    runtime = build_runtime(CadenceSettings(), scenario, auto_approve=True)

    await replay_scenario(runtime, scenario.prompts, queued=queued)

    items = runtime.history.items
    users = [item.text for item in items if item.type == MessageType.user]
    assert users == ["What is in the project?", "Thanks"]
    [group] = [item for item in items if item.type == MessageType.tool_group]
    assert group.tools[0].name == "list_files"
    assert group.tools[0].status == ToolDisplayStatus.success
    assert items[-1].text == "You're welcome."
    assert runtime.backend.remaining == 0
    assert runtime.stats.turn_count == 3
    assert runtime.stats.cumulative.total == 91


@pytest.mark.asyncio
async def test_continuation_sends_tool_response_parts() -> None:
    scenario = load_scenario(SCENARIOS / "demo.yaml")
    runtime = build_runtime(CadenceSettings(), scenario, auto_approve=True)

    await replay_scenario(runtime, scenario.prompts[:1])

    [response] = runtime.backend.received[1]
    assert response["functionResponse"]["id"] == "call-1"
    assert response["functionResponse"]["response"] == {"output": "README.md\nsrc/\ntests/"}


def test_replay_command_prints_history() -> None:
    result = CliRunner().invoke(cli, ["replay", str(SCENARIOS / "demo.yaml")])

    assert result.exit_code == 0, result.output
    assert "> What is in the project?" in result.output
    assert "[+] list_files: List project files (path='.') -> 3 entries" in result.output
    assert "-- 3 turn(s), 91 token(s)" in result.output


def test_replay_command_reports_errors() -> None:
    result = CliRunner().invoke(cli, ["replay", str(SCENARIOS / "failure.yaml")])

    assert result.exit_code == 0, result.output
    assert "! [API Error: Quota exceeded (Status: RESOURCE_EXHAUSTED)]" in result.output
    assert "rate limited" in result.output
    assert "> Try again" in result.output
    assert "! [API Error: connection reset]" in result.output


def test_replay_command_with_config(tmp_path: Path) -> None:
    config = tmp_path / "cadence.yaml"
    config.write_text("cadence:\n  stream:\n    split_long_messages: false\n", encoding="utf-8")

    result = CliRunner().invoke(
        cli, ["replay", str(SCENARIOS / "demo.yaml"), "--config", str(config)]
    )

    assert result.exit_code == 0, result.output
    assert "Anything else?" in result.output


def test_missing_config_is_a_usage_error(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        cli, ["replay", str(SCENARIOS / "demo.yaml"), "--config", str(tmp_path / "nope.yaml")]
    )

    assert result.exit_code != 0
    assert "config file not found" in result.output
