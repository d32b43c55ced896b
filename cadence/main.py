"""Cadence CLI entry point and dependency wiring."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

import click

from cadence.backends.scripted import (
    Scenario,
    ScriptedBackend,
    load_scenario,
    register_scenario_tools,
)
from cadence.channels.cli import CLIChannel, CLIChannelConfig, format_history_item
from cadence.config import CadenceSettings, load_config
from cadence.core.cancellation import CancellationMonitor
from cadence.core.controller import TurnController
from cadence.core.history import InMemoryHistoryStore
from cadence.core.logging import setup_logging
from cadence.core.metrics import start_metrics_server
from cadence.core.preprocessor import DefaultQueryPreprocessor
from cadence.core.session_stats import SessionStats
from cadence.core.telemetry import init_tracing, shutdown_tracing
from cadence.tools.registry import ToolRegistry
from cadence.tools.scheduler import LocalToolScheduler

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Runtime:
    controller: TurnController
    history: InMemoryHistoryStore
    scheduler: LocalToolScheduler
    backend: ScriptedBackend
    monitor: CancellationMonitor
    stats: SessionStats


def build_runtime(
    settings: CadenceSettings,
    scenario: Scenario,
    *,
    auto_approve: bool | None = None,
) -> Runtime:
    registry = ToolRegistry()
    register_scenario_tools(registry, scenario)
    scheduler = LocalToolScheduler(
        registry,
        approval_required=settings.tools.approval_required,
        auto_approve=settings.tools.auto_approve if auto_approve is None else auto_approve,
    )
    history = InMemoryHistoryStore()
    backend = ScriptedBackend.from_scenario(scenario)
    stats = SessionStats()

    def _on_auth_error() -> None:
        logger.error("Backend rejected credentials (auth_type=%s)", settings.models.auth_type)

    controller = TurnController(
        backend=backend,
        scheduler=scheduler,
        history=history,
        preprocessor=DefaultQueryPreprocessor(history=history),
        usage=stats,
        on_auth_error=_on_auth_error,
        model_name=settings.models.model,
        auth_type=settings.models.auth_type,
        split_long_messages=settings.stream.split_long_messages,
    )
    return Runtime(
        controller=controller,
        history=history,
        scheduler=scheduler,
        backend=backend,
        monitor=CancellationMonitor(controller),
        stats=stats,
    )


def _configure_observability(settings: CadenceSettings) -> None:
    setup_logging(settings.logging.level, json_output=settings.logging.json_output)
    if settings.telemetry.enabled:
        init_tracing(env=settings.telemetry.env, endpoint=settings.telemetry.endpoint)
    if settings.observability.metrics_enabled:
        start_metrics_server(settings.observability.metrics_port)
        logger.info("Metrics exposed on port %d", settings.observability.metrics_port)


def _load_settings(config_path: str | None) -> CadenceSettings:
    if config_path is None:
        return CadenceSettings()
    try:
        return load_config(config_path)
    except (FileNotFoundError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc


def _load_scenario(path: Path | None) -> Scenario:
    if path is None:
        return Scenario()
    try:
        return load_scenario(path)
    except (FileNotFoundError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc


async def replay_scenario(runtime: Runtime, prompts: list[str], *, queued: bool = False) -> None:
    """Submit ``prompts`` and wait until every turn and tool call has settled.

    With ``queued`` all prompts are submitted at once, so later ones wait in
    the message queue behind the first.
    """
    controller = runtime.controller
    if queued:
        await asyncio.gather(*(controller.submit_query(prompt) for prompt in prompts))
        await controller.wait_until_idle()
    else:
        for prompt in prompts:
            await controller.submit_query(prompt)
            await controller.wait_until_idle()
    await runtime.scheduler.drain()
    await controller.aclose()


async def _chat(runtime: Runtime, config: CLIChannelConfig) -> None:
    channel = CLIChannel(
        runtime.controller,
        runtime.history,
        scheduler=runtime.scheduler,
        monitor=runtime.monitor,
        config=config,
    )
    try:
        runtime.monitor.install_signal_handler()
    except (NotImplementedError, RuntimeError):
        logger.debug("SIGINT cancellation unavailable on this platform")
    try:
        await channel.run()
    finally:
        runtime.monitor.remove_signal_handlers()
        await runtime.controller.aclose()


@click.group()
def cli() -> None:
    """Cadence turn orchestration CLI."""


@cli.command("chat")
@click.option("--config", "config_path", default=None, help="YAML config file.")
@click.option(
    "--scenario",
    "scenario_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Scripted scenario supplying model turns and tools.",
)
def chat_command(config_path: str | None, scenario_path: Path | None) -> None:
    """Interactive session against a scripted backend."""
    settings = _load_settings(config_path)
    scenario = _load_scenario(scenario_path)
    _configure_observability(settings)
    runtime = build_runtime(settings, scenario)
    config = CLIChannelConfig(prompt=settings.channel.prompt, color=settings.channel.color)
    try:
        asyncio.run(_chat(runtime, config))
    except KeyboardInterrupt:
        click.echo("Shutting down.")
    finally:
        shutdown_tracing()


@cli.command("replay")
@click.argument("scenario_path", type=click.Path(path_type=Path, dir_okay=False))
@click.option("--config", "config_path", default=None, help="YAML config file.")
@click.option("--queued", is_flag=True, help="Submit every prompt at once.")
def replay_command(scenario_path: Path, config_path: str | None, queued: bool) -> None:
    """Replay a scenario non-interactively and print the committed history."""
    settings = _load_settings(config_path)
    scenario = _load_scenario(scenario_path)
    _configure_observability(settings)
    runtime = build_runtime(settings, scenario, auto_approve=True)
    try:
        asyncio.run(replay_scenario(runtime, scenario.prompts, queued=queued))
    finally:
        shutdown_tracing()

    for item in runtime.history.items:
        click.echo(format_history_item(item))
    stats = runtime.stats
    click.echo(
        f"-- {stats.turn_count} turn(s), {stats.cumulative.total} token(s)",
        err=True,
    )
    if runtime.backend.remaining:
        click.echo(f"-- {runtime.backend.remaining} scripted turn(s) unused", err=True)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
