from __future__ import annotations

from collections.abc import Callable

import pytest
from cadence.core.controller import TurnController
from cadence.core.history import InMemoryHistoryStore
from cadence.core.preprocessor import DefaultQueryPreprocessor

from tests.fakes import FakeBackend, FakeToolScheduler, RecordingUsage


@pytest.fixture
def history() -> InMemoryHistoryStore:
    return InMemoryHistoryStore()


@pytest.fixture
def scheduler() -> FakeToolScheduler:
    return FakeToolScheduler()


@pytest.fixture
def usage() -> RecordingUsage:
    return RecordingUsage()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def make_controller(
    backend: FakeBackend,
    scheduler: FakeToolScheduler,
    history: InMemoryHistoryStore,
    usage: RecordingUsage,
) -> Callable[..., TurnController]:
    def _make(**overrides: object) -> TurnController:
        options: dict[str, object] = {
            "backend": backend,
            "scheduler": scheduler,
            "history": history,
            "preprocessor": DefaultQueryPreprocessor(history=history),
            "usage": usage,
            "model_name": "test-model",
        }
        options.update(overrides)
        return TurnController(**options)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def controller(make_controller: Callable[..., TurnController]) -> TurnController:
    return make_controller()
