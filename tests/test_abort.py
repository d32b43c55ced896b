from __future__ import annotations

import asyncio

import pytest
from cadence.core.abort import AbortController
from cadence.core.errors import AbortError


def test_abort_is_write_once() -> None:
    controller = AbortController()

    assert controller.abort("first") is True
    assert controller.abort("second") is False
    assert controller.signal.aborted is True
    assert controller.signal.reason == "first"


def test_listeners_fire_once() -> None:
    controller = AbortController()
    calls: list[str] = []
    controller.signal.add_listener(lambda: calls.append("fired"))

    controller.abort()
    controller.abort()

    assert calls == ["fired"]


def test_listener_added_after_abort_runs_immediately() -> None:
    controller = AbortController()
    controller.abort()
    calls: list[str] = []

    controller.signal.add_listener(lambda: calls.append("late"))

    assert calls == ["late"]


def test_removed_listener_is_not_called() -> None:
    controller = AbortController()
    calls: list[str] = []

    def listener() -> None:
        calls.append("x")

    controller.signal.add_listener(listener)
    controller.signal.remove_listener(listener)
    controller.abort()

    assert calls == []


def test_failing_listener_does_not_block_others() -> None:
    controller = AbortController()
    calls: list[str] = []

    def broken() -> None:
        raise RuntimeError("listener bug")

    controller.signal.add_listener(broken)
    controller.signal.add_listener(lambda: calls.append("ok"))
    controller.abort()

    assert calls == ["ok"]


def test_throw_if_aborted() -> None:
    controller = AbortController()
    controller.signal.throw_if_aborted()

    controller.abort("stop now")
    with pytest.raises(AbortError, match="stop now"):
        controller.signal.throw_if_aborted()


@pytest.mark.asyncio
async def test_wait_returns_after_abort() -> None:
    controller = AbortController()
    waiter = asyncio.create_task(controller.signal.wait())
    await asyncio.sleep(0)
    assert not waiter.done()

    controller.abort()
    await asyncio.wait_for(waiter, timeout=1)
