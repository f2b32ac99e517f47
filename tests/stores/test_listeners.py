"""Tests for the shared store plumbing."""

from __future__ import annotations

import logging

import pytest

from tripsync.core.contracts.exceptions import RemoteUnavailableError
from tripsync.core.stores import Listeners, Store


class CountingStore(Store):
    def __init__(self, *, fail: bool = False) -> None:
        super().__init__()
        self.fail = fail
        self.starts = 0
        self.stops = 0

    async def _start(self) -> None:
        self.starts += 1
        if self.fail:
            raise RemoteUnavailableError("cannot start")

    async def _stop(self) -> None:
        self.stops += 1


@pytest.mark.asyncio
async def test_listeners_run_in_order_and_survive_failures(caplog: pytest.LogCaptureFixture) -> None:
    listeners: Listeners[int] = Listeners("Demo")
    seen: list[str] = []

    async def awaited(value: int) -> None:
        seen.append(f"awaited {value}")

    def broken(value: int) -> None:
        raise RuntimeError("listener bug")

    def library_error(value: int) -> None:
        raise RemoteUnavailableError("resubscribe failed")

    listeners.add(awaited)
    listeners.add(broken)
    listeners.add(library_error)
    remove = listeners.add(lambda value: seen.append(f"plain {value}"))

    with caplog.at_level(logging.WARNING, logger="tripsync.core.stores.base"):
        await listeners.emit(1)
    remove()
    await listeners.emit(2)

    assert seen == ["awaited 1", "plain 1", "awaited 2"]
    assert "Demo listener failed: resubscribe failed" in caplog.text
    assert "listener bug" in caplog.text


@pytest.mark.asyncio
async def test_start_and_stop_are_idempotent() -> None:
    store = CountingStore()

    async with store:
        await store.start()
        assert store.started

    await store.stop()
    assert (store.starts, store.stops) == (1, 1)
    assert not store.started


@pytest.mark.asyncio
async def test_failed_start_stops_the_store() -> None:
    store = CountingStore(fail=True)

    with pytest.raises(RemoteUnavailableError):
        await store.start()

    assert store.stops == 1
    assert not store.started
