"""Tests for the device-local archive overlay."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from tripsync.core.contracts.exceptions import InvalidParentError, LocalStoreError
from tripsync.core.overlay import FileKeyValueStore, LocalOverlayStore, MemoryKeyValueStore, overlay_key
from tests.fakes.storage import UnreadableKeyValueStore


def test_overlay_key() -> None:
    assert overlay_key("t1") == "archivedBills_t1"


@pytest.mark.asyncio
async def test_save_then_load_round_trips() -> None:
    overlay = LocalOverlayStore(MemoryKeyValueStore())

    await overlay.save("t1", {"b2", "b1"})

    assert await overlay.load("t1") == {"b1", "b2"}
    assert await overlay.load("t2") == set()


@pytest.mark.asyncio
async def test_payload_is_a_sorted_json_array() -> None:
    storage = MemoryKeyValueStore()
    overlay = LocalOverlayStore(storage)

    await overlay.archive("t1", "b2")
    await overlay.archive("t1", "b1")
    await overlay.archive("t1", "b1")

    assert json.loads(storage.items["archivedBills_t1"]) == ["b1", "b2"]


@pytest.mark.asyncio
async def test_restore_removes_only_that_bill() -> None:
    overlay = LocalOverlayStore(MemoryKeyValueStore({"archivedBills_t1": '["b1", "b2"]'}))

    assert await overlay.restore("t1", "b1") == {"b2"}
    assert await overlay.restore("t1", "missing") == {"b2"}


@pytest.mark.asyncio
async def test_archive_survives_a_restart(tmp_path: Path) -> None:
    await LocalOverlayStore(FileKeyValueStore(tmp_path)).archive("t1", "b1")

    reloaded = LocalOverlayStore(FileKeyValueStore(tmp_path))

    assert await reloaded.load("t1") == {"b1"}


@pytest.mark.parametrize("payload", ["not json", '{"b1": true}', "[1, 2]", '"b1"'])
@pytest.mark.asyncio
async def test_corrupt_payload_recovers_with_empty_set(payload: str, caplog: pytest.LogCaptureFixture) -> None:
    overlay = LocalOverlayStore(MemoryKeyValueStore({"archivedBills_t1": payload}))

    with caplog.at_level(logging.WARNING, logger="tripsync.core.overlay.store"):
        assert await overlay.load("t1") == set()

    assert "discarding archive overlay for trip t1" in caplog.text


@pytest.mark.asyncio
async def test_corrupt_payload_is_replaced_on_next_archive() -> None:
    storage = MemoryKeyValueStore({"archivedBills_t1": "{{"})

    await LocalOverlayStore(storage).archive("t1", "b3")

    assert storage.items["archivedBills_t1"] == '["b3"]'


@pytest.mark.asyncio
async def test_unreadable_store_recovers_with_empty_set() -> None:
    assert await LocalOverlayStore(UnreadableKeyValueStore()).load("t1") == set()


@pytest.mark.parametrize("method", ["archive", "restore"])
@pytest.mark.asyncio
async def test_read_failure_leaves_the_stored_set_alone(method: str) -> None:
    storage = UnreadableKeyValueStore({"archivedBills_t1": '["b1", "b2"]'})
    overlay = LocalOverlayStore(storage)

    with pytest.raises(LocalStoreError, match="cannot read archivedBills_t1"):
        await getattr(overlay, method)("t1", "b1")

    assert storage.items["archivedBills_t1"] == '["b1", "b2"]'


@pytest.mark.asyncio
async def test_write_failure_surfaces() -> None:
    storage = MemoryKeyValueStore()
    storage.fail_writes = True

    with pytest.raises(LocalStoreError):
        await LocalOverlayStore(storage).archive("t1", "b1")


@pytest.mark.parametrize(("trip_id", "bill_id"), [("", "b1"), ("t1", ""), ("  ", "b1")])
@pytest.mark.asyncio
async def test_empty_ids_are_rejected(trip_id: str, bill_id: str) -> None:
    with pytest.raises(InvalidParentError):
        await LocalOverlayStore(MemoryKeyValueStore()).archive(trip_id, bill_id)
