"""Shared test fixtures for tripsync tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from tripsync.core.contracts.ledger import Bill
from tripsync.core.remote import MemoryRemoteStore
from tests.fakes.remote import GatedRemoteStore
from tests.fakes.world import NOW, make_remote, seed_world


@pytest.fixture
def remote() -> MemoryRemoteStore:
    """A memory remote seeded with users u1/u2 and trips t1/t2."""
    return make_remote()


@pytest.fixture
def empty_remote() -> MemoryRemoteStore:
    return make_remote(seeded=False)


@pytest.fixture
def gated_remote() -> GatedRemoteStore:
    """The seeded world on a remote whose watches can be held mid-subscribe."""
    remote = GatedRemoteStore(clock=lambda: NOW)
    seed_world(remote)
    return remote


@pytest.fixture
def dinner_bill() -> Bill:
    """u1 settled 90 evenly across three participants."""
    return Bill(
        id="b1",
        title="Dinner",
        participants=["u1", "u2", "u3"],
        summary={"u1": {"u1": 30.0, "u2": 30.0, "u3": 30.0}},
    )


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """A memory-backend config for user u1."""
    path = tmp_path / "tripsync.json"
    path.write_text(json.dumps({"backend": "memory", "user_id": "u1", "overlay_dir": "overlay"}), encoding="utf-8")
    return path
