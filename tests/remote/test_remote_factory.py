"""Tests for remote store selection."""

from __future__ import annotations

import pytest

from tripsync.core.contracts.config import TripSyncConfig
from tripsync.core.contracts.exceptions import ConfigError
from tripsync.core.remote import MemoryRemoteStore, create_remote_store
from tripsync.core.remote.firestore import FirestoreRemoteStore


def test_memory_backend() -> None:
    assert isinstance(create_remote_store(TripSyncConfig()), MemoryRemoteStore)


def test_firestore_backend_is_built_lazily() -> None:
    store = create_remote_store(TripSyncConfig(backend="firestore", project_id="demo"))

    assert isinstance(store, FirestoreRemoteStore)


def test_unknown_backend_raises_config_error() -> None:
    config = TripSyncConfig.model_construct(backend="redis")

    with pytest.raises(ConfigError, match="Unknown backend: redis"):
        create_remote_store(config)
