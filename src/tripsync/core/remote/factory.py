"""Remote store selection from configuration."""

from __future__ import annotations

from tripsync.core.contracts.config import TripSyncConfig
from tripsync.core.contracts.exceptions import ConfigError
from tripsync.core.contracts.remote import RemoteStore
from tripsync.core.remote.memory import MemoryRemoteStore


def create_remote_store(config: TripSyncConfig) -> RemoteStore:
    """Build the remote store named by ``config.backend``.

    The returned store is an async context manager::

        async with create_remote_store(config) as remote:
            ...

    Raises:
        ConfigError: If the backend name is unknown.
    """
    if config.backend == "memory":
        return MemoryRemoteStore()
    if config.backend == "firestore":
        from tripsync.core.remote.firestore import FirestoreRemoteStore

        return FirestoreRemoteStore(project_id=config.project_id)
    raise ConfigError(f"Unknown backend: {config.backend}")
