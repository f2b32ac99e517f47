"""Core remote-domain exports."""

from tripsync.core.remote.factory import create_remote_store
from tripsync.core.remote.memory import MemoryRemoteStore, RemoteOperation

__all__ = ["MemoryRemoteStore", "RemoteOperation", "create_remote_store"]
