"""Key-value store fakes."""

from __future__ import annotations

from tripsync.core.contracts.exceptions import LocalStoreError
from tripsync.core.overlay import MemoryKeyValueStore
from tripsync.core.remote import MemoryRemoteStore


class RecordingKeyValueStore(MemoryKeyValueStore):
    """Records which remote paths were watched when each key was read."""

    def __init__(self, remote: MemoryRemoteStore, items: dict[str, str] | None = None) -> None:
        super().__init__(items)
        self._remote = remote
        self.reads: list[tuple[str, list[str]]] = []

    async def get_item(self, key: str) -> str | None:
        self.reads.append((key, self._remote.watched_paths))
        return await super().get_item(key)


class UnreadableKeyValueStore(MemoryKeyValueStore):
    async def get_item(self, key: str) -> str | None:
        raise LocalStoreError(f"cannot read {key}")
