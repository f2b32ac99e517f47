"""Key-value store implementations for the local overlay."""

from __future__ import annotations

import asyncio
from pathlib import Path
from urllib.parse import quote

from tripsync.core.contracts.exceptions import LocalStoreError
from tripsync.core.contracts.storage import KeyValueStore


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store; optionally seeded with *items*."""

    def __init__(self, items: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(items or {})
        self.fail_writes = False

    @property
    def items(self) -> dict[str, str]:
        return dict(self._items)

    async def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise LocalStoreError(f"write rejected for key {key!r}")
        self._items[key] = value

    async def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class FileKeyValueStore(KeyValueStore):
    """One UTF-8 file per key below *root*.

    Writes go through a temporary sibling file and ``Path.replace`` so a crash
    never leaves a half-written value behind.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _path_for(self, key: str) -> Path:
        return self._root / f"{quote(key, safe='')}.json"

    async def get_item(self, key: str) -> str | None:
        return await asyncio.to_thread(self._read, self._path_for(key))

    async def set_item(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._write, self._path_for(key), value)

    async def remove_item(self, key: str) -> None:
        await asyncio.to_thread(self._remove, self._path_for(key))

    @staticmethod
    def _read(path: Path) -> str | None:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise LocalStoreError(f"failed reading {path}") from exc

    @staticmethod
    def _write(path: Path, value: str) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            staging = path.with_suffix(path.suffix + ".tmp")
            staging.write_text(value, encoding="utf-8")
            staging.replace(path)
        except OSError as exc:
            raise LocalStoreError(f"failed writing {path}") from exc

    @staticmethod
    def _remove(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise LocalStoreError(f"failed removing {path}") from exc
