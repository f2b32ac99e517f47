"""Local persistent key-value store contract."""

from __future__ import annotations

from abc import ABC, abstractmethod


class KeyValueStore(ABC):
    """String key → string value, durable across process restarts."""

    @abstractmethod
    async def get_item(self, key: str) -> str | None: ...  # pragma: no cover

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None: ...  # pragma: no cover

    @abstractmethod
    async def remove_item(self, key: str) -> None: ...  # pragma: no cover
