"""Remote document-store adapter contract.

The store is push-based: a watch delivers the *full* current content of a
document or collection on every observed change. Paths are slash-separated
(``"trips/t1/bills"``); documents are schemaless field maps.

Listeners passed to ``watch_*`` may be invoked from a transport thread.
Consumers must not assume they run on the event loop.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any


@dataclass(frozen=True)
class RemoteDocument:
    """One document as delivered by the remote store."""

    id: str
    data: dict[str, Any] = field(default_factory=dict)


class ServerTimestamp:
    """Write sentinel replaced by the server's commit time."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = ServerTimestamp()


@dataclass(frozen=True)
class ArrayUnion:
    """Write sentinel that appends values missing from an array field."""

    values: tuple[Any, ...]


DocumentListener = Callable[[RemoteDocument | None], None]
CollectionListener = Callable[[list[RemoteDocument]], None]
ErrorListener = Callable[[BaseException], None]


def join_path(*segments: str) -> str:
    return "/".join(segments)


class Watch(ABC):
    """Handle to one live remote listener."""

    @abstractmethod
    async def close(self) -> None: ...  # pragma: no cover


class RemoteStore(ABC):
    @abstractmethod
    async def __aenter__(self) -> RemoteStore: ...  # pragma: no cover

    @abstractmethod
    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None: ...  # pragma: no cover

    @abstractmethod
    async def watch_document(
        self, path: str, on_snapshot: DocumentListener, on_error: ErrorListener
    ) -> Watch: ...  # pragma: no cover

    @abstractmethod
    async def watch_collection(
        self, path: str, on_snapshot: CollectionListener, on_error: ErrorListener
    ) -> Watch: ...  # pragma: no cover

    @abstractmethod
    async def get_document(self, path: str) -> RemoteDocument | None: ...  # pragma: no cover

    @abstractmethod
    async def add_document(self, collection_path: str, data: dict[str, Any]) -> str: ...  # pragma: no cover

    @abstractmethod
    async def set_document(
        self, path: str, data: dict[str, Any], *, merge: bool = False
    ) -> None: ...  # pragma: no cover

    @abstractmethod
    async def update_document(self, path: str, data: dict[str, Any]) -> None: ...  # pragma: no cover

    @abstractmethod
    async def delete_document(self, path: str) -> None: ...  # pragma: no cover
