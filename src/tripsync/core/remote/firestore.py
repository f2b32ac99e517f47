"""Cloud Firestore remote store.

The Firestore client is synchronous and delivers ``on_snapshot`` callbacks on
its own watch thread. Blocking calls are moved off the event loop with
:func:`asyncio.to_thread`; watch callbacks are passed through unchanged since
:class:`~tripsync.core.sync.manager.RemoteSyncManager` already hands them to
the loop thread-safely.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from types import TracebackType
from typing import Any, TypeVar

from google.api_core import exceptions as gexc
from google.cloud import firestore

from tripsync.core.contracts.exceptions import RemoteUnavailableError
from tripsync.core.contracts.remote import (
    ArrayUnion,
    CollectionListener,
    DocumentListener,
    ErrorListener,
    RemoteDocument,
    RemoteStore,
    ServerTimestamp,
    Watch,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _to_firestore(data: dict[str, Any]) -> dict[str, Any]:
    converted: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, ServerTimestamp):
            converted[key] = firestore.SERVER_TIMESTAMP
        elif isinstance(value, ArrayUnion):
            converted[key] = firestore.ArrayUnion(list(value.values))
        else:
            converted[key] = value
    return converted


def _to_document(snapshot: Any) -> RemoteDocument | None:
    if not snapshot.exists:
        return None
    return RemoteDocument(id=snapshot.id, data=snapshot.to_dict() or {})


class FirestoreWatch(Watch):
    def __init__(self, watch: Any, path: str) -> None:
        self._watch = watch
        self._path = path

    async def close(self) -> None:
        watch, self._watch = self._watch, None
        if watch is None:
            return
        try:
            await asyncio.to_thread(watch.unsubscribe)
        except gexc.GoogleAPIError as exc:
            raise RemoteUnavailableError(f"failed closing watch on {self._path}: {exc}") from exc


class FirestoreRemoteStore(RemoteStore):
    """:class:`RemoteStore` backed by ``google.cloud.firestore.Client``."""

    def __init__(self, *, project_id: str | None = None, client: Any | None = None) -> None:
        self._project_id = project_id
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            raise RemoteUnavailableError("Firestore client is not open; use 'async with'")
        return self._client

    async def __aenter__(self) -> FirestoreRemoteStore:
        if self._client is None:
            self._client = await self._call(lambda: firestore.Client(project=self._project_id))
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        client, self._client = self._client, None
        if client is not None:
            await asyncio.to_thread(client.close)

    async def watch_document(self, path: str, on_snapshot: DocumentListener, on_error: ErrorListener) -> Watch:
        def callback(snapshots: list[Any], _changes: Any, _read_time: Any) -> None:
            try:
                on_snapshot(_to_document(snapshots[0]) if snapshots else None)
            except Exception as exc:
                on_error(exc)

        watch = await self._call(lambda: self.client.document(path).on_snapshot(callback))
        logger.debug("watching document %s", path)
        return FirestoreWatch(watch, path)

    async def watch_collection(self, path: str, on_snapshot: CollectionListener, on_error: ErrorListener) -> Watch:
        def callback(snapshots: list[Any], _changes: Any, _read_time: Any) -> None:
            try:
                documents = [_to_document(snapshot) for snapshot in snapshots]
                on_snapshot([document for document in documents if document is not None])
            except Exception as exc:
                on_error(exc)

        watch = await self._call(lambda: self.client.collection(path).on_snapshot(callback))
        logger.debug("watching collection %s", path)
        return FirestoreWatch(watch, path)

    async def get_document(self, path: str) -> RemoteDocument | None:
        snapshot = await self._call(lambda: self.client.document(path).get())
        return _to_document(snapshot)

    async def add_document(self, collection_path: str, data: dict[str, Any]) -> str:
        _, reference = await self._call(lambda: self.client.collection(collection_path).add(_to_firestore(data)))
        return str(reference.id)

    async def set_document(self, path: str, data: dict[str, Any], *, merge: bool = False) -> None:
        await self._call(lambda: self.client.document(path).set(_to_firestore(data), merge=merge))

    async def update_document(self, path: str, data: dict[str, Any]) -> None:
        await self._call(lambda: self.client.document(path).update(_to_firestore(data)))

    async def delete_document(self, path: str) -> None:
        await self._call(lambda: self.client.document(path).delete())

    @staticmethod
    async def _call(fn: Callable[[], T]) -> T:
        try:
            return await asyncio.to_thread(fn)
        except gexc.NotFound as exc:
            raise RemoteUnavailableError(f"document not found: {exc}") from exc
        except gexc.GoogleAPIError as exc:
            raise RemoteUnavailableError(str(exc)) from exc
