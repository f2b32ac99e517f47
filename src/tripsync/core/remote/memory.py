"""In-memory remote document store."""

from __future__ import annotations

import copy
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from types import TracebackType
from typing import Any

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
    join_path,
)


@dataclass(frozen=True)
class RemoteOperation:
    """Deterministic write log entry."""

    sequence: int
    name: str
    path: str
    payload: dict[str, Any]


class _MemoryWatch(Watch):
    def __init__(self, store: MemoryRemoteStore, path: str, on_error: ErrorListener) -> None:
        self._store = store
        self.path = path
        self.on_error = on_error
        self.active = True
        self.sequence = store._next_watch_sequence()

    async def close(self) -> None:
        if self.active:
            self.active = False
            self._store._detach(self)


class _DocumentWatch(_MemoryWatch):
    def __init__(
        self, store: MemoryRemoteStore, path: str, on_snapshot: DocumentListener, on_error: ErrorListener
    ) -> None:
        super().__init__(store, path, on_error)
        self.on_snapshot = on_snapshot


class _CollectionWatch(_MemoryWatch):
    def __init__(
        self, store: MemoryRemoteStore, path: str, on_snapshot: CollectionListener, on_error: ErrorListener
    ) -> None:
        super().__init__(store, path, on_error)
        self.on_snapshot = on_snapshot


def _parent(path: str) -> tuple[str, str]:
    collection, _, doc_id = path.rpartition("/")
    return collection, doc_id


class MemoryRemoteStore(RemoteStore):
    """Remote store kept in process memory.

    Commits are applied in call order and every matching watch receives a full
    snapshot right after each commit, so per-watch delivery follows commit
    order. :meth:`hold_deliveries` buffers notifications so tests can release
    them in a chosen interleaving.
    """

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self._documents: dict[str, dict[str, Any]] = {}
        self._document_watches: list[_DocumentWatch] = []
        self._collection_watches: list[_CollectionWatch] = []
        self._counter = 0
        self._operation_counter = 0
        self._watch_counter = 0
        self._operations: list[RemoteOperation] = []
        self._write_failures: list[tuple[str | None, RemoteUnavailableError]] = []
        self._watch_failures: list[RemoteUnavailableError] = []
        self._holding = False
        self._held: list[tuple[str, Callable[[], None]]] = []

    # ------------------------------------------------------------------
    # Introspection and failure injection
    # ------------------------------------------------------------------

    @property
    def operations(self) -> tuple[RemoteOperation, ...]:
        return tuple(self._operations)

    @property
    def watch_count(self) -> int:
        return len(self._document_watches) + len(self._collection_watches)

    @property
    def watched_paths(self) -> list[str]:
        """Paths of live watches, oldest first."""
        watches = sorted([*self._document_watches, *self._collection_watches], key=lambda watch: watch.sequence)
        return [watch.path for watch in watches]

    def document(self, path: str) -> dict[str, Any] | None:
        data = self._documents.get(path)
        return copy.deepcopy(data) if data is not None else None

    def fail_next_write(self, error: RemoteUnavailableError | None = None, *, path: str | None = None) -> None:
        """Fail the next write, or the next write below *path* when given."""
        self._write_failures.append((path, error or RemoteUnavailableError("injected write failure")))

    def fail_next_watch(self, error: RemoteUnavailableError | None = None) -> None:
        self._watch_failures.append(error or RemoteUnavailableError("injected watch failure"))

    def break_watches(self, path: str, error: RemoteUnavailableError | None = None) -> None:
        """Deliver *error* to every live watch on *path*."""
        failure = error or RemoteUnavailableError(f"watch on {path} interrupted")
        for watch in [*self._document_watches, *self._collection_watches]:
            if watch.path == path:
                self._deliver(watch.path, lambda w=watch: w.active and w.on_error(failure))

    def hold_deliveries(self) -> None:
        self._holding = True

    def release_deliveries(self, *paths: str) -> None:
        """Deliver held notifications in commit order, optionally only for *paths*.

        Holding stays on; see :meth:`resume_deliveries`.
        """
        selected = [entry for entry in self._held if not paths or entry[0] in paths]
        self._held = [entry for entry in self._held if paths and entry[0] not in paths]
        for _, deliver in selected:
            deliver()

    def resume_deliveries(self) -> None:
        """Deliver everything held and stop holding."""
        self._holding = False
        self.release_deliveries()

    def put(self, path: str, data: dict[str, Any]) -> None:
        """Seed a document without logging an operation."""
        self._commit(path, self._resolve(data, existing=None))

    # ------------------------------------------------------------------
    # RemoteStore
    # ------------------------------------------------------------------

    async def __aenter__(self) -> MemoryRemoteStore:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        return None

    async def watch_document(self, path: str, on_snapshot: DocumentListener, on_error: ErrorListener) -> Watch:
        self._raise_watch_failure()
        watch = _DocumentWatch(self, path, on_snapshot, on_error)
        self._document_watches.append(watch)
        self._notify_document(watch)
        return watch

    async def watch_collection(self, path: str, on_snapshot: CollectionListener, on_error: ErrorListener) -> Watch:
        self._raise_watch_failure()
        watch = _CollectionWatch(self, path, on_snapshot, on_error)
        self._collection_watches.append(watch)
        self._notify_collection(watch)
        return watch

    async def get_document(self, path: str) -> RemoteDocument | None:
        data = self._documents.get(path)
        if data is None:
            return None
        return RemoteDocument(id=_parent(path)[1], data=copy.deepcopy(data))

    async def add_document(self, collection_path: str, data: dict[str, Any]) -> str:
        self._raise_write_failure(collection_path)
        self._counter += 1
        doc_id = f"{collection_path.rsplit('/', 1)[-1]}-{self._counter}"
        path = join_path(collection_path, doc_id)
        self._record("add_document", path, data)
        self._commit(path, self._resolve(data, existing=None))
        return doc_id

    async def set_document(self, path: str, data: dict[str, Any], *, merge: bool = False) -> None:
        self._raise_write_failure(path)
        self._record("set_document", path, {**data, "merge": merge} if merge else data)
        existing = self._documents.get(path) if merge else None
        resolved = self._resolve(data, existing=existing)
        self._commit(path, {**(existing or {}), **resolved})

    async def update_document(self, path: str, data: dict[str, Any]) -> None:
        self._raise_write_failure(path)
        existing = self._documents.get(path)
        if existing is None:
            raise RemoteUnavailableError(f"document not found: {path}")
        self._record("update_document", path, data)
        self._commit(path, {**existing, **self._resolve(data, existing=existing)})

    async def delete_document(self, path: str) -> None:
        self._raise_write_failure(path)
        self._record("delete_document", path, {})
        if path in self._documents:
            del self._documents[path]
            self._broadcast(path)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _raise_write_failure(self, path: str) -> None:
        for index, (prefix, error) in enumerate(self._write_failures):
            if prefix is None or path == prefix or path.startswith(prefix + "/"):
                del self._write_failures[index]
                raise error

    def _next_watch_sequence(self) -> int:
        self._watch_counter += 1
        return self._watch_counter

    def _raise_watch_failure(self) -> None:
        if self._watch_failures:
            raise self._watch_failures.pop(0)

    def _record(self, name: str, path: str, payload: dict[str, Any]) -> None:
        self._operation_counter += 1
        self._operations.append(
            RemoteOperation(sequence=self._operation_counter, name=name, path=path, payload=dict(payload))
        )

    def _resolve(self, data: dict[str, Any], *, existing: dict[str, Any] | None) -> dict[str, Any]:
        resolved: dict[str, Any] = {}
        for key, value in data.items():
            if isinstance(value, ServerTimestamp):
                resolved[key] = self._clock()
            elif isinstance(value, ArrayUnion):
                current = list((existing or {}).get(key) or [])
                resolved[key] = current + [item for item in value.values if item not in current]
            else:
                resolved[key] = copy.deepcopy(value)
        return resolved

    def _commit(self, path: str, data: dict[str, Any]) -> None:
        self._documents[path] = data
        self._broadcast(path)

    def _broadcast(self, path: str) -> None:
        collection, _ = _parent(path)
        for document_watch in list(self._document_watches):
            if document_watch.path == path:
                self._notify_document(document_watch)
        for collection_watch in list(self._collection_watches):
            if collection_watch.path == collection:
                self._notify_collection(collection_watch)

    def _notify_document(self, watch: _DocumentWatch) -> None:
        data = self._documents.get(watch.path)
        snapshot = RemoteDocument(id=_parent(watch.path)[1], data=copy.deepcopy(data)) if data is not None else None
        self._deliver(watch.path, lambda: watch.active and watch.on_snapshot(snapshot))

    def _notify_collection(self, watch: _CollectionWatch) -> None:
        prefix = watch.path + "/"
        snapshot = [
            RemoteDocument(id=path[len(prefix) :], data=copy.deepcopy(data))
            for path, data in sorted(self._documents.items())
            if path.startswith(prefix) and "/" not in path[len(prefix) :]
        ]
        self._deliver(watch.path, lambda: watch.active and watch.on_snapshot(snapshot))

    def _deliver(self, path: str, deliver: Callable[[], object]) -> None:
        if self._holding:
            self._held.append((path, deliver))
        else:
            deliver()

    def _detach(self, watch: _MemoryWatch) -> None:
        if isinstance(watch, _DocumentWatch) and watch in self._document_watches:
            self._document_watches.remove(watch)
        elif isinstance(watch, _CollectionWatch) and watch in self._collection_watches:
            self._collection_watches.remove(watch)
