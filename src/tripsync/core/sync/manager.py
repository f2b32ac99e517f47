"""Subscription manager over a push-based :class:`RemoteStore`.

Each subscription owns one transport watch, one queue and one consumer task.
Transport listeners only enqueue (thread-safely); the consumer parses each
snapshot and hands it to the subscriber, awaiting coroutine callbacks before
taking the next item. That gives strict per-subscription ordering and no
ordering across subscriptions.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from tripsync.core.contracts.exceptions import RemoteUnavailableError
from tripsync.core.contracts.remote import RemoteDocument, RemoteStore, Watch
from tripsync.core.contracts.result import Err, Ok
from tripsync.core.sync.parsing import (
    EntityType,
    ParentKey,
    entity_path,
    is_collection,
    parse_collection_snapshot,
    parse_document_snapshot,
)

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[Ok[Any] | Err], Awaitable[None] | None]

_SNAPSHOT = "snapshot"
_ERROR = "error"


@dataclass(eq=False)
class SubscriptionHandle:
    """Opaque handle returned by :meth:`RemoteSyncManager.subscribe`."""

    id: int
    entity_type: EntityType
    path: str
    closed: bool = False
    _watch: Watch | None = field(default=None, repr=False)
    _task: asyncio.Task[None] | None = field(default=None, repr=False)


class RemoteSyncManager:
    """Opens and closes snapshot subscriptions and delivers parsed results."""

    def __init__(self, remote: RemoteStore) -> None:
        self._remote = remote
        self._handles: dict[int, SubscriptionHandle] = {}
        self._ids = itertools.count(1)

    @property
    def remote(self) -> RemoteStore:
        return self._remote

    @property
    def active_count(self) -> int:
        """Number of subscriptions not yet released."""
        return len(self._handles)

    async def subscribe(
        self,
        entity_type: EntityType,
        parent_key: ParentKey,
        on_change: ChangeCallback,
    ) -> SubscriptionHandle:
        """Watch the document or collection identified by *parent_key*.

        Raises:
            InvalidParentError: If *parent_key* is empty or malformed.
        """
        path = entity_path(entity_type, parent_key)
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[tuple[str, Any]] = asyncio.Queue()
        handle = SubscriptionHandle(id=next(self._ids), entity_type=entity_type, path=path)

        def enqueue(kind: str, payload: Any) -> None:
            if not handle.closed:
                queue.put_nowait((kind, payload))

        def push(kind: str, payload: Any) -> None:
            if handle.closed or loop.is_closed():
                return
            loop.call_soon_threadsafe(enqueue, kind, payload)

        handle._task = loop.create_task(
            self._drain(handle, queue, on_change), name=f"tripsync-subscription-{handle.id}"
        )
        self._handles[handle.id] = handle

        try:
            if is_collection(entity_type):
                handle._watch = await self._remote.watch_collection(
                    path, lambda docs: push(_SNAPSHOT, docs), lambda exc: push(_ERROR, exc)
                )
            else:
                handle._watch = await self._remote.watch_document(
                    path, lambda doc: push(_SNAPSHOT, doc), lambda exc: push(_ERROR, exc)
                )
        except RemoteUnavailableError as exc:
            logger.warning("subscription to %s failed: %s", path, exc)
            enqueue(_ERROR, exc)
        except BaseException:
            await self.unsubscribe(handle)
            raise

        logger.debug("subscribed #%d %s", handle.id, path)
        return handle

    async def unsubscribe(self, handle: SubscriptionHandle | None) -> None:
        """Release *handle*. Calling it again (or with ``None``) is a no-op."""
        if handle is None or handle.closed:
            return
        handle.closed = True
        self._handles.pop(handle.id, None)

        watch, handle._watch = handle._watch, None
        if watch is not None:
            try:
                await watch.close()
            except RemoteUnavailableError as exc:
                logger.warning("closing watch on %s failed: %s", handle.path, exc)

        task = handle._task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        logger.debug("unsubscribed #%d %s", handle.id, handle.path)

    async def close(self) -> None:
        """Release every live subscription."""
        for handle in list(self._handles.values()):
            await self.unsubscribe(handle)

    async def _drain(
        self,
        handle: SubscriptionHandle,
        queue: asyncio.Queue[tuple[str, Any]],
        on_change: ChangeCallback,
    ) -> None:
        while not handle.closed:
            kind, payload = await queue.get()
            if handle.closed:
                return
            result = self._to_result(handle, kind, payload)
            try:
                outcome = on_change(result)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception("change listener for %s failed", handle.path)

    @staticmethod
    def _to_result(handle: SubscriptionHandle, kind: str, payload: Any) -> Ok[Any] | Err:
        if kind == _ERROR:
            if isinstance(payload, RemoteUnavailableError):
                return Err(payload)
            return Err(RemoteUnavailableError(f"subscription to {handle.path} failed: {payload}"))
        if is_collection(handle.entity_type):
            documents: list[RemoteDocument] = payload
            return parse_collection_snapshot(handle.entity_type, documents, path=handle.path)
        return parse_document_snapshot(handle.entity_type, payload, path=handle.path)
