"""Shared store plumbing: lifecycle and change listeners."""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from types import TracebackType
from typing import Any, Generic, TypeVar

from tripsync.core.contracts.exceptions import TripSyncError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], object]
"""Receives the new value; may return an awaitable, which is awaited."""


class Listeners(Generic[T]):
    """Ordered listener registry.

    Listener failures are logged and never break the notifying store. Library
    errors raised by a listener (e.g. a failed resubscription) are logged the
    same way; the listener's own store records them.
    """

    def __init__(self, owner: str) -> None:
        self._owner = owner
        self._listeners: list[Listener[T]] = []

    def add(self, listener: Listener[T]) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def emit(self, value: T) -> None:
        for listener in list(self._listeners):
            try:
                outcome = listener(value)
                if inspect.isawaitable(outcome):
                    await outcome
            except TripSyncError as exc:
                logger.warning("%s listener failed: %s", self._owner, exc)
            except Exception:
                logger.exception("%s listener failed", self._owner)


class Store(ABC):
    """A long-lived store with explicit ``start()``/``stop()``.

    ``async with store:`` starts it and guarantees :meth:`stop` on every exit
    path. ``add_listener`` callbacks fire after each observable change.
    """

    def __init__(self) -> None:
        self._changes: Listeners[Any] = Listeners(type(self).__name__)
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    @property
    def streams(self) -> dict[str, bool]:
        """Whether each subscription currently held has delivered its first snapshot."""
        return {}

    def add_listener(self, listener: Listener[Any]) -> Callable[[], None]:
        return self._changes.add(listener)

    async def _notify(self) -> None:
        await self._changes.emit(self)

    async def __aenter__(self) -> Store:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        try:
            await self._start()
        except BaseException:
            await self.stop()
            raise

    async def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        await self._stop()

    @abstractmethod
    async def _start(self) -> None: ...  # pragma: no cover

    @abstractmethod
    async def _stop(self) -> None: ...  # pragma: no cover
