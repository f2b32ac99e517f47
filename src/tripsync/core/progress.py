"""Progress reporting for the initial sync.

:meth:`tripsync.sdk.TripSync.wait_until_synced` runs one phase per store
(``User``, ``Trip``, ``Bills``). A phase's items are the subscriptions that
store holds (``user``; ``trip`` and ``destinations``; ``bills`` and
``transactions``), each reported once its first snapshot arrives.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class SyncProgress(ABC):
    """Observer interface for sync progress events."""

    @abstractmethod
    def phase_start(self, phase: str, total: int | None = None) -> None:
        """A phase is starting with *total* subscriptions to wait on.

        *total* is ``None`` when the store holds none, e.g. no current trip.
        """
        ...  # pragma: no cover

    @abstractmethod
    def item_done(self, phase: str, stream: str) -> None:
        """The *stream* subscription of *phase* delivered its first snapshot."""
        ...  # pragma: no cover

    @abstractmethod
    def phase_done(self, phase: str) -> None:
        ...  # pragma: no cover

    @abstractmethod
    def phase_error(self, phase: str, error: BaseException) -> None:
        ...  # pragma: no cover


class NullSyncProgress(SyncProgress):
    """Discards every event."""

    def phase_start(self, phase: str, total: int | None = None) -> None:
        pass

    def item_done(self, phase: str, stream: str) -> None:
        pass

    def phase_done(self, phase: str) -> None:
        pass

    def phase_error(self, phase: str, error: BaseException) -> None:
        pass
