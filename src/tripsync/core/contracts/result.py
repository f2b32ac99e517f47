"""Tagged results delivered at the subscription boundary."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from tripsync.core.contracts.exceptions import RemoteUnavailableError, SnapshotParseError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """A successfully parsed snapshot."""

    value: T


@dataclass(frozen=True)
class Err:
    """A failed snapshot: unparsable payload or remote failure."""

    error: SnapshotParseError | RemoteUnavailableError

    @property
    def is_remote_failure(self) -> bool:
        return isinstance(self.error, RemoteUnavailableError)


SnapshotResult = Ok[T] | Err
