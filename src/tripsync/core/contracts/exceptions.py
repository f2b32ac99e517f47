"""Custom exception hierarchy for tripsync.

All tripsync exceptions inherit from :class:`TripSyncError`, making it easy
to catch any library error with a single ``except`` clause while still allowing
callers to handle specific failure modes.

Two groups matter to callers:

* contract violations (:class:`NotAuthenticatedError`,
  :class:`InvalidParentError`, :class:`TripValidationError`) signal caller
  error and are always raised;
* runtime conditions (:class:`RemoteUnavailableError`,
  :class:`SnapshotParseError`) are raised by writes but delivered as typed
  ``Err`` results on subscriptions.
"""

from __future__ import annotations


class TripSyncError(Exception):
    """Base exception for all tripsync errors."""


class ConfigError(TripSyncError):
    """Raised when the tripsync config file cannot be read or validated."""


class NotAuthenticatedError(TripSyncError):
    """Raised when an operation needs a signed-in actor and there is none."""


class InvalidParentError(TripSyncError):
    """Raised when an empty or missing trip, bill or user id is passed."""


class TripValidationError(TripSyncError):
    """Raised when trip input violates a model invariant (e.g. dates)."""


class RemoteUnavailableError(TripSyncError):
    """Raised when a remote subscription or write fails."""


class OrphanTripError(RemoteUnavailableError):
    """Raised when a trip was created but could not be linked to its owner.

    Attributes:
        trip_id: Id of the trip document that now exists without a user
            back-reference. Pass it to ``TripStore.link_trip`` to retry.
    """

    def __init__(self, trip_id: str, message: str | None = None) -> None:
        self.trip_id = trip_id
        super().__init__(message or f"trip {trip_id} was created but not linked to its owner")


class SnapshotParseError(TripSyncError):
    """Raised when a remote document cannot be parsed into an entity.

    Attributes:
        path: Remote path of the offending document.
        errors: Individual validation error messages.
    """

    def __init__(self, path: str, errors: list[str]) -> None:
        self.path = path
        self.errors = errors
        joined = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Invalid document at {path}:\n{joined}")


class LocalStoreError(TripSyncError):
    """Raised when the local key-value store cannot be written."""


class LocalStoreCorruptError(TripSyncError):
    """Raised internally when a persisted overlay payload cannot be decoded.

    Never surfaced to callers: the overlay store recovers with an empty set.
    """
