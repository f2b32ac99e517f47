"""Core contracts-domain exports."""

from tripsync.core.contracts.auth import AuthProvider
from tripsync.core.contracts.config import TripSyncConfig
from tripsync.core.contracts.exceptions import (
    ConfigError,
    InvalidParentError,
    LocalStoreCorruptError,
    LocalStoreError,
    NotAuthenticatedError,
    OrphanTripError,
    RemoteUnavailableError,
    SnapshotParseError,
    TripSyncError,
    TripValidationError,
)
from tripsync.core.contracts.ledger import Balance, Bill, DistributionMode, Summary, Transaction
from tripsync.core.contracts.remote import SERVER_TIMESTAMP, ArrayUnion, RemoteDocument, RemoteStore, Watch
from tripsync.core.contracts.result import Err, Ok, SnapshotResult
from tripsync.core.contracts.storage import KeyValueStore
from tripsync.core.contracts.trip import ChecklistItem, Destination, Trip, TripStatus, TripSummary
from tripsync.core.contracts.user import Collaborator, User

__all__ = [
    "SERVER_TIMESTAMP",
    "ArrayUnion",
    "AuthProvider",
    "Balance",
    "Bill",
    "ChecklistItem",
    "Collaborator",
    "ConfigError",
    "Destination",
    "DistributionMode",
    "Err",
    "InvalidParentError",
    "KeyValueStore",
    "LocalStoreCorruptError",
    "LocalStoreError",
    "NotAuthenticatedError",
    "Ok",
    "OrphanTripError",
    "RemoteDocument",
    "RemoteStore",
    "RemoteUnavailableError",
    "SnapshotParseError",
    "SnapshotResult",
    "Summary",
    "Transaction",
    "Trip",
    "TripStatus",
    "TripSummary",
    "TripSyncConfig",
    "TripSyncError",
    "TripValidationError",
    "User",
    "Watch",
]
