"""tripsync: live trip, bill and settlement sync over a push-based document store.

Public API re-exports for consumers::

    from tripsync import TripSync, TripSyncConfig, load_config
"""

__version__ = "0.1.0"

from tripsync.core.auth import StaticAuthProvider
from tripsync.core.config import load_config
from tripsync.core.contracts import (
    SERVER_TIMESTAMP,
    ArrayUnion,
    AuthProvider,
    Balance,
    Bill,
    ChecklistItem,
    Collaborator,
    ConfigError,
    Destination,
    DistributionMode,
    Err,
    InvalidParentError,
    KeyValueStore,
    LocalStoreCorruptError,
    LocalStoreError,
    NotAuthenticatedError,
    Ok,
    OrphanTripError,
    RemoteDocument,
    RemoteStore,
    RemoteUnavailableError,
    SnapshotParseError,
    Summary,
    Transaction,
    Trip,
    TripStatus,
    TripSummary,
    TripSyncConfig,
    TripSyncError,
    TripValidationError,
    User,
)
from tripsync.core.ledger import LedgerEngine
from tripsync.core.overlay import FileKeyValueStore, LocalOverlayStore, MemoryKeyValueStore
from tripsync.core.progress import NullSyncProgress, SyncProgress
from tripsync.core.remote import MemoryRemoteStore, create_remote_store
from tripsync.core.stores import BillTransactionStore, TripState, TripStore, UserState, UserStore
from tripsync.core.sync import EntityType, RemoteSyncManager, SubscriptionHandle
from tripsync.sdk import TripSync

__all__ = [
    "SERVER_TIMESTAMP",
    "ArrayUnion",
    "AuthProvider",
    "Balance",
    "Bill",
    "BillTransactionStore",
    "ChecklistItem",
    "Collaborator",
    "ConfigError",
    "Destination",
    "DistributionMode",
    "EntityType",
    "Err",
    "FileKeyValueStore",
    "InvalidParentError",
    "KeyValueStore",
    "LedgerEngine",
    "LocalOverlayStore",
    "LocalStoreCorruptError",
    "LocalStoreError",
    "MemoryKeyValueStore",
    "MemoryRemoteStore",
    "NotAuthenticatedError",
    "NullSyncProgress",
    "Ok",
    "OrphanTripError",
    "RemoteDocument",
    "RemoteStore",
    "RemoteSyncManager",
    "RemoteUnavailableError",
    "SnapshotParseError",
    "StaticAuthProvider",
    "SubscriptionHandle",
    "Summary",
    "SyncProgress",
    "Transaction",
    "Trip",
    "TripState",
    "TripStatus",
    "TripStore",
    "TripSummary",
    "TripSync",
    "TripSyncConfig",
    "TripSyncError",
    "TripValidationError",
    "User",
    "UserState",
    "UserStore",
    "__version__",
    "create_remote_store",
    "load_config",
]
