"""Core stores-domain exports."""

from tripsync.core.stores.base import Listeners, Store
from tripsync.core.stores.bills import BillTransactionStore
from tripsync.core.stores.trip import TripState, TripStore
from tripsync.core.stores.user import UserState, UserStore

__all__ = [
    "BillTransactionStore",
    "Listeners",
    "Store",
    "TripState",
    "TripStore",
    "UserState",
    "UserStore",
]
