"""Signed-in actor record."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from tripsync.core.contracts.auth import AuthProvider
from tripsync.core.contracts.exceptions import (
    InvalidParentError,
    NotAuthenticatedError,
    RemoteUnavailableError,
    SnapshotParseError,
)
from tripsync.core.contracts.remote import SERVER_TIMESTAMP, ArrayUnion, join_path
from tripsync.core.contracts.result import Err, Ok
from tripsync.core.contracts.user import User
from tripsync.core.stores.base import Listener, Listeners, Store
from tripsync.core.sync.manager import RemoteSyncManager, SubscriptionHandle
from tripsync.core.sync.parsing import EntityType

logger = logging.getLogger(__name__)

_PROFILE_FIELDS = {
    "email": "email",
    "name": "name",
    "bio": "bio",
    "travel_preference": "travelPreference",
    "paypal_email": "paypalEmail",
}


class UserState(StrEnum):
    UNAUTHENTICATED = "unauthenticated"
    SUBSCRIBED = "subscribed"


class UserStore(Store):
    """Tracks ``users/{uid}`` for whoever the auth collaborator reports.

    Exactly one subscription is open while SUBSCRIBED. State changes only on
    auth-change events and :meth:`logout`. A deleted user document keeps the
    store SUBSCRIBED with ``user`` set to ``None``.
    """

    def __init__(self, sync: RemoteSyncManager, auth: AuthProvider) -> None:
        super().__init__()
        self._sync = sync
        self._auth = auth
        self._state = UserState.UNAUTHENTICATED
        self._uid: str | None = None
        self._user: User | None = None
        self._handle: SubscriptionHandle | None = None
        self._token: object | None = None
        self._loaded = False
        self._last_error: RemoteUnavailableError | SnapshotParseError | None = None
        self._user_changes: Listeners[User | None] = Listeners("UserStore")
        self._remove_auth_listener: Callable[[], None] | None = None

    @property
    def state(self) -> UserState:
        return self._state

    @property
    def user(self) -> User | None:
        return self._user

    @property
    def user_id(self) -> str | None:
        return self._uid

    @property
    def loaded(self) -> bool:
        """True once the current subscription delivered its first result."""
        return self._loaded

    @property
    def streams(self) -> dict[str, bool]:
        return {"user": self._loaded} if self._state is UserState.SUBSCRIBED else {}

    @property
    def last_error(self) -> RemoteUnavailableError | SnapshotParseError | None:
        return self._last_error

    def on_user_change(self, listener: Listener[User | None]) -> Callable[[], None]:
        """Register *listener* for every new user snapshot (``None`` when gone)."""
        return self._user_changes.add(listener)

    def require_user_id(self) -> str:
        uid = self._uid or self._auth.current_user_id()
        if not uid:
            raise NotAuthenticatedError("no signed-in user")
        return uid

    # -- lifecycle -------------------------------------------------------

    async def _start(self) -> None:
        self._remove_auth_listener = self._auth.on_auth_change(self._on_auth_change)
        uid = self._auth.current_user_id()
        if uid:
            await self._subscribe(uid)

    async def _stop(self) -> None:
        if self._remove_auth_listener is not None:
            self._remove_auth_listener()
            self._remove_auth_listener = None
        await self._release()

    async def logout(self) -> None:
        """Release the subscription, then clear the actor state."""
        await self._release()

    async def _on_auth_change(self, uid: str | None) -> None:
        if uid and uid == self._uid and self._state is UserState.SUBSCRIBED:
            return
        await self._release()
        if uid:
            await self._subscribe(uid)

    async def _subscribe(self, uid: str) -> None:
        token = self._token = object()
        self._uid = uid
        self._state = UserState.SUBSCRIBED

        async def on_change(result: Ok[Any] | Err) -> None:
            if token is not self._token:
                return
            self._loaded = True
            if isinstance(result, Err):
                self._last_error = result.error
                logger.warning("user snapshot failed: %s", result.error)
                await self._notify()
                return
            self._last_error = None
            self._user = result.value
            await self._user_changes.emit(self._user)
            await self._notify()

        try:
            handle = await self._sync.subscribe(EntityType.USER, uid, on_change)
        except BaseException:
            if token is self._token:
                self._token = None
                self._uid = None
                self._state = UserState.UNAUTHENTICATED
            raise
        if token is not self._token:
            await self._sync.unsubscribe(handle)
            logger.debug("user store dropped late subscription to %s", uid)
            return
        self._handle = handle
        logger.debug("user store subscribed to %s", uid)
        await self._notify()

    async def _release(self) -> None:
        handle, self._handle = self._handle, None
        was_subscribed = self._token is not None
        self._token = None
        self._loaded = False
        await self._sync.unsubscribe(handle)
        self._state = UserState.UNAUTHENTICATED
        self._uid = None
        self._last_error = None
        if not was_subscribed:
            return
        had_user, self._user = self._user is not None, None
        if had_user:
            await self._user_changes.emit(None)
        await self._notify()

    # -- writes ----------------------------------------------------------

    async def create_profile(self, email: str | None = None, name: str | None = None) -> None:
        """Merge the first-sign-in profile onto ``users/{uid}``."""
        uid = self.require_user_id()
        payload: dict[str, Any] = {"createdAt": SERVER_TIMESTAMP}
        if email is not None:
            payload["email"] = email
        if name is not None:
            payload["name"] = name
        await self._sync.remote.set_document(join_path("users", uid), payload, merge=True)

    async def update_profile(self, **fields: Any) -> None:
        unknown = sorted(set(fields) - set(_PROFILE_FIELDS))
        if unknown:
            raise TypeError(f"unknown profile field(s): {', '.join(unknown)}")
        uid = self.require_user_id()
        payload = {_PROFILE_FIELDS[name]: value for name, value in fields.items()}
        if payload:
            await self._sync.remote.set_document(join_path("users", uid), payload, merge=True)

    async def set_current_trip(self, trip_id: str | None) -> None:
        if trip_id is not None and not trip_id.strip():
            raise InvalidParentError("trip id is empty")
        uid = self.require_user_id()
        await self._sync.remote.set_document(join_path("users", uid), {"currentTripId": trip_id}, merge=True)

    async def add_trip(self, trip_id: str, *, user_id: str | None = None) -> None:
        """Add *trip_id* to the trip list of *user_id* (default: the actor)."""
        if not trip_id or not trip_id.strip():
            raise InvalidParentError("trip id is empty")
        uid = user_id or self.require_user_id()
        await self._sync.remote.set_document(
            join_path("users", uid), {"tripsIdList": ArrayUnion((trip_id,))}, merge=True
        )
