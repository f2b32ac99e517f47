"""Current-trip store.

Follows ``User.current_trip_id``. For the followed trip it holds two
subscriptions with a joint lifecycle, the trip document and its destinations
collection, plus one checklist subscription per destination. Field ownership
is disjoint: destination snapshots own ``Trip.destinations``; trip snapshots
own every other field.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import TypeAdapter, ValidationError

from tripsync.core.contracts.exceptions import (
    InvalidParentError,
    OrphanTripError,
    RemoteUnavailableError,
    SnapshotParseError,
    TripValidationError,
)
from tripsync.core.contracts.fields import Timestamp
from tripsync.core.contracts.remote import SERVER_TIMESTAMP, ArrayUnion, join_path
from tripsync.core.contracts.result import Err, Ok
from tripsync.core.contracts.trip import ChecklistItem, Destination, Trip, TripStatus
from tripsync.core.contracts.user import Collaborator, User
from tripsync.core.stores.base import Listener, Listeners, Store
from tripsync.core.stores.user import UserStore
from tripsync.core.sync.manager import RemoteSyncManager, SubscriptionHandle
from tripsync.core.sync.parsing import EntityType

logger = logging.getLogger(__name__)

_TIMESTAMP: TypeAdapter[datetime] = TypeAdapter(Timestamp)

_TRIP_FIELDS = {
    "title": "title",
    "start_date": "startDate",
    "end_date": "endDate",
    "status": "status",
}

_DESTINATION_FIELDS = {
    "latitude": "latitude",
    "longitude": "longitude",
    "name": "name",
    "address": "address",
    "description": "description",
    "place_id": "place_id",
    "date": "date",
}


class TripState(StrEnum):
    NO_TRIP = "no_trip"
    LOADING = "loading"
    ACTIVE = "active"


@dataclass(eq=False)
class _TripSession:
    """Subscriptions and raw snapshots for one followed trip id."""

    trip_id: str
    trip: Trip | None = None
    destinations: list[Destination] | None = None
    trip_handle: SubscriptionHandle | None = None
    destinations_handle: SubscriptionHandle | None = None
    checklist_handles: dict[str, SubscriptionHandle] = field(default_factory=dict)
    closed: bool = False

    def handles(self) -> list[SubscriptionHandle | None]:
        return [self.trip_handle, self.destinations_handle, *self.checklist_handles.values()]


def _to_timestamp(value: object, what: str) -> datetime:
    try:
        return _TIMESTAMP.validate_python(value)
    except ValidationError as exc:
        raise TripValidationError(f"{what} is not a valid date: {value!r}") from exc


def _to_status(value: object) -> TripStatus:
    try:
        return TripStatus(str(value).strip().lower())
    except ValueError as exc:
        raise TripValidationError(f"unknown trip status: {value!r}") from exc


def _check_date_order(start: datetime, end: datetime) -> None:
    if start > end:
        raise TripValidationError(f"start date {start.isoformat()} is after end date {end.isoformat()}")


def _require_id(value: str | None, what: str) -> str:
    if not value or not value.strip():
        raise InvalidParentError(f"{what} is empty")
    return value


class TripStore(Store):
    """Tracks the trip named by the signed-in user's ``current_trip_id``.

    States move NO_TRIP -> LOADING -> ACTIVE and back to NO_TRIP when the user
    switches trips, logs out, or the trip document is deleted. Remote failures
    keep the last good trip and are exposed as :attr:`last_error`.

    Mutations are remote writes only; in-memory state changes when a
    subscription delivers the result.
    """

    def __init__(self, sync: RemoteSyncManager, users: UserStore) -> None:
        super().__init__()
        self._sync = sync
        self._users = users
        self._session: _TripSession | None = None
        self._followed_id: str | None = None
        self._state = TripState.NO_TRIP
        self._trip: Trip | None = None
        self._checklists: dict[str, list[ChecklistItem]] = {}
        self._last_error: RemoteUnavailableError | SnapshotParseError | None = None
        self._trip_changes: Listeners[str | None] = Listeners("TripStore")
        self._remove_user_listener: Callable[[], None] | None = None

    @property
    def state(self) -> TripState:
        return self._state

    @property
    def trip(self) -> Trip | None:
        return self._trip

    @property
    def trip_id(self) -> str | None:
        """Id of the trip being followed, set from LOADING onwards."""
        return self._session.trip_id if self._session is not None else None

    @property
    def loaded(self) -> bool:
        """True unless a followed trip is still waiting for its first snapshots."""
        session = self._session
        if session is None:
            return True
        return (session.trip is not None and session.destinations is not None) or self._last_error is not None

    @property
    def streams(self) -> dict[str, bool]:
        session = self._session
        if session is None:
            return {}
        return {"trip": session.trip is not None, "destinations": session.destinations is not None}

    @property
    def last_error(self) -> RemoteUnavailableError | SnapshotParseError | None:
        return self._last_error

    def checklist(self, destination_id: str) -> list[ChecklistItem]:
        return list(self._checklists.get(destination_id, []))

    @property
    def checklists(self) -> dict[str, list[ChecklistItem]]:
        return {destination_id: list(items) for destination_id, items in self._checklists.items()}

    def on_trip_change(self, listener: Listener[str | None]) -> Callable[[], None]:
        """Register *listener* for changes of :attr:`trip_id`."""
        return self._trip_changes.add(listener)

    def require_trip_id(self) -> str:
        trip_id = self.trip_id
        if trip_id is None:
            raise InvalidParentError("no current trip")
        return trip_id

    # -- lifecycle -------------------------------------------------------

    async def _start(self) -> None:
        self._remove_user_listener = self._users.on_user_change(self._on_user_change)
        await self._on_user_change(self._users.user)

    async def _stop(self) -> None:
        if self._remove_user_listener is not None:
            self._remove_user_listener()
            self._remove_user_listener = None
        self._followed_id = None
        await self._deactivate()

    async def _on_user_change(self, user: User | None) -> None:
        target = user.current_trip_id if user is not None else None
        if target == self._followed_id:
            return
        self._followed_id = target
        await self._release()
        if target is not None:
            await self._activate(target)
        await self._trip_changes.emit(self.trip_id)
        await self._notify()

    async def _activate(self, trip_id: str) -> None:
        session = self._session = _TripSession(trip_id=trip_id)
        self._state = TripState.LOADING
        logger.debug("trip store loading %s", trip_id)
        try:
            handle = await self._sync.subscribe(EntityType.TRIP, trip_id, lambda result: self._on_trip(session, result))
            if not await self._keep(session, handle):
                return
            session.trip_handle = handle
            handle = await self._sync.subscribe(
                EntityType.DESTINATIONS, trip_id, lambda result: self._on_destinations(session, result)
            )
            if not await self._keep(session, handle):
                return
            session.destinations_handle = handle
        except BaseException:
            if self._is_current(session):
                await self._release()
            raise

    async def _keep(self, session: _TripSession, handle: SubscriptionHandle) -> bool:
        """Unsubscribe *handle* if *session* was released while it was opening."""
        if self._is_current(session):
            return True
        await self._sync.unsubscribe(handle)
        logger.debug("trip store dropped late subscription %s", handle.path)
        return False

    async def _release(self) -> None:
        """Release every subscription of the current session together."""
        session, self._session = self._session, None
        if session is not None:
            session.closed = True
            for handle in session.handles():
                await self._sync.unsubscribe(handle)
            logger.debug("trip store released %s", session.trip_id)
        self._trip = None
        self._checklists = {}
        self._last_error = None
        self._state = TripState.NO_TRIP

    async def _deactivate(self) -> None:
        had_session = self._session is not None
        await self._release()
        if had_session:
            await self._trip_changes.emit(None)
            await self._notify()

    def _is_current(self, session: _TripSession) -> bool:
        return not session.closed and session is self._session

    # -- snapshot handlers -----------------------------------------------

    async def _on_trip(self, session: _TripSession, result: Ok[Any] | Err) -> None:
        if not self._is_current(session):
            return
        if isinstance(result, Err):
            self._last_error = result.error
            logger.warning("trip %s snapshot failed: %s", session.trip_id, result.error)
            await self._notify()
            return
        trip: Trip | None = result.value
        if trip is None:
            logger.info("trip %s was deleted", session.trip_id)
            await self._deactivate()
            return
        session.trip = trip
        self._trip = trip.model_copy(update={"destinations": list(session.destinations or [])})
        self._state = TripState.ACTIVE
        self._last_error = None
        await self._notify()

    async def _on_destinations(self, session: _TripSession, result: Ok[Any] | Err) -> None:
        if not self._is_current(session):
            return
        if isinstance(result, Err):
            self._last_error = result.error
            logger.warning("destinations of %s failed: %s", session.trip_id, result.error)
            await self._notify()
            return
        destinations: list[Destination] = result.value
        session.destinations = destinations
        if session.trip is not None:
            self._trip = session.trip.model_copy(update={"destinations": list(destinations)})
        await self._sync_checklists(session, destinations)
        if self._is_current(session):
            await self._notify()

    async def _sync_checklists(self, session: _TripSession, destinations: list[Destination]) -> None:
        wanted = {destination.id for destination in destinations}
        for destination_id in list(session.checklist_handles):
            if destination_id not in wanted:
                await self._sync.unsubscribe(session.checklist_handles.pop(destination_id))
                self._checklists.pop(destination_id, None)
        for destination_id in sorted(wanted - set(session.checklist_handles)):
            if not self._is_current(session):
                return
            handle = await self._sync.subscribe(
                EntityType.CHECKLISTS,
                (session.trip_id, destination_id),
                lambda result, d=destination_id: self._on_checklist(session, d, result),
            )
            if not await self._keep(session, handle):
                return
            session.checklist_handles[destination_id] = handle

    async def _on_checklist(self, session: _TripSession, destination_id: str, result: Ok[Any] | Err) -> None:
        if not self._is_current(session) or destination_id not in session.checklist_handles:
            return
        if isinstance(result, Err):
            self._last_error = result.error
            logger.warning("checklist of %s failed: %s", destination_id, result.error)
        else:
            self._checklists[destination_id] = result.value
        await self._notify()

    # -- trip writes -----------------------------------------------------

    async def create_trip(
        self,
        title: str,
        start_date: object,
        end_date: object,
        *,
        status: TripStatus | str = TripStatus.PLANNING,
    ) -> str:
        """Create a trip owned by the actor and make it their current trip.

        Raises:
            NotAuthenticatedError: If nobody is signed in.
            TripValidationError: If ``start_date`` is after ``end_date``.
            OrphanTripError: If the trip was written but linking it to the
                user failed. Retry with :meth:`link_trip`.
        """
        uid = self._users.require_user_id()
        start = _to_timestamp(start_date, "start date")
        end = _to_timestamp(end_date, "end date")
        _check_date_order(start, end)
        payload: dict[str, Any] = {
            "title": title,
            "startDate": start,
            "endDate": end,
            "status": _to_status(status).value,
            "ownerId": uid,
            "collaborators": [uid],
            "createdAt": SERVER_TIMESTAMP,
            "updatedAt": SERVER_TIMESTAMP,
        }
        trip_id = await self._sync.remote.add_document("trips", payload)
        logger.debug("created trip %s", trip_id)
        try:
            await self.link_trip(trip_id)
        except RemoteUnavailableError as exc:
            raise OrphanTripError(trip_id) from exc
        return trip_id

    async def link_trip(self, trip_id: str) -> None:
        """Attach *trip_id* to the actor and select it. Safe to repeat."""
        _require_id(trip_id, "trip id")
        await self._users.add_trip(trip_id)
        await self._users.set_current_trip(trip_id)

    async def update_trip(self, trip_id: str | None = None, **fields: Any) -> None:
        unknown = sorted(set(fields) - set(_TRIP_FIELDS))
        if unknown:
            raise TypeError(f"unknown trip field(s): {', '.join(unknown)}")
        target = _require_id(trip_id, "trip id") if trip_id is not None else self.require_trip_id()
        payload: dict[str, Any] = {}
        for name, value in fields.items():
            if name in {"start_date", "end_date"}:
                value = _to_timestamp(value, name.replace("_", " "))
            elif name == "status":
                value = _to_status(value).value
            payload[_TRIP_FIELDS[name]] = value
        known = self._trip if self._trip is not None and self._trip.id == target else None
        start = payload.get("startDate", known.start_date if known else None)
        end = payload.get("endDate", known.end_date if known else None)
        if start is not None and end is not None:
            _check_date_order(start, end)
        payload["updatedAt"] = SERVER_TIMESTAMP
        await self._sync.remote.update_document(join_path("trips", target), payload)

    async def delete_trip(self, trip_id: str | None = None) -> None:
        target = _require_id(trip_id, "trip id") if trip_id is not None else self.require_trip_id()
        await self._sync.remote.delete_document(join_path("trips", target))

    async def add_collaborator(self, user_id: str, trip_id: str | None = None) -> None:
        """Grant *user_id* access to the trip and list it on their record."""
        _require_id(user_id, "user id")
        target = _require_id(trip_id, "trip id") if trip_id is not None else self.require_trip_id()
        await self._sync.remote.update_document(
            join_path("trips", target), {"collaborators": ArrayUnion((user_id,)), "updatedAt": SERVER_TIMESTAMP}
        )
        await self._users.add_trip(target, user_id=user_id)

    async def fetch_collaborators(self) -> list[Collaborator]:
        """Resolve display names for the current trip's collaborators."""
        if self._trip is None:
            return []
        collaborators: list[Collaborator] = []
        for uid in self._trip.collaborators:
            document = await self._sync.remote.get_document(join_path("users", uid))
            name = document.data.get("name") if document is not None else None
            collaborators.append(Collaborator(uid=uid, name=name or uid))
        return collaborators

    # -- destination writes ----------------------------------------------

    async def add_destination(self, latitude: float, longitude: float, **fields: Any) -> str:
        trip_id = self.require_trip_id()
        payload = self._destination_payload({"latitude": latitude, "longitude": longitude, **fields})
        payload["createdByUid"] = self._users.require_user_id()
        payload["createdAt"] = SERVER_TIMESTAMP
        payload["updatedAt"] = SERVER_TIMESTAMP
        return await self._sync.remote.add_document(join_path("trips", trip_id, "destinations"), payload)

    async def update_destination(self, destination_id: str, **fields: Any) -> None:
        trip_id = self.require_trip_id()
        _require_id(destination_id, "destination id")
        payload = self._destination_payload(fields)
        payload["updatedAt"] = SERVER_TIMESTAMP
        await self._sync.remote.update_document(join_path("trips", trip_id, "destinations", destination_id), payload)

    async def delete_destination(self, destination_id: str) -> None:
        trip_id = self.require_trip_id()
        _require_id(destination_id, "destination id")
        await self._sync.remote.delete_document(join_path("trips", trip_id, "destinations", destination_id))

    @staticmethod
    def _destination_payload(fields: dict[str, Any]) -> dict[str, Any]:
        unknown = sorted(set(fields) - set(_DESTINATION_FIELDS))
        if unknown:
            raise TypeError(f"unknown destination field(s): {', '.join(unknown)}")
        payload: dict[str, Any] = {}
        for name, value in fields.items():
            if name == "date" and value is not None:
                value = _to_timestamp(value, "destination date")
            payload[_DESTINATION_FIELDS[name]] = value
        return payload

    # -- checklist writes ------------------------------------------------

    def _checklist_path(self, destination_id: str) -> str:
        trip_id = self.require_trip_id()
        _require_id(destination_id, "destination id")
        return join_path("trips", trip_id, "destinations", destination_id, "checklists")

    async def add_checklist_item(self, destination_id: str, text: str, *, completed: bool = False) -> str:
        return await self._sync.remote.add_document(
            self._checklist_path(destination_id),
            {"text": text, "completed": completed, "createdAt": SERVER_TIMESTAMP},
        )

    async def update_checklist_item(
        self, destination_id: str, item_id: str, *, text: str | None = None, completed: bool | None = None
    ) -> None:
        _require_id(item_id, "checklist item id")
        payload: dict[str, Any] = {}
        if text is not None:
            payload["text"] = text
        if completed is not None:
            payload["completed"] = completed
        if payload:
            await self._sync.remote.update_document(join_path(self._checklist_path(destination_id), item_id), payload)

    async def delete_checklist_item(self, destination_id: str, item_id: str) -> None:
        _require_id(item_id, "checklist item id")
        await self._sync.remote.delete_document(join_path(self._checklist_path(destination_id), item_id))
