"""Tests for TripStore."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from tripsync.core.auth import StaticAuthProvider
from tripsync.core.contracts.exceptions import (
    InvalidParentError,
    OrphanTripError,
    RemoteUnavailableError,
    TripValidationError,
)
from tripsync.core.contracts.trip import TripStatus
from tripsync.core.contracts.user import Collaborator
from tripsync.core.remote import MemoryRemoteStore
from tripsync.core.stores import TripState, TripStore, UserStore
from tripsync.core.sync import RemoteSyncManager
from tests.fakes.remote import GatedRemoteStore
from tests.fakes.timing import eventually, settle
from tests.fakes.world import NOW

CHECKLIST_D1 = "trips/t1/destinations/d1/checklists"


def _stores(remote: MemoryRemoteStore, user_id: str | None = "u1") -> tuple[UserStore, TripStore, list[str | None]]:
    sync = RemoteSyncManager(remote)
    users = UserStore(sync, StaticAuthProvider(user_id))
    trips = TripStore(sync, users)
    changes: list[str | None] = []
    trips.on_trip_change(changes.append)
    return users, trips, changes


async def _until_active(trips: TripStore) -> None:
    await eventually(lambda: trips.state is TripState.ACTIVE and trips.loaded)


@pytest.mark.asyncio
async def test_follows_the_current_trip(remote: MemoryRemoteStore) -> None:
    users, trips, changes = _stores(remote)

    async with users, trips:
        await _until_active(trips)
        await eventually(lambda: bool(trips.checklist("d1")))

        assert trips.trip_id == "t1"
        assert trips.trip is not None
        assert trips.trip.title == "Lisbon"
        assert [destination.id for destination in trips.trip.destinations] == ["d1"]
        assert [item.text for item in trips.checklist("d1")] == ["Tickets"]
        assert trips.trip.summary.scheduled_count == 1
        assert changes == ["t1"]
        assert remote.watched_paths == ["users/u1", "trips/t1", "trips/t1/destinations", CHECKLIST_D1]


@pytest.mark.asyncio
async def test_switching_trips_releases_the_old_subscriptions(remote: MemoryRemoteStore) -> None:
    users, trips, changes = _stores(remote)

    async with users, trips:
        await _until_active(trips)
        await users.set_current_trip("t2")

        await eventually(lambda: trips.trip is not None and trips.trip.title == "Porto")
        assert trips.trip is not None
        assert trips.trip.destinations == []
        assert trips.checklists == {}
        assert changes == ["t1", "t2"]
        assert remote.watched_paths == ["users/u1", "trips/t2", "trips/t2/destinations"]


@pytest.mark.asyncio
async def test_deleted_trip_drops_pending_destinations(remote: MemoryRemoteStore) -> None:
    users, trips, changes = _stores(remote)

    async with users, trips:
        await _until_active(trips)
        remote.hold_deliveries()
        remote.put("trips/t1/destinations/d2", {"latitude": 41.1, "longitude": -8.6, "name": "Sintra"})
        await remote.delete_document("trips/t1")

        remote.release_deliveries("trips/t1")
        await eventually(lambda: trips.state is TripState.NO_TRIP)
        remote.resume_deliveries()
        await settle()

        assert trips.trip is None
        assert trips.trip_id is None
        assert trips.checklists == {}
        assert trips.state is TripState.NO_TRIP
        assert changes == ["t1", None]
        assert remote.watched_paths == ["users/u1"]


@pytest.mark.asyncio
async def test_trip_waits_for_its_own_snapshot(remote: MemoryRemoteStore) -> None:
    users, trips, _ = _stores(remote)
    remote.hold_deliveries()

    async with users, trips:
        remote.release_deliveries("users/u1")
        await eventually(lambda: trips.state is TripState.LOADING)
        remote.release_deliveries("trips/t1/destinations")
        await settle()

        assert trips.trip is None
        assert trips.state is TripState.LOADING
        assert not trips.loaded

        remote.release_deliveries("trips/t1")
        await _until_active(trips)
        assert trips.trip is not None
        assert [destination.id for destination in trips.trip.destinations] == ["d1"]
        remote.resume_deliveries()


@pytest.mark.asyncio
async def test_snapshots_own_disjoint_fields(remote: MemoryRemoteStore) -> None:
    users, trips, _ = _stores(remote)

    async with users, trips:
        await _until_active(trips)
        await trips.update_trip(title="Lisboa", status="ongoing")
        await eventually(lambda: trips.trip is not None and trips.trip.title == "Lisboa")

        assert trips.trip is not None
        assert trips.trip.status is TripStatus.ONGOING
        assert [destination.id for destination in trips.trip.destinations] == ["d1"]

        await trips.add_destination(41.1, -8.6, name="Sintra")
        await eventually(lambda: trips.trip is not None and len(trips.trip.destinations) == 2)
        assert trips.trip.title == "Lisboa"


@pytest.mark.asyncio
async def test_checklists_follow_destinations(remote: MemoryRemoteStore) -> None:
    users, trips, _ = _stores(remote)

    async with users, trips:
        await _until_active(trips)
        destination_id = await trips.add_destination(41.1, -8.6, name="Sintra", place_id="abc")
        checklist_path = f"trips/t1/destinations/{destination_id}/checklists"
        await eventually(lambda: checklist_path in remote.watched_paths)

        item_id = await trips.add_checklist_item(destination_id, "Pack water")
        await eventually(lambda: [item.text for item in trips.checklist(destination_id)] == ["Pack water"])
        await trips.update_checklist_item(destination_id, item_id, completed=True)
        await eventually(lambda: trips.checklist(destination_id)[0].completed)

        await trips.delete_destination(destination_id)
        await eventually(lambda: checklist_path not in remote.watched_paths)
        assert destination_id not in trips.checklists

    document = remote.document(f"trips/t1/destinations/{destination_id}")
    assert document is None
    added = next(operation for operation in remote.operations if operation.name == "add_document")
    assert added.payload["createdByUid"] == "u1"
    assert added.payload["place_id"] == "abc"


@pytest.mark.asyncio
async def test_create_trip_links_it_to_the_owner(remote: MemoryRemoteStore) -> None:
    users, trips, _ = _stores(remote)

    async with users, trips:
        await _until_active(trips)
        trip_id = await trips.create_trip("Rome", "2024-06-01", datetime(2024, 6, 5, tzinfo=UTC))

        await eventually(lambda: trips.trip is not None and trips.trip.id == trip_id)
        assert trips.trip is not None
        assert trips.trip.title == "Rome"
        assert trips.trip.collaborators == ["u1"]
        assert trips.trip.owner_id == "u1"
        assert trips.trip.created_at == NOW

    user = remote.document("users/u1")
    assert user is not None
    assert user["currentTripId"] == trip_id
    assert user["tripsIdList"] == ["t1", "t2", trip_id]


@pytest.mark.asyncio
async def test_create_trip_reports_an_orphan_and_link_retries(remote: MemoryRemoteStore) -> None:
    users, trips, _ = _stores(remote)
    remote.fail_next_write(path="users/u1")

    async with users, trips:
        with pytest.raises(OrphanTripError) as exc_info:
            await trips.create_trip("Rome", "2024-06-01", "2024-06-05")

        trip_id = exc_info.value.trip_id
        assert remote.document(f"trips/{trip_id}") is not None
        assert remote.document("users/u1")["tripsIdList"] == ["t1", "t2"]  # type: ignore[index]

        await trips.link_trip(trip_id)
        await trips.link_trip(trip_id)

    user = remote.document("users/u1")
    assert user is not None
    assert user["tripsIdList"] == ["t1", "t2", trip_id]
    assert user["currentTripId"] == trip_id


@pytest.mark.parametrize(
    ("start", "end", "status"),
    [
        ("2024-06-05", "2024-06-01", "planning"),
        ("not a date", "2024-06-01", "planning"),
        ("2024-06-01", "2024-06-05", "cancelled"),
    ],
)
@pytest.mark.asyncio
async def test_create_trip_validation(remote: MemoryRemoteStore, start: str, end: str, status: str) -> None:
    users, trips, _ = _stores(remote)

    async with users, trips:
        with pytest.raises(TripValidationError):
            await trips.create_trip("Rome", start, end, status=status)

    assert remote.operations == ()


@pytest.mark.asyncio
async def test_update_trip_checks_dates_against_the_known_trip(remote: MemoryRemoteStore) -> None:
    users, trips, _ = _stores(remote)

    async with users, trips:
        await _until_active(trips)
        with pytest.raises(TripValidationError):
            await trips.update_trip(start_date="2024-06-01")
        with pytest.raises(TypeError, match="unknown trip field"):
            await trips.update_trip(notes="x")

    assert remote.operations == ()


@pytest.mark.asyncio
async def test_collaborators(remote: MemoryRemoteStore) -> None:
    users, trips, _ = _stores(remote)

    async with users, trips:
        await _until_active(trips)
        await trips.add_collaborator("u3")
        await eventually(lambda: trips.trip is not None and "u3" in trips.trip.collaborators)

        collaborators = await trips.fetch_collaborators()

    assert collaborators == [
        Collaborator(uid="u1", name="Ann"),
        Collaborator(uid="u2", name="Ben"),
        Collaborator(uid="u3", name="u3"),
    ]
    assert remote.document("users/u3") == {"tripsIdList": ["t1"]}


@pytest.mark.asyncio
async def test_user_without_a_trip(remote: MemoryRemoteStore) -> None:
    remote.put("users/u3", {"name": "Cy"})
    users, trips, changes = _stores(remote, "u3")

    async with users, trips:
        await eventually(lambda: users.loaded)
        await settle()

        assert trips.state is TripState.NO_TRIP
        assert trips.loaded
        assert changes == []
        with pytest.raises(InvalidParentError, match="no current trip"):
            await trips.add_destination(1.0, 2.0)


@pytest.mark.asyncio
async def test_remote_failure_keeps_the_last_good_trip(remote: MemoryRemoteStore) -> None:
    users, trips, _ = _stores(remote)

    async with users, trips:
        await _until_active(trips)
        remote.break_watches("trips/t1")

        await eventually(lambda: trips.last_error is not None)
        assert isinstance(trips.last_error, RemoteUnavailableError)
        assert trips.state is TripState.ACTIVE
        assert trips.trip is not None
        assert trips.trip.title == "Lisbon"


@pytest.mark.asyncio
async def test_logout_releases_every_trip_subscription(remote: MemoryRemoteStore) -> None:
    users, trips, changes = _stores(remote)

    async with users, trips:
        await _until_active(trips)
        await users.logout()

        assert trips.state is TripState.NO_TRIP
        assert trips.trip is None
        assert remote.watched_paths == []
        assert changes == ["t1", None]


@pytest.mark.asyncio
async def test_stop_releases_everything(remote: MemoryRemoteStore) -> None:
    users, trips, _ = _stores(remote)

    async with users, trips:
        await _until_active(trips)

    assert remote.watch_count == 0
    assert trips.state is TripState.NO_TRIP


@pytest.mark.asyncio
async def test_trip_deleted_while_destinations_are_opening(gated_remote: GatedRemoteStore) -> None:
    gated_remote.put("users/u1", {"name": "Ann", "currentTripId": "ghost"})
    gated_remote.gate("trips/ghost/destinations")
    sync = RemoteSyncManager(gated_remote)
    users = UserStore(sync, StaticAuthProvider("u1"))
    trips = TripStore(sync, users)

    async with users, trips:
        await eventually(lambda: gated_remote.opening == ["trips/ghost/destinations"])
        await eventually(lambda: "trips/ghost" not in gated_remote.watched_paths)
        gated_remote.open_gate("trips/ghost/destinations")
        await settle()

        assert trips.state is TripState.NO_TRIP
        assert trips.trip is None
        assert gated_remote.watched_paths == ["users/u1"]
        assert sync.active_count == 1


@pytest.mark.asyncio
async def test_switching_trips_while_a_checklist_is_opening(gated_remote: GatedRemoteStore) -> None:
    gated_remote.gate(CHECKLIST_D1)
    sync = RemoteSyncManager(gated_remote)
    users = UserStore(sync, StaticAuthProvider("u1"))
    trips = TripStore(sync, users)

    async with users, trips:
        await eventually(lambda: gated_remote.opening == [CHECKLIST_D1])
        await users.set_current_trip("t2")
        await eventually(lambda: trips.trip is not None and trips.trip.title == "Porto")
        gated_remote.open_gate(CHECKLIST_D1)
        await settle()

        assert trips.checklists == {}
        assert gated_remote.watched_paths == ["users/u1", "trips/t2", "trips/t2/destinations"]
        assert sync.active_count == 3
