"""Trip, destination and checklist contracts."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field, field_validator, model_validator

from tripsync.core.contracts.fields import Timestamp


class TripStatus(StrEnum):
    PLANNING = "planning"
    ONGOING = "ongoing"
    COMPLETED = "completed"


class Destination(BaseModel):
    """A stop on the itinerary (``trips/{id}/destinations/{destId}``)."""

    id: str
    latitude: float
    longitude: float
    name: str | None = None
    address: str | None = None
    description: str | None = None
    place_id: str | None = None
    date: Timestamp | None = None
    """Scheduled visit time; ``None`` means unscheduled."""
    created_by_uid: str | None = Field(default=None, alias="createdByUid")

    model_config = {"populate_by_name": True}

    @property
    def scheduled(self) -> bool:
        return self.date is not None


class ChecklistItem(BaseModel):
    """A to-do entry attached to one destination."""

    id: str
    text: str
    completed: bool = False
    created_at: Timestamp | None = Field(default=None, alias="createdAt")

    model_config = {"populate_by_name": True}


class TripSummary(BaseModel):
    """Derived figures shown next to a trip."""

    destination_count: int
    scheduled_count: int
    unscheduled_count: int
    collaborator_count: int
    duration_days: int


class Trip(BaseModel):
    """A trip jointly owned by its collaborators (``trips/{id}``).

    ``destinations`` is owned by the destinations subscription and every other
    field by the trip-document subscription; see :class:`TripStore`.
    """

    id: str
    title: str
    start_date: Timestamp = Field(alias="startDate")
    end_date: Timestamp = Field(alias="endDate")
    status: TripStatus = TripStatus.PLANNING
    owner_id: str | None = Field(default=None, alias="ownerId")
    collaborators: list[str] = Field(default_factory=list)
    destinations: list[Destination] = Field(default_factory=list)
    created_at: Timestamp | None = Field(default=None, alias="createdAt")
    updated_at: Timestamp | None = Field(default=None, alias="updatedAt")

    model_config = {"populate_by_name": True}

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("collaborators", mode="after")
    @classmethod
    def _dedupe_collaborators(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))

    @model_validator(mode="after")
    def _check_date_order(self) -> Trip:
        if self.start_date > self.end_date:
            raise ValueError("startDate must not be after endDate")
        return self

    @property
    def summary(self) -> TripSummary:
        scheduled = sum(1 for destination in self.destinations if destination.scheduled)
        return TripSummary(
            destination_count=len(self.destinations),
            scheduled_count=scheduled,
            unscheduled_count=len(self.destinations) - scheduled,
            collaborator_count=len(self.collaborators),
            duration_days=(self.end_date.date() - self.start_date.date()).days + 1,
        )
