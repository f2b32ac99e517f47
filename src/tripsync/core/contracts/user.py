"""User contracts."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class User(BaseModel):
    """The authoritative record for one signed-in actor (``users/{uid}``)."""

    uid: str
    email: str | None = None
    name: str | None = None
    bio: str | None = None
    travel_preference: str | None = Field(default=None, alias="travelPreference")
    current_trip_id: str | None = Field(default=None, alias="currentTripId")
    trips_id_list: list[str] = Field(default_factory=list, alias="tripsIdList")
    """Ids of every trip the user collaborates on (set semantics)."""
    paypal_email: str | None = Field(default=None, alias="paypalEmail")

    model_config = {"populate_by_name": True}

    @field_validator("current_trip_id", mode="before")
    @classmethod
    def _blank_trip_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("trips_id_list", mode="after")
    @classmethod
    def _dedupe_trip_ids(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))


class Collaborator(BaseModel):
    """Display projection of a user granted access to a trip."""

    uid: str
    name: str | None = None
