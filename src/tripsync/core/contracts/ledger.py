"""Bill, transaction and balance contracts."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from tripsync.core.contracts.fields import Timestamp

Summary = dict[str, dict[str, float]]
"""Settlement summary: debtor uid → creditor uid → amount."""


class DistributionMode(StrEnum):
    EVEN = "even"
    CUSTOM = "custom"


class Bill(BaseModel):
    """A shared expense (``trips/{id}/bills/{billId}``).

    ``archived`` is derived from the local archive overlay. The remote value is
    ignored on parse and :meth:`to_remote` never writes it back.
    """

    id: str
    title: str
    participants: list[str]
    currency: str = "USD"
    distribution_mode: DistributionMode = Field(default=DistributionMode.EVEN, alias="distributionMode")
    summary: Summary = Field(default_factory=dict)
    archived: bool = False
    is_draft: bool = Field(default=False, alias="isDraft")
    created_by: str | None = Field(default=None, alias="createdBy")
    description: str = ""
    category: str = ""

    model_config = {"populate_by_name": True}

    @field_validator("currency", mode="before")
    @classmethod
    def _default_currency(cls, value: object) -> object:
        return value or "USD"

    @field_validator("summary", mode="before")
    @classmethod
    def _empty_summary(cls, value: object) -> object:
        return value or {}

    @field_validator("description", "category", mode="before")
    @classmethod
    def _blank_text(cls, value: object) -> object:
        return value or ""

    def to_remote(self) -> dict[str, Any]:
        """Serialize the remote-owned fields (never ``id`` or ``archived``)."""
        return self.model_dump(mode="json", by_alias=True, exclude={"id", "archived"})


class Transaction(BaseModel):
    """A manually recorded payment (``trips/{id}/transactions/{transactionId}``)."""

    transaction_id: str = Field(alias="transactionId")
    debtor: str
    creditor: str
    amount: float
    currency: str = "USD"
    description: str = ""
    created_at: Timestamp | None = Field(default=None, alias="createdAt")

    model_config = {"populate_by_name": True}


class Balance(BaseModel):
    """Per-trip aggregation for one viewpoint user."""

    user_id: str
    owes_others: float = 0.0
    others_owe_me: float = 0.0

    @property
    def net(self) -> float:
        """Positive when the user is owed more than they owe."""
        return self.others_owe_me - self.owes_others
