"""Shared field coercions for remote document payloads."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import AfterValidator, BeforeValidator


def coerce_timestamp(value: Any) -> Any:
    """Convert an opaque server timestamp into an aware ``datetime``.

    Accepts ``datetime`` instances (naive values are treated as UTC), objects
    exposing ``timestamp()`` (e.g. Firestore ``DatetimeWithNanoseconds``),
    ``{"seconds": ..., "nanoseconds": ...}`` maps and epoch numbers. Anything
    else is handed to pydantic unchanged (ISO strings parse there).
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, dict) and "seconds" in value:
        seconds = float(value["seconds"]) + float(value.get("nanoseconds", 0)) / 1_000_000_000
        return datetime.fromtimestamp(seconds, tz=UTC)
    if isinstance(value, int | float) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=UTC)
    to_epoch = getattr(value, "timestamp", None)
    if callable(to_epoch):
        return datetime.fromtimestamp(to_epoch(), tz=UTC)
    return value


def _ensure_aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


Timestamp = Annotated[datetime, BeforeValidator(coerce_timestamp), AfterValidator(_ensure_aware)]
"""A ``datetime`` field that accepts any server timestamp representation."""
