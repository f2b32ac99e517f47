"""Device-local archive overlay.

Archiving a bill is a private, per-device preference: it is persisted in the
local key-value store under ``archivedBills_{tripId}`` and merged onto remote
bills at render time. It never reaches the remote store.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable

from pydantic import TypeAdapter, ValidationError

from tripsync.core.contracts.exceptions import InvalidParentError, LocalStoreCorruptError, LocalStoreError
from tripsync.core.contracts.storage import KeyValueStore

logger = logging.getLogger(__name__)

_BILL_IDS = TypeAdapter(list[str])


def overlay_key(trip_id: str) -> str:
    return f"archivedBills_{trip_id}"


def _require(value: str, what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidParentError(f"{what} is empty")
    return value


def _decode(key: str, payload: str) -> set[str]:
    try:
        return set(_BILL_IDS.validate_json(payload))
    except ValidationError as exc:
        raise LocalStoreCorruptError(f"overlay payload under {key!r} is not a list of bill ids") from exc


class LocalOverlayStore:
    """Reads and writes the archived-bill id set for each trip."""

    def __init__(self, storage: KeyValueStore) -> None:
        self._storage = storage

    async def load(self, trip_id: str) -> set[str]:
        """Return the archived ids for *trip_id*.

        A missing, unreadable or corrupt payload yields an empty set.
        """
        try:
            return await self._read(trip_id)
        except LocalStoreError as exc:
            logger.warning("archive overlay for trip %s is unreadable: %s", trip_id, exc)
            return set()

    async def save(self, trip_id: str, bill_ids: Iterable[str]) -> None:
        """Persist *bill_ids* as a sorted JSON array.

        Raises:
            LocalStoreError: If the underlying store rejects the write.
        """
        key = overlay_key(_require(trip_id, "trip id"))
        await self._storage.set_item(key, json.dumps(sorted(set(bill_ids))))

    async def archive(self, trip_id: str, bill_id: str) -> set[str]:
        """Add *bill_id* to the stored set.

        Raises:
            LocalStoreError: If the stored set cannot be read or written; the
                stored set is left as it was.
        """
        _require(bill_id, "bill id")
        archived = await self._read(trip_id)
        archived.add(bill_id)
        await self.save(trip_id, archived)
        return archived

    async def restore(self, trip_id: str, bill_id: str) -> set[str]:
        _require(bill_id, "bill id")
        archived = await self._read(trip_id)
        archived.discard(bill_id)
        await self.save(trip_id, archived)
        return archived

    async def _read(self, trip_id: str) -> set[str]:
        """Read the stored set; only a corrupt payload degrades to empty."""
        key = overlay_key(_require(trip_id, "trip id"))
        payload = await self._storage.get_item(key)
        if payload is None:
            return set()
        try:
            return _decode(key, payload)
        except LocalStoreCorruptError as exc:
            logger.warning("discarding archive overlay for trip %s: %s", trip_id, exc)
            return set()
