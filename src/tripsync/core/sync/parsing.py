"""Entity routing and payload parsing at the subscription boundary.

Every remote payload is validated here into a pydantic entity. Internal code
never touches the raw field maps.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ValidationError

from tripsync.core.contracts.exceptions import InvalidParentError, SnapshotParseError
from tripsync.core.contracts.ledger import Bill, Transaction
from tripsync.core.contracts.remote import RemoteDocument, join_path
from tripsync.core.contracts.result import Err, Ok
from tripsync.core.contracts.trip import ChecklistItem, Destination, Trip
from tripsync.core.contracts.user import User

logger = logging.getLogger(__name__)

ParentKey = str | tuple[str, ...]


class EntityType(StrEnum):
    """Watchable remote entities, named after their collection."""

    USER = "users"
    TRIP = "trips"
    DESTINATIONS = "destinations"
    BILLS = "bills"
    TRANSACTIONS = "transactions"
    CHECKLISTS = "checklists"


@dataclass(frozen=True)
class _EntityRoute:
    model: type[BaseModel]
    id_field: str
    is_collection: bool
    key_parts: int
    build_path: Callable[[tuple[str, ...]], str]
    ignored_fields: frozenset[str] = frozenset()


_ROUTES: dict[EntityType, _EntityRoute] = {
    EntityType.USER: _EntityRoute(User, "uid", False, 1, lambda k: join_path("users", k[0])),
    EntityType.TRIP: _EntityRoute(Trip, "id", False, 1, lambda k: join_path("trips", k[0])),
    EntityType.DESTINATIONS: _EntityRoute(
        Destination, "id", True, 1, lambda k: join_path("trips", k[0], "destinations")
    ),
    EntityType.BILLS: _EntityRoute(
        Bill,
        "id",
        True,
        1,
        lambda k: join_path("trips", k[0], "bills"),
        ignored_fields=frozenset({"archived"}),
    ),
    EntityType.TRANSACTIONS: _EntityRoute(
        Transaction, "transactionId", True, 1, lambda k: join_path("trips", k[0], "transactions")
    ),
    EntityType.CHECKLISTS: _EntityRoute(
        ChecklistItem,
        "id",
        True,
        2,
        lambda k: join_path("trips", k[0], "destinations", k[1], "checklists"),
    ),
}


def is_collection(entity_type: EntityType) -> bool:
    return _ROUTES[entity_type].is_collection


def normalize_parent_key(entity_type: EntityType, parent_key: ParentKey | None) -> tuple[str, ...]:
    """Validate *parent_key* for *entity_type* and return it as a tuple.

    Raises:
        InvalidParentError: If the key is missing, empty, or has the wrong arity.
    """
    route = _ROUTES[entity_type]
    if parent_key is None:
        raise InvalidParentError(f"missing parent key for {entity_type.value}")
    parts = (parent_key,) if isinstance(parent_key, str) else tuple(parent_key)
    if len(parts) != route.key_parts:
        raise InvalidParentError(
            f"{entity_type.value} expects {route.key_parts} parent key part(s), got {len(parts)}"
        )
    if any(not isinstance(part, str) or not part.strip() for part in parts):
        raise InvalidParentError(f"empty parent key for {entity_type.value}: {parts!r}")
    return parts


def entity_path(entity_type: EntityType, parent_key: ParentKey) -> str:
    parts = normalize_parent_key(entity_type, parent_key)
    return _ROUTES[entity_type].build_path(parts)


def _format_errors(exc: ValidationError) -> list[str]:
    return [f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}" for error in exc.errors()]


def parse_entity(entity_type: EntityType, document: RemoteDocument, *, path: str) -> Any:
    """Validate one document into its entity model.

    Raises:
        SnapshotParseError: If the payload does not satisfy the model.
    """
    route = _ROUTES[entity_type]
    payload = {key: value for key, value in document.data.items() if key not in route.ignored_fields}
    payload[route.id_field] = document.id
    try:
        return route.model.model_validate(payload)
    except ValidationError as exc:
        raise SnapshotParseError(join_path(path, document.id), _format_errors(exc)) from exc


def parse_document_snapshot(entity_type: EntityType, document: RemoteDocument | None, *, path: str) -> Ok[Any] | Err:
    """Parse a document snapshot; ``None`` (deleted) yields ``Ok(None)``."""
    if document is None:
        return Ok(None)
    try:
        return Ok(parse_entity(entity_type, document, path=path.rsplit("/", 1)[0]))
    except SnapshotParseError as exc:
        return Err(exc)


def parse_collection_snapshot(entity_type: EntityType, documents: list[RemoteDocument], *, path: str) -> Ok[list[Any]]:
    """Parse a collection snapshot, dropping documents that fail validation."""
    entities: list[Any] = []
    for document in documents:
        try:
            entities.append(parse_entity(entity_type, document, path=path))
        except SnapshotParseError as exc:
            logger.warning("dropping invalid %s document: %s", entity_type.value, exc)
    return Ok(entities)
