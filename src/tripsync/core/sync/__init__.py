"""Core sync-domain exports."""

from tripsync.core.sync.manager import ChangeCallback, RemoteSyncManager, SubscriptionHandle
from tripsync.core.sync.parsing import EntityType, entity_path, parse_entity

__all__ = [
    "ChangeCallback",
    "EntityType",
    "RemoteSyncManager",
    "SubscriptionHandle",
    "entity_path",
    "parse_entity",
]
