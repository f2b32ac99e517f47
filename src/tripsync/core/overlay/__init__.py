"""Core overlay-domain exports."""

from tripsync.core.overlay.kv import FileKeyValueStore, MemoryKeyValueStore
from tripsync.core.overlay.store import LocalOverlayStore, overlay_key

__all__ = ["FileKeyValueStore", "LocalOverlayStore", "MemoryKeyValueStore", "overlay_key"]
