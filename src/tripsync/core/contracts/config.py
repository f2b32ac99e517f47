"""Application-level configuration.

:class:`TripSyncConfig` is loaded from a ``tripsync.json`` file and carries
every setting the composition root needs to build the remote client, the
local overlay store and the auth collaborator.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field


class TripSyncConfig(BaseModel):
    """Top-level configuration.

    Attributes:
        backend: Remote store implementation ("memory" or "firestore").
        project_id: Cloud project for the firestore backend. Falls back to the
            client library's environment discovery when omitted.
        overlay_dir: Directory holding the local archive overlay.
        user_id: Identity used by the static auth collaborator (CLI use).
        sync_timeout: Seconds to wait for first snapshots before giving up.
    """

    backend: Literal["memory", "firestore"] = "memory"
    project_id: str | None = None
    overlay_dir: Path = Path(".tripsync/overlay")
    user_id: str | None = None
    sync_timeout: float = Field(default=10.0, gt=0)

    model_config = {"populate_by_name": True}
