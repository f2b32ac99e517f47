"""Shared CLI helpers."""

from __future__ import annotations

import argparse
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from tripsync.cli.progress.rich import RichSyncProgress

if TYPE_CHECKING:
    from tripsync.sdk import TripSync


def format_comma_or_none(values: list[str]) -> str:
    if not values:
        return "none"
    return ", ".join(values)


@asynccontextmanager
async def synced_client(args: argparse.Namespace) -> AsyncIterator[TripSync]:
    """Open a client from ``args.config`` and wait for its first snapshots."""
    import tripsync.cli as cli

    config = cli.load_config(args.config)
    progress = None if args.verbose else RichSyncProgress()
    async with cli.TripSync.from_config(config, progress=progress) as client:
        if progress is None:
            await client.wait_until_synced()
        else:
            with progress:
                await client.wait_until_synced()
        yield client
