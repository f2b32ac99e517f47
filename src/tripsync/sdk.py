"""SDK composition root for tripsync."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from types import TracebackType

from tripsync.core.auth import StaticAuthProvider
from tripsync.core.contracts.auth import AuthProvider
from tripsync.core.contracts.config import TripSyncConfig
from tripsync.core.contracts.exceptions import NotAuthenticatedError, RemoteUnavailableError
from tripsync.core.contracts.remote import RemoteStore
from tripsync.core.contracts.storage import KeyValueStore
from tripsync.core.ledger import LedgerEngine
from tripsync.core.overlay import FileKeyValueStore, LocalOverlayStore
from tripsync.core.progress import NullSyncProgress, SyncProgress
from tripsync.core.remote import create_remote_store
from tripsync.core.stores import BillTransactionStore, Store, TripStore, UserState, UserStore
from tripsync.core.stores.bills import SettlementCallback
from tripsync.core.sync import RemoteSyncManager

logger = logging.getLogger(__name__)


class TripSync:
    """tripsync SDK public API.

    Owns the remote client and every store. Use as an async context manager::

        async with TripSync.from_config(config) as client:
            await client.wait_until_synced()
            print(client.bills.balance_for())
    """

    def __init__(
        self,
        *,
        remote: RemoteStore,
        auth: AuthProvider,
        storage: KeyValueStore,
        config: TripSyncConfig | None = None,
        progress: SyncProgress | None = None,
        on_settlement: SettlementCallback | None = None,
    ) -> None:
        self._config = config or TripSyncConfig()
        self._remote = remote
        self._auth = auth
        self._progress = progress or NullSyncProgress()
        self._remote_open = False
        self.sync = RemoteSyncManager(remote)
        self.overlay = LocalOverlayStore(storage)
        self.ledger = LedgerEngine()
        self.users = UserStore(self.sync, auth)
        self.trips = TripStore(self.sync, self.users)
        self.bills = BillTransactionStore(
            self.sync, self.users, self.trips, self.overlay, self.ledger, on_settlement=on_settlement
        )

    @classmethod
    def from_config(
        cls,
        config: TripSyncConfig,
        *,
        auth: AuthProvider | None = None,
        progress: SyncProgress | None = None,
        on_settlement: SettlementCallback | None = None,
    ) -> TripSync:
        return cls(
            remote=create_remote_store(config),
            auth=auth or StaticAuthProvider(config.user_id),
            storage=FileKeyValueStore(config.overlay_dir),
            config=config,
            progress=progress,
            on_settlement=on_settlement,
        )

    @property
    def config(self) -> TripSyncConfig:
        return self._config

    @property
    def auth(self) -> AuthProvider:
        return self._auth

    @property
    def remote(self) -> RemoteStore:
        return self._remote

    async def start(self) -> None:
        """Open the remote client, then start the stores leaves first."""
        try:
            await self._remote.__aenter__()
            self._remote_open = True
            for store in (self.users, self.trips, self.bills):
                await store.start()
        except BaseException:
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop the stores in reverse order and close the remote client."""
        for store in (self.bills, self.trips, self.users):
            await store.stop()
        await self.sync.close()
        if self._remote_open:
            self._remote_open = False
            await self._remote.__aexit__(None, None, None)

    async def __aenter__(self) -> TripSync:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()

    async def wait_until_synced(self, timeout: float | None = None) -> None:
        """Wait for the first snapshots of the user, the trip and its bills.

        Raises:
            NotAuthenticatedError: If nobody is signed in.
            RemoteUnavailableError: If a phase times out or fails remotely.
            SnapshotParseError: If the user or trip document cannot be parsed.
        """
        if self.users.state is UserState.UNAUTHENTICATED:
            raise NotAuthenticatedError("no signed-in user")
        limit = timeout if timeout is not None else self._config.sync_timeout
        phases: list[tuple[str, Store, Callable[[], bool]]] = [
            ("User", self.users, lambda: self.users.loaded),
            ("Trip", self.trips, lambda: self.trips.loaded),
            ("Bills", self.bills, lambda: self.bills.loaded),
        ]
        for phase, store, is_ready in phases:
            self._progress.phase_start(phase, total=len(store.streams) or None)
            try:
                await self._wait_for(phase, store, is_ready, limit)
                error = getattr(store, "last_error", None)
                if error is not None:
                    raise error
            except BaseException as exc:
                self._progress.phase_error(phase, exc)
                raise
            self._progress.phase_done(phase)

    async def _wait_for(self, phase: str, store: Store, is_ready: Callable[[], bool], limit: float) -> None:
        """Wait until *is_ready* holds, reporting each stream of *store* as it loads."""
        changed = asyncio.Event()
        reported: set[str] = set()
        remove = store.add_listener(lambda _store: changed.set())
        try:
            async with asyncio.timeout(limit):
                while True:
                    for stream, ready in store.streams.items():
                        if ready and stream not in reported:
                            reported.add(stream)
                            self._progress.item_done(phase, stream)
                    if is_ready():
                        break
                    changed.clear()
                    await changed.wait()
        except TimeoutError as exc:
            raise RemoteUnavailableError(f"timed out after {limit:g}s waiting for {phase}") from exc
        finally:
            remove()
        logger.debug("%s synced (%s)", phase, ", ".join(sorted(reported)) or "nothing to load")
