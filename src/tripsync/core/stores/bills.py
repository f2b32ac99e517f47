"""Bills and transactions of the current trip.

Bills are rendered as the last remote snapshot with the device-local archive
overlay merged on top: ``bill.archived`` is true exactly when the bill id is
in the overlay for the trip. Archiving and restoring never touch the remote
store and re-render immediately.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from tripsync.core.contracts.exceptions import (
    InvalidParentError,
    RemoteUnavailableError,
    SnapshotParseError,
    TripValidationError,
)
from tripsync.core.contracts.ledger import Balance, Bill, DistributionMode, Summary, Transaction
from tripsync.core.contracts.remote import SERVER_TIMESTAMP, join_path
from tripsync.core.contracts.result import Err, Ok
from tripsync.core.ledger.engine import LedgerEngine, parse_amount
from tripsync.core.overlay.store import LocalOverlayStore
from tripsync.core.stores.base import Store
from tripsync.core.stores.trip import TripStore
from tripsync.core.stores.user import UserStore
from tripsync.core.sync.manager import RemoteSyncManager, SubscriptionHandle
from tripsync.core.sync.parsing import EntityType

logger = logging.getLogger(__name__)

SettlementCallback = Callable[[Transaction], object]

_BILL_FIELDS = {
    "title": "title",
    "participants": "participants",
    "currency": "currency",
    "distribution_mode": "distributionMode",
    "summary": "summary",
    "is_draft": "isDraft",
    "description": "description",
    "category": "category",
}

_TRANSACTION_FIELDS = {
    "debtor": "debtor",
    "creditor": "creditor",
    "amount": "amount",
    "currency": "currency",
    "description": "description",
}


@dataclass(eq=False)
class _BillSession:
    trip_id: str
    archived: set[str] = field(default_factory=set)
    remote_bills: list[Bill] = field(default_factory=list)
    bills_loaded: bool = False
    transactions_loaded: bool = False
    bills_handle: SubscriptionHandle | None = None
    transactions_handle: SubscriptionHandle | None = None
    closed: bool = False


def _require_id(value: str | None, what: str) -> str:
    if not value or not value.strip():
        raise InvalidParentError(f"{what} is empty")
    return value


def _require_amount(value: object) -> float:
    amount = parse_amount(value)
    if amount is None or amount <= 0:
        raise TripValidationError(f"amount must be a positive number, got {value!r}")
    return amount


def _mapped(fields: Mapping[str, Any], names: Mapping[str, str], what: str) -> dict[str, Any]:
    unknown = sorted(set(fields) - set(names))
    if unknown:
        raise TypeError(f"unknown {what} field(s): {', '.join(unknown)}")
    return {names[name]: value for name, value in fields.items()}


class BillTransactionStore(Store):
    """Tracks bills and transactions for :attr:`TripStore.trip_id`.

    On each trip activation it loads the overlay, then subscribes bills, then
    transactions. A trip change or logout releases both subscriptions.
    """

    def __init__(
        self,
        sync: RemoteSyncManager,
        users: UserStore,
        trips: TripStore,
        overlay: LocalOverlayStore,
        ledger: LedgerEngine | None = None,
        *,
        on_settlement: SettlementCallback | None = None,
    ) -> None:
        super().__init__()
        self._sync = sync
        self._users = users
        self._trips = trips
        self._overlay = overlay
        self._ledger = ledger or LedgerEngine()
        self._on_settlement = on_settlement
        self._session: _BillSession | None = None
        self._bills: list[Bill] = []
        self._transactions: list[Transaction] = []
        self._last_error: RemoteUnavailableError | SnapshotParseError | None = None
        self._remove_trip_listener: Callable[[], None] | None = None

    @property
    def trip_id(self) -> str | None:
        return self._session.trip_id if self._session is not None else None

    @property
    def bills(self) -> list[Bill]:
        return list(self._bills)

    @property
    def active_bills(self) -> list[Bill]:
        return [bill for bill in self._bills if not bill.archived]

    @property
    def archived_bills(self) -> list[Bill]:
        return [bill for bill in self._bills if bill.archived]

    @property
    def archived_ids(self) -> frozenset[str]:
        return frozenset(self._session.archived) if self._session is not None else frozenset()

    @property
    def transactions(self) -> list[Transaction]:
        return list(self._transactions)

    @property
    def loaded(self) -> bool:
        session = self._session
        if session is None:
            return True
        return (session.bills_loaded and session.transactions_loaded) or self._last_error is not None

    @property
    def streams(self) -> dict[str, bool]:
        session = self._session
        if session is None:
            return {}
        return {"bills": session.bills_loaded, "transactions": session.transactions_loaded}

    @property
    def last_error(self) -> RemoteUnavailableError | SnapshotParseError | None:
        return self._last_error

    @property
    def ledger(self) -> LedgerEngine:
        return self._ledger

    def bill(self, bill_id: str) -> Bill | None:
        return next((bill for bill in self._bills if bill.id == bill_id), None)

    def balance_for(self, user_id: str | None = None) -> Balance:
        """Aggregate every bill of the trip, archived and draft included."""
        uid = user_id or self._users.require_user_id()
        return self._ledger.aggregate(self._bills, uid)

    def require_trip_id(self) -> str:
        trip_id = self.trip_id
        if trip_id is None:
            raise InvalidParentError("no current trip")
        return trip_id

    # -- lifecycle -------------------------------------------------------

    async def _start(self) -> None:
        self._remove_trip_listener = self._trips.on_trip_change(self._on_trip_change)
        await self._on_trip_change(self._trips.trip_id)

    async def _stop(self) -> None:
        if self._remove_trip_listener is not None:
            self._remove_trip_listener()
            self._remove_trip_listener = None
        await self._release()

    async def _on_trip_change(self, trip_id: str | None) -> None:
        if trip_id is not None and trip_id == self.trip_id:
            return
        await self._release()
        if trip_id is not None:
            await self._activate(trip_id)
        await self._notify()

    async def _activate(self, trip_id: str) -> None:
        session = self._session = _BillSession(trip_id=trip_id)
        archived = await self._overlay.load(trip_id)
        if session is not self._session:
            return
        session.archived = archived
        try:
            handle = await self._sync.subscribe(
                EntityType.BILLS, trip_id, lambda result: self._on_bills(session, result)
            )
            if not await self._keep(session, handle):
                return
            session.bills_handle = handle
            handle = await self._sync.subscribe(
                EntityType.TRANSACTIONS, trip_id, lambda result: self._on_transactions(session, result)
            )
            if not await self._keep(session, handle):
                return
            session.transactions_handle = handle
        except BaseException:
            if self._is_current(session):
                await self._release()
            raise
        logger.debug("bill store active for %s (%d archived)", trip_id, len(archived))

    async def _keep(self, session: _BillSession, handle: SubscriptionHandle) -> bool:
        """Unsubscribe *handle* if *session* was released while it was opening."""
        if self._is_current(session):
            return True
        await self._sync.unsubscribe(handle)
        logger.debug("bill store dropped late subscription %s", handle.path)
        return False

    async def _release(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            session.closed = True
            await self._sync.unsubscribe(session.bills_handle)
            await self._sync.unsubscribe(session.transactions_handle)
            logger.debug("bill store released %s", session.trip_id)
        self._bills = []
        self._transactions = []
        self._last_error = None

    def _is_current(self, session: _BillSession) -> bool:
        return not session.closed and session is self._session

    def _render(self, session: _BillSession) -> None:
        self._bills = [
            bill.model_copy(update={"archived": bill.id in session.archived}) for bill in session.remote_bills
        ]

    async def _on_bills(self, session: _BillSession, result: Ok[Any] | Err) -> None:
        if not self._is_current(session):
            return
        if isinstance(result, Err):
            self._last_error = result.error
            logger.warning("bills of %s failed: %s", session.trip_id, result.error)
        else:
            session.bills_loaded = True
            self._last_error = None
            session.remote_bills = result.value
            self._render(session)
        await self._notify()

    async def _on_transactions(self, session: _BillSession, result: Ok[Any] | Err) -> None:
        if not self._is_current(session):
            return
        if isinstance(result, Err):
            self._last_error = result.error
            logger.warning("transactions of %s failed: %s", session.trip_id, result.error)
        else:
            session.transactions_loaded = True
            self._last_error = None
            self._transactions = result.value
        await self._notify()

    # -- archive overlay -------------------------------------------------

    async def archive(self, bill_id: str) -> None:
        """Hide *bill_id* on this device; the remote bill is untouched."""
        session = self._require_session()
        archived = await self._overlay.archive(session.trip_id, _require_id(bill_id, "bill id"))
        await self._apply_overlay(session, archived)

    async def restore(self, bill_id: str) -> None:
        session = self._require_session()
        archived = await self._overlay.restore(session.trip_id, _require_id(bill_id, "bill id"))
        await self._apply_overlay(session, archived)

    def _require_session(self) -> _BillSession:
        session = self._session
        if session is None:
            raise InvalidParentError("no current trip")
        return session

    async def _apply_overlay(self, session: _BillSession, archived: set[str]) -> None:
        if not self._is_current(session):
            return
        session.archived = archived
        self._render(session)
        await self._notify()

    # -- bill writes -----------------------------------------------------

    def _bills_path(self) -> str:
        return join_path("trips", self.require_trip_id(), "bills")

    async def create_bill(
        self,
        title: str,
        participants: Iterable[str],
        *,
        currency: str = "USD",
        description: str = "",
        category: str = "",
        is_draft: bool = False,
    ) -> str:
        path = self._bills_path()
        bill = Bill(
            id="",
            title=title,
            participants=list(dict.fromkeys(participants)),
            currency=currency,
            description=description,
            category=category,
            is_draft=is_draft,
            created_by=self._users.require_user_id(),
        )
        return await self._sync.remote.add_document(path, {**bill.to_remote(), "createdAt": SERVER_TIMESTAMP})

    async def update_bill(self, bill_id: str, **fields: Any) -> None:
        if fields.pop("archived", None) is not None:
            logger.debug("ignoring archived flag on remote write of bill %s", bill_id)
        payload = _mapped(fields, _BILL_FIELDS, "bill")
        if "distributionMode" in payload:
            payload["distributionMode"] = DistributionMode(payload["distributionMode"]).value
        path = join_path(self._bills_path(), _require_id(bill_id, "bill id"))
        if payload:
            await self._sync.remote.update_document(path, payload)

    async def delete_bill(self, bill_id: str) -> None:
        path = join_path(self._bills_path(), _require_id(bill_id, "bill id"))
        await self._sync.remote.delete_document(path)

    async def settle_bill(
        self,
        bill_id: str,
        payer: str | None = None,
        mode: DistributionMode | str = DistributionMode.EVEN,
        *,
        participants: Iterable[str] | None = None,
        total: object = None,
        amounts: Mapping[str, object] | None = None,
    ) -> Summary:
        """Recompute a bill's summary and write it back.

        ``participants`` defaults to the bill's current participants and
        ``payer`` to the signed-in user. The new summary replaces the old one.
        """
        path = join_path(self._bills_path(), _require_id(bill_id, "bill id"))
        resolved_payer = payer or self._users.require_user_id()
        if participants is None:
            known = self.bill(bill_id)
            if known is None:
                raise InvalidParentError(f"unknown bill: {bill_id}")
            participants = known.participants
        members = list(dict.fromkeys(participants))
        distribution = DistributionMode(mode)
        summary = self._ledger.compute_summary(distribution, resolved_payer, members, total=total, amounts=amounts)
        await self._sync.remote.update_document(
            path, {"summary": summary, "participants": members, "distributionMode": distribution.value}
        )
        return summary

    # -- transaction writes ----------------------------------------------

    def _transactions_path(self) -> str:
        return join_path("trips", self.require_trip_id(), "transactions")

    async def create_transaction(
        self,
        debtor: str,
        creditor: str,
        amount: object,
        *,
        currency: str = "USD",
        description: str = "",
    ) -> str:
        path = self._transactions_path()
        payload = {
            "debtor": _require_id(debtor, "debtor id"),
            "creditor": _require_id(creditor, "creditor id"),
            "amount": _require_amount(amount),
            "currency": currency or "USD",
            "description": description,
            "createdAt": SERVER_TIMESTAMP,
        }
        return await self._sync.remote.add_document(path, payload)

    async def update_transaction(self, transaction_id: str, **fields: Any) -> None:
        payload = _mapped(fields, _TRANSACTION_FIELDS, "transaction")
        if "amount" in payload:
            payload["amount"] = _require_amount(payload["amount"])
        path = join_path(self._transactions_path(), _require_id(transaction_id, "transaction id"))
        if payload:
            await self._sync.remote.update_document(path, payload)

    async def delete_transaction(self, transaction_id: str) -> None:
        path = join_path(self._transactions_path(), _require_id(transaction_id, "transaction id"))
        await self._sync.remote.delete_document(path)

    async def record_payment(self, bill_id: str) -> list[Transaction]:
        """Record the signed-in user's payment of their edges on *bill_id*.

        Writes one transaction per counterparty and invokes ``on_settlement``
        for each once written.
        """
        uid = self._users.require_user_id()
        bill = self.bill(_require_id(bill_id, "bill id"))
        if bill is None:
            raise InvalidParentError(f"unknown bill: {bill_id}")
        edges = {
            counterparty: amount
            for counterparty, amount in bill.summary.get(uid, {}).items()
            if counterparty != uid and amount > 0
        }
        if not edges:
            raise TripValidationError(f"nothing to pay on bill {bill_id}")
        recorded: list[Transaction] = []
        for counterparty, amount in edges.items():
            description = f"Payment for {bill.title}"
            transaction_id = await self.create_transaction(
                uid, counterparty, amount, currency=bill.currency, description=description
            )
            transaction = Transaction(
                transaction_id=transaction_id,
                debtor=uid,
                creditor=counterparty,
                amount=amount,
                currency=bill.currency,
                description=description,
            )
            recorded.append(transaction)
            if self._on_settlement is not None:
                outcome = self._on_settlement(transaction)
                if inspect.isawaitable(outcome):
                    await outcome
        return recorded
