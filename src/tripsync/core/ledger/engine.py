"""Settlement arithmetic for bills.

Summaries are keyed by the payer who settled the bill:
``{payer: {participant: share}}``. Aggregation reads them as direct edges
only; nothing is netted across bills or across chains of users.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping

from tripsync.core.contracts.exceptions import InvalidParentError
from tripsync.core.contracts.ledger import Balance, Bill, DistributionMode, Summary

logger = logging.getLogger(__name__)


def parse_amount(value: object) -> float | None:
    """Return *value* as a finite float, or ``None`` when it is not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _require_payer(payer: str) -> str:
    if not isinstance(payer, str) or not payer.strip():
        raise InvalidParentError("payer id is empty")
    return payer


class LedgerEngine:
    """Pure split and aggregation functions; holds no state."""

    def even_split(self, payer: str, participants: Iterable[str], total: object) -> Summary:
        """Divide *total* equally among *participants*.

        An unparsable or non-positive total, or no participants, yields an
        empty summary.
        """
        _require_payer(payer)
        members = list(dict.fromkeys(participants))
        amount = parse_amount(total)
        if amount is None or amount <= 0 or not members:
            logger.debug("even split skipped: total=%r participants=%d", total, len(members))
            return {}
        share = amount / len(members)
        return {payer: {member: share for member in members}}

    def custom_split(self, payer: str, participants: Iterable[str], amounts: Mapping[str, object]) -> Summary:
        """Assign each participant the amount entered for them.

        Participants with a missing or non-numeric amount are left out.
        """
        _require_payer(payer)
        shares: dict[str, float] = {}
        for member in dict.fromkeys(participants):
            if member not in amounts:
                continue
            amount = parse_amount(amounts[member])
            if amount is None:
                logger.debug("custom split: ignoring non-numeric amount for %s: %r", member, amounts[member])
                continue
            shares[member] = amount
        if not shares:
            logger.debug("custom split skipped: no numeric amounts")
            return {}
        return {payer: shares}

    def compute_summary(
        self,
        mode: DistributionMode | str,
        payer: str,
        participants: Iterable[str],
        *,
        total: object = None,
        amounts: Mapping[str, object] | None = None,
    ) -> Summary:
        if DistributionMode(mode) is DistributionMode.EVEN:
            return self.even_split(payer, participants, total)
        return self.custom_split(payer, participants, amounts or {})

    def aggregate(self, bills: Iterable[Bill], user_id: str) -> Balance:
        """Sum direct edges touching *user_id* across *bills*.

        Archived and draft bills count like any other.
        """
        owes: list[float] = []
        owed: list[float] = []
        for bill in bills:
            owes.extend(bill.summary.get(user_id, {}).values())
            owed.extend(
                credits[user_id]
                for debtor, credits in bill.summary.items()
                if debtor != user_id and user_id in credits
            )
        return Balance(user_id=user_id, owes_others=math.fsum(owes), others_owe_me=math.fsum(owed))

    def bill_balance(self, bill: Bill, user_id: str) -> float:
        """Signed position of *user_id* on a single bill (positive when owed)."""
        return self.aggregate([bill], user_id).net

    def amount_owed_on(self, bill: Bill, user_id: str) -> float:
        """Total of the edges keyed by *user_id* on *bill*."""
        return math.fsum(bill.summary.get(user_id, {}).values())

    @staticmethod
    def format_amount(value: float, currency: str | None = None) -> str:
        text = f"{value:.2f}"
        return f"{text} {currency}" if currency else text
