"""Balance command."""

from __future__ import annotations

import argparse

from tripsync.cli.common import synced_client
from tripsync.core.contracts.ledger import Balance
from tripsync.core.contracts.trip import Trip
from tripsync.core.ledger.engine import LedgerEngine


def format_balance(balance: Balance, trip: Trip | None, trip_id: str) -> str:
    fmt = LedgerEngine.format_amount
    title = trip.title if trip is not None else "(loading)"
    lines = [
        "",
        f"tripsync - balance for {balance.user_id}",
        "",
        f"  Trip:         {title} ({trip_id})",
        f"  You owe:      {fmt(balance.owes_others)}",
        f"  Owed to you:  {fmt(balance.others_owe_me)}",
        f"  Net:          {fmt(balance.net)}",
        "",
    ]
    return "\n".join(lines)


async def run_balance(args: argparse.Namespace) -> Balance:
    import tripsync.cli as cli

    async with synced_client(args) as client:
        trip_id = client.bills.require_trip_id()
        balance = client.bills.balance_for()
        print(cli._format_balance(balance, client.trips.trip, trip_id))
    return balance


__all__ = ["format_balance", "run_balance"]
