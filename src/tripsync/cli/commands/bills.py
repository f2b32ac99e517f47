"""Bill listing and archive commands."""

from __future__ import annotations

import argparse

from tripsync.cli.common import format_comma_or_none, synced_client
from tripsync.core.contracts.ledger import Bill
from tripsync.core.ledger.engine import LedgerEngine


def format_bill_list(bills: list[Bill], *, archived: bool, user_id: str, ledger: LedgerEngine) -> str:
    kind = "archived" if archived else "active"
    lines = ["", f"tripsync - {len(bills)} {kind} bill{'s' if len(bills) != 1 else ''}", ""]
    if not bills:
        lines.append("  none")
    for bill in bills:
        draft = " [draft]" if bill.is_draft else ""
        position = ledger.format_amount(ledger.bill_balance(bill, user_id), bill.currency)
        lines.append(f"  {bill.id}  {bill.title}{draft}")
        lines.append(f"      Participants: {format_comma_or_none(bill.participants)}")
        lines.append(f"      Your balance: {position}")
    lines.append("")
    return "\n".join(lines)


async def run_bills(args: argparse.Namespace) -> list[Bill]:
    import tripsync.cli as cli

    async with synced_client(args) as client:
        client.bills.require_trip_id()
        bills = client.bills.archived_bills if args.archived else client.bills.active_bills
        user_id = client.users.require_user_id()
        print(cli._format_bill_list(bills, archived=args.archived, user_id=user_id, ledger=client.ledger))
    return bills


async def run_archive(args: argparse.Namespace) -> frozenset[str]:
    async with synced_client(args) as client:
        await client.bills.archive(args.bill_id)
        print(f"archived {args.bill_id}")
        return client.bills.archived_ids


async def run_restore(args: argparse.Namespace) -> frozenset[str]:
    async with synced_client(args) as client:
        await client.bills.restore(args.bill_id)
        print(f"restored {args.bill_id}")
        return client.bills.archived_ids


__all__ = ["format_bill_list", "run_archive", "run_bills", "run_restore"]
