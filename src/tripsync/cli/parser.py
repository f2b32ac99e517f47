"""CLI parser construction."""

from __future__ import annotations

import argparse
from importlib.metadata import PackageNotFoundError, version


def _package_version() -> str:
    try:
        return version("tripsync")
    except PackageNotFoundError:
        return "0.0.0"


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default="./tripsync.json", help="Path to tripsync.json")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tripsync")
    parser.add_argument("--version", action="version", version=f"%(prog)s {_package_version()}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    balance_parser = subparsers.add_parser("balance", help="Show what you owe and are owed on the current trip")
    _add_common(balance_parser)

    bills_parser = subparsers.add_parser("bills", help="List bills of the current trip")
    bills_parser.add_argument("--archived", action="store_true", help="List archived bills instead of active ones")
    _add_common(bills_parser)

    archive_parser = subparsers.add_parser("archive", help="Archive a bill on this device")
    archive_parser.add_argument("bill_id", metavar="BILL_ID")
    _add_common(archive_parser)

    restore_parser = subparsers.add_parser("restore", help="Restore an archived bill on this device")
    restore_parser.add_argument("bill_id", metavar="BILL_ID")
    _add_common(restore_parser)

    return parser


__all__ = ["build_parser"]
