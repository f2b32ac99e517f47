"""Core ledger-domain exports."""

from tripsync.core.ledger.engine import LedgerEngine, parse_amount

__all__ = ["LedgerEngine", "parse_amount"]
