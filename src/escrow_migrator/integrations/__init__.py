"""External integrations - chain access."""

from escrow_migrator.integrations.chain import EventSource, Ledger, LedgerClient

__all__ = [
    "EventSource",
    "Ledger",
    "LedgerClient",
]
