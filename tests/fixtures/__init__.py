"""Test fixtures for escrow migrator tests.

This package provides:
- MockLedgerClient, an in-memory ledger with call tracking
- TxResult helpers for confirmed, rejected and timed-out submissions
"""

from .mock_ledger import MockLedgerClient, confirmed, make_address, rejected, timed_out

__all__ = [
    "MockLedgerClient",
    "confirmed",
    "rejected",
    "timed_out",
    "make_address",
]
