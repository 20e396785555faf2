# Chain Interactions
# web3 client for the legacy and successor escrow contracts

from escrow_migrator.integrations.chain.client import (
    Ledger,
    LedgerClient,
)
from escrow_migrator.integrations.chain.events import EventSource
from escrow_migrator.integrations.chain.transactions import (
    PendingTransaction,
    TransactionRunner,
)

__all__ = [
    "Ledger",
    "LedgerClient",
    "EventSource",
    "PendingTransaction",
    "TransactionRunner",
]
