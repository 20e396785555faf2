"""Migration classifier - splits candidates into already-migrated and pending.

Accounts are classified one at a time to bound RPC load. Only the two
legacy balance reads for a single account run concurrently.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Sequence

import structlog

from escrow_migrator.core.errors import ClassificationReadError, MigrationError
from escrow_migrator.domain.models import Account, AccountRecord
from escrow_migrator.integrations.chain.client import Ledger, LedgerClient

log = structlog.get_logger()


@dataclass
class Classification:
    """Classified accounts in discovery order."""

    accounts: list[Account] = field(default_factory=list)

    @property
    def pending(self) -> list[Account]:
        return [a for a in self.accounts if not a.already_migrated]

    @property
    def already_migrated(self) -> list[Account]:
        return [a for a in self.accounts if a.already_migrated]


class MigrationClassifier:
    """Decides, per account, whether the successor already holds its escrow."""

    def __init__(self, client: LedgerClient):
        self._client = client
        self._log = log.bind(component="migration_classifier")

    async def classify(self, records: Sequence[AccountRecord]) -> Classification:
        """Classify every record.

        Raises:
            ClassificationReadError: On the first read that fails; nothing has
                been written to the ledger, so the run can stop safely.
        """
        result = Classification()
        for i, record in enumerate(records):
            result.accounts.append(await self.classify_one(record))
            if (i + 1) % 100 == 0:
                self._log.info("classification_progress", done=i + 1, total=len(records))

        self._log.info(
            "classification_complete",
            total=len(result.accounts),
            pending=len(result.pending),
            already_migrated=len(result.already_migrated),
        )
        return result

    async def classify_one(self, record: AccountRecord) -> Account:
        address = record.address
        try:
            successor_balance = await self._client.total_escrowed_account_balance(
                Ledger.SUCCESSOR, address
            )
        except MigrationError as e:
            raise ClassificationReadError(address, "successor balance read failed", cause=e)

        if successor_balance > 0:
            self._log.info(
                "account_already_migrated",
                address=address,
                successor_balance=successor_balance,
                note="escrow amounts already exist; not added to the migrate call",
            )
            # The successor holds the migrated copy of the legacy balance
            return Account(
                address=address,
                legacy_balance=record.balance if record.balance is not None else successor_balance,
                legacy_vested=record.vested if record.vested is not None else 0,
                already_migrated=True,
            )

        if record.has_balances:
            return Account(
                address=address,
                legacy_balance=record.balance,
                legacy_vested=record.vested,
            )

        try:
            balance, vested = await asyncio.gather(
                self._client.total_escrowed_account_balance(Ledger.LEGACY, address),
                self._client.total_vested_account_balance(address),
            )
        except MigrationError as e:
            raise ClassificationReadError(address, "legacy balance read failed", cause=e)

        return Account(address=address, legacy_balance=balance, legacy_vested=vested)
