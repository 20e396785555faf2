"""Batch migrator - moves pending account balances to the successor.

Batches are submitted strictly in order, one transaction each, and the
checkpoint artifact is rewritten after every confirmed batch. A batch that
is not confirmed stops the run; it is never retried or re-split here.
"""

from typing import Optional, Sequence

import structlog

from escrow_migrator.core.errors import BatchSubmissionError
from escrow_migrator.core.shutdown import InterruptGuard
from escrow_migrator.domain.batching import MIGRATION_BATCH_SIZE, migration_batches
from escrow_migrator.domain.models import Account, MigrationBatch, MigrationResult, TxResult
from escrow_migrator.integrations.chain.client import LedgerClient
from escrow_migrator.services.artifact import ArtifactStore

log = structlog.get_logger()


def raise_for_result(result: TxResult, stage: str, batch_index: int) -> None:
    """Turn a non-confirmed TxResult into a BatchSubmissionError."""
    if result.confirmed:
        return
    if result.timed_out:
        message = (
            f"{stage} batch {batch_index} was submitted ({result.tx_hash}) but not "
            f"confirmed in time; check the transaction before restarting"
        )
    else:
        message = f"{stage} batch {batch_index} failed: {result.error}"
    raise BatchSubmissionError(
        message,
        batch_index=batch_index,
        tx_hash=result.tx_hash,
        reason=result.error,
    )


class BatchMigrator:
    """Submits migrateAccountEscrowBalances in fixed-size batches."""

    def __init__(
        self,
        client: LedgerClient,
        store: ArtifactStore,
        batch_size: int = MIGRATION_BATCH_SIZE,
        dry_run: bool = False,
        guard: Optional[InterruptGuard] = None,
    ):
        self._client = client
        self._store = store
        self._batch_size = batch_size
        self._dry_run = dry_run
        self._guard = guard
        self._log = log.bind(component="batch_migrator", dry_run=dry_run)

    async def migrate(
        self,
        pending: Sequence[Account],
        result: MigrationResult,
    ) -> list[MigrationBatch]:
        """Migrate ``pending`` and record each batch in ``result``.

        Returns:
            The batches that were committed (or, in dry-run, computed).

        Raises:
            BatchSubmissionError: When a batch is rejected or unconfirmed. All
                earlier batches are already in the artifact.
            MigrationInterrupted: When an operator stop is seen between batches.
        """
        batches = migration_batches(pending, self._batch_size)
        self._log.info(
            "migration_started",
            accounts=len(pending),
            batches=len(batches),
            batch_size=self._batch_size,
        )

        done: list[MigrationBatch] = []
        for batch in batches:
            if self._guard is not None:
                self._guard.check("migration", batch.index)

            self._log.info("migrating_batch", batch=batch.index, accounts=len(batch))
            if not self._dry_run:
                tx = await self._client.migrate_account_escrow_balances(
                    batch.addresses, batch.balances, batch.vested
                )
                raise_for_result(tx, "migration", batch.index)
                self._log.info(
                    "batch_confirmed",
                    batch=batch.index,
                    tx_hash=tx.tx_hash,
                    gas_used=tx.gas_used,
                )

            result.record_migrated(batch)
            self._store.save(result)
            done.append(batch)

        self._log.info(
            "migration_finished",
            batches=len(done),
            accounts=sum(len(b) for b in done),
        )
        return done
