"""Import batcher - submits flattened vesting entries to the successor."""

from typing import Optional, Sequence

import structlog

from escrow_migrator.core.shutdown import InterruptGuard
from escrow_migrator.domain.batching import IMPORT_BATCH_SIZE, import_batches
from escrow_migrator.domain.models import FlattenedEntry, ImportBatch, MigrationResult
from escrow_migrator.integrations.chain.client import LedgerClient
from escrow_migrator.services.artifact import ArtifactStore
from escrow_migrator.services.migrator import raise_for_result

log = structlog.get_logger()


class ImportBatcher:
    """Submits importVestingSchedule in fixed-size batches.

    Same discipline as BatchMigrator: sequential, checkpoint after each
    batch, stop on the first batch that is not confirmed.
    """

    def __init__(
        self,
        client: LedgerClient,
        store: ArtifactStore,
        batch_size: int = IMPORT_BATCH_SIZE,
        dry_run: bool = False,
        guard: Optional[InterruptGuard] = None,
    ):
        self._client = client
        self._store = store
        self._batch_size = batch_size
        self._dry_run = dry_run
        self._guard = guard
        self._log = log.bind(component="import_batcher", dry_run=dry_run)

    async def import_entries(
        self,
        entries: Sequence[FlattenedEntry],
        result: MigrationResult,
    ) -> list[ImportBatch]:
        """Import ``entries`` and record each batch in ``result``.

        Raises:
            BatchSubmissionError: When a batch is rejected or unconfirmed.
            MigrationInterrupted: When an operator stop is seen between batches.
        """
        batches = import_batches(entries, self._batch_size)
        self._log.info(
            "import_started",
            entries=len(entries),
            batches=len(batches),
            batch_size=self._batch_size,
        )

        done: list[ImportBatch] = []
        for batch in batches:
            if self._guard is not None:
                self._guard.check("import", batch.index)

            self._log.info("importing_batch", batch=batch.index, accounts=len(batch))
            if not self._dry_run:
                tx = await self._client.import_vesting_schedule(batch.addresses, batch.amounts)
                raise_for_result(tx, "import", batch.index)
                self._log.info(
                    "batch_confirmed",
                    batch=batch.index,
                    tx_hash=tx.tx_hash,
                    gas_used=tx.gas_used,
                )

            result.record_imported(batch)
            self._store.save(result)
            done.append(batch)

        self._log.info("import_finished", batches=len(done))
        return done
