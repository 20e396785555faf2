"""
Migration pipeline - wires the stages together.

Stage order:
1. Check inputs (no ledger access yet)
2. Discover candidate accounts
3. Classify against successor state
4. Migrate pending balances in batches
5. Read the migration threshold and the reference block
6. Flatten matured vesting entries
7. Import flattened entries in batches
8. Reconcile total escrowed balance

The MigrationResult is checkpointed after classification, after every batch,
once the reference block is known, and after reconciliation.
"""
import time
from pathlib import Path
from typing import Callable, Optional

import structlog

from escrow_migrator.core.shutdown import InterruptGuard
from escrow_migrator.domain.models import MigrationResult
from escrow_migrator.integrations.chain.client import LedgerClient
from escrow_migrator.integrations.chain.events import EventSource
from escrow_migrator.services.artifact import ArtifactStore
from escrow_migrator.services.classifier import MigrationClassifier
from escrow_migrator.services.discovery import AccountDiscoverer
from escrow_migrator.services.flattener import VestingFlattener
from escrow_migrator.services.importer import ImportBatcher
from escrow_migrator.services.migrator import BatchMigrator
from escrow_migrator.services.reconciler import Reconciler
from escrow_migrator.settings import MigrationSettings

log = structlog.get_logger()


class MigrationPipeline:
    """Runs one migration end to end.

    Usage:
        pipeline = MigrationPipeline(settings, client, event_source=events)
        result = await pipeline.run()
    """

    def __init__(
        self,
        settings: MigrationSettings,
        client: LedgerClient,
        event_source: Optional[EventSource] = None,
        store: Optional[ArtifactStore] = None,
        guard: Optional[InterruptGuard] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._settings = settings
        self._client = client
        self._guard = guard
        self._clock = clock
        self._store = store or ArtifactStore(settings.output_dir)
        self._log = log.bind(
            component="migration_pipeline",
            network=settings.network,
            dry_run=settings.dry_run,
        )

        self._discoverer = AccountDiscoverer(
            network=settings.network,
            account_json=settings.account_json,
            event_source=event_source,
            static_list_networks=settings.static_list_networks,
            from_block=settings.events_from_block,
            to_block=settings.events_to_block,
        )
        self._classifier = MigrationClassifier(client)
        self._migrator = BatchMigrator(
            client,
            self._store,
            batch_size=settings.migration_batch_size,
            dry_run=settings.dry_run,
            guard=guard,
        )
        self._flattener = VestingFlattener(client)
        self._importer = ImportBatcher(
            client,
            self._store,
            batch_size=settings.import_batch_size,
            dry_run=settings.dry_run,
            guard=guard,
        )
        self._reconciler = Reconciler(client, dry_run=settings.dry_run)

    @property
    def store(self) -> ArtifactStore:
        return self._store

    @property
    def artifact_path(self) -> Optional[Path]:
        return self._store.path

    def new_result(self) -> MigrationResult:
        """Create the result for this run, carrying a prior artifact forward."""
        result = MigrationResult(
            network=self._settings.network,
            started_at=int(self._clock()),
            dry_run=self._settings.dry_run,
        )
        if self._settings.resume_from is not None:
            prior = ArtifactStore.load(self._settings.resume_from)
            result.migrated_accounts.extend(prior.migrated_accounts)
            result.imported_vested_entries.extend(prior.imported_vested_entries)
            self._log.info(
                "resuming_from_artifact",
                path=str(self._settings.resume_from),
                migrated=len(prior.migrated_accounts),
                imported=len(prior.imported_vested_entries),
            )
        return result

    async def run(self) -> MigrationResult:
        """Execute every stage.

        Raises:
            ConfigurationError: Before any ledger interaction.
            ClassificationReadError: During the read-only phase.
            BatchSubmissionError: During a mutating phase; checkpoints are kept.
            MigrationInterrupted: At a batch boundary after an operator stop.
        """
        self._discoverer.check_inputs()
        result = self.new_result()
        self._log.info(
            "migration_run_started",
            started_at=result.started_at,
            artifact=str(self._store.path_for(result)),
        )

        records = await self._discoverer.discover()
        classification = await self._classifier.classify(records)
        result.skipped_accounts = classification.already_migrated
        self._store.save(result)

        await self._migrator.migrate(classification.pending, result)

        threshold = await self._client.migrate_entries_threshold_amount()
        reference = await self._client.get_latest_block()
        result.reference_block = reference
        self._store.save(result)
        self._log.info(
            "flattening_reference",
            threshold=str(threshold),
            block=reference.number,
            timestamp=reference.timestamp,
        )

        entries = await self._flattener.flatten(
            classification.accounts, threshold, reference.timestamp
        )
        await self._importer.import_entries(entries, result)

        result.reconciliation = await self._reconciler.reconcile()
        path = self._store.save(result)

        self._log.info(
            "migration_run_finished",
            artifact=str(path),
            migrated=len(result.migrated_accounts),
            skipped=len(result.skipped_accounts),
            imported=len(result.imported_vested_entries),
            reconciled=result.reconciliation.matched,
        )
        return result
