"""
Unit tests for BatchMigrator and ImportBatcher.

Both batchers share the same discipline: sequential batches, one checkpoint
per committed batch, stop on the first batch that is not confirmed.
"""
import pytest

from escrow_migrator.core.errors import BatchSubmissionError, MigrationInterrupted
from escrow_migrator.domain.models import FlattenedEntry
from escrow_migrator.services.artifact import ArtifactStore
from escrow_migrator.services.importer import ImportBatcher
from escrow_migrator.services.migrator import BatchMigrator
from tests.fixtures import confirmed, make_address, rejected, timed_out


class TestBatchMigrator:
    """Tests for migrateAccountEscrowBalances batching."""

    @pytest.mark.asyncio
    async def test_batches_sent_in_order(self, ledger, store, result, make_accounts):
        accounts = make_accounts(5)
        migrator = BatchMigrator(ledger, store, batch_size=2)

        batches = await migrator.migrate(accounts, result)

        assert [len(b) for b in batches] == [2, 2, 1]
        sent = [a for call in ledger.migrate_calls for a in call["addresses"]]
        assert sent == [a.address for a in accounts]
        assert ledger.migrate_calls[0]["balances"] == [a.legacy_balance for a in accounts[:2]]
        assert ledger.migrate_calls[0]["vested"] == [a.legacy_vested for a in accounts[:2]]
        assert result.migrated_accounts == accounts

    @pytest.mark.asyncio
    async def test_checkpoint_after_each_batch(self, ledger, store, result, make_accounts):
        migrator = BatchMigrator(ledger, store, batch_size=2)

        await migrator.migrate(make_accounts(5), result)

        assert store.saves == 3
        assert len(ArtifactStore.load(store.path).migrated_accounts) == 5

    @pytest.mark.asyncio
    async def test_failed_second_batch_keeps_first(self, ledger, store, result, make_accounts):
        ledger.tx_results = [confirmed(), rejected(reason="gas limit")]
        accounts = make_accounts(4)
        migrator = BatchMigrator(ledger, store, batch_size=2)

        with pytest.raises(BatchSubmissionError) as excinfo:
            await migrator.migrate(accounts, result)

        assert excinfo.value.batch_index == 1
        assert "gas limit" in excinfo.value.reason
        persisted = ArtifactStore.load(store.path)
        assert [a.address for a in persisted.migrated_accounts] == [a.address for a in accounts[:2]]
        assert len(ledger.migrate_calls) == 2

    @pytest.mark.asyncio
    async def test_timeout_is_fatal_and_not_recorded(self, ledger, store, result, make_accounts):
        ledger.tx_results = [timed_out()]
        migrator = BatchMigrator(ledger, store, batch_size=2)

        with pytest.raises(BatchSubmissionError, match="not confirmed in time") as excinfo:
            await migrator.migrate(make_accounts(2), result)

        assert excinfo.value.tx_hash == "0xslow"
        assert result.migrated_accounts == []
        assert store.saves == 0

    @pytest.mark.asyncio
    async def test_dry_run_records_without_sending(self, ledger, store, result, make_accounts):
        migrator = BatchMigrator(ledger, store, batch_size=450, dry_run=True)

        batches = await migrator.migrate(make_accounts(500), result)

        assert [len(b) for b in batches] == [450, 50]
        assert ledger.mutating_calls == 0
        assert len(result.migrated_accounts) == 500

    @pytest.mark.asyncio
    async def test_interrupt_stops_at_batch_boundary(self, ledger, store, result, guard, make_accounts):
        original = ledger.migrate_account_escrow_balances

        async def migrate_then_interrupt(*args):
            outcome = await original(*args)
            guard.request_stop("SIGINT")
            return outcome

        ledger.migrate_account_escrow_balances = migrate_then_interrupt
        migrator = BatchMigrator(ledger, store, batch_size=2, guard=guard)

        with pytest.raises(MigrationInterrupted, match="migration batch 1"):
            await migrator.migrate(make_accounts(6), result)

        assert len(ledger.migrate_calls) == 1
        assert len(ArtifactStore.load(store.path).migrated_accounts) == 2

    @pytest.mark.asyncio
    async def test_no_pending_accounts(self, ledger, store, result):
        assert await BatchMigrator(ledger, store).migrate([], result) == []
        assert ledger.mutating_calls == 0


class TestImportBatcher:
    """Tests for importVestingSchedule batching."""

    @staticmethod
    def entries(count):
        return [FlattenedEntry(address=make_address(i), amount=i) for i in range(1, count + 1)]

    @pytest.mark.asyncio
    async def test_default_batch_size(self, ledger, store, result):
        batches = await ImportBatcher(ledger, store).import_entries(self.entries(351), result)

        assert [len(b) for b in batches] == [350, 1]
        assert ledger.import_calls[1] == {"addresses": [make_address(351)], "amounts": [351]}
        assert len(result.imported_vested_entries) == 351
        assert store.saves == 2

    @pytest.mark.asyncio
    async def test_rejection_stops_run(self, ledger, store, result):
        ledger.tx_results = [rejected()]

        with pytest.raises(BatchSubmissionError, match="import batch 0"):
            await ImportBatcher(ledger, store, batch_size=2).import_entries(self.entries(4), result)

        assert result.imported_vested_entries == []
        assert len(ledger.import_calls) == 1

    @pytest.mark.asyncio
    async def test_dry_run(self, ledger, store, result):
        batcher = ImportBatcher(ledger, store, dry_run=True)

        await batcher.import_entries(self.entries(3), result)

        assert ledger.mutating_calls == 0
        assert len(result.imported_vested_entries) == 3

    @pytest.mark.asyncio
    async def test_interrupt_before_first_batch(self, ledger, store, result, guard):
        guard.request_stop()

        with pytest.raises(MigrationInterrupted, match="import batch 0"):
            await ImportBatcher(ledger, store, guard=guard).import_entries(self.entries(3), result)

        assert ledger.import_calls == []
