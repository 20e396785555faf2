"""
Unit tests for the checkpoint artifact store.
"""
import json
from unittest.mock import patch

import pytest

from escrow_migrator.core.errors import ArtifactError
from escrow_migrator.domain.models import (
    Account,
    BlockRef,
    FlattenedEntry,
    MigrationResult,
    ReconciliationReport,
)
from escrow_migrator.services.artifact import ArtifactStore, artifact_filename


class TestArtifactStore:
    """Tests for ArtifactStore save/load."""

    def test_filename(self):
        assert artifact_filename("mainnet", 1700000000) == "rewards-out-mainnet-1700000000.json"

    def test_save_writes_named_artifact(self, store, result, tmp_path):
        path = store.save(result)

        assert path == tmp_path / "rewards-out-kovan-1700000000.json"
        data = json.loads(path.read_text())
        assert data["migratedAccounts"] == []
        assert data["importedVestedEntries"] == []
        assert store.saves == 1

    def test_round_trip(self, store, result):
        result.migrated_accounts.append(Account("0xabc", 10**30, 3))
        result.skipped_accounts.append(Account("0xdef", 5, 0, already_migrated=True))
        result.imported_vested_entries.append(FlattenedEntry("0xabc", 80))
        result.reference_block = BlockRef(number=10, timestamp=20)
        result.reconciliation = ReconciliationReport(legacy_total=1000, successor_total=999)

        loaded = ArtifactStore.load(store.save(result))

        assert loaded == result

    def test_save_overwrites_in_place(self, store, result, tmp_path):
        store.save(result)
        result.migrated_accounts.append(Account("0xabc", 1, 0))
        store.save(result)

        assert len(ArtifactStore.load(store.path).migrated_accounts) == 1
        assert sorted(p.name for p in tmp_path.iterdir()) == ["rewards-out-kovan-1700000000.json"]

    def test_failed_write_keeps_previous_checkpoint(self, store, result, tmp_path):
        store.save(result)
        result.migrated_accounts.append(Account("0xabc", 1, 0))

        with patch("escrow_migrator.services.artifact.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                store.save(result)

        assert ArtifactStore.load(store.path).migrated_accounts == []
        assert len(list(tmp_path.iterdir())) == 1

    def test_creates_output_dir(self, tmp_path, result):
        store = ArtifactStore(tmp_path / "out" / "nested")
        assert store.save(result).exists()

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ArtifactError, match="not found"):
            ArtifactStore.load(tmp_path / "nope.json")

    def test_load_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("[")

        with pytest.raises(ArtifactError, match="not valid JSON"):
            ArtifactStore.load(path)

    def test_load_rejects_missing_migrated_accounts(self, tmp_path):
        path = tmp_path / "partial.json"
        path.write_text(json.dumps({"importedVestedEntries": []}))

        with pytest.raises(ArtifactError, match="schema"):
            ArtifactStore.load(path)

    def test_load_rejects_float_amount(self, tmp_path):
        path = tmp_path / "float.json"
        path.write_text(
            json.dumps(
                {
                    "migratedAccounts": [{"address": "0xabc", "balance": 1.5, "vested": "0"}],
                    "importedVestedEntries": [],
                }
            )
        )

        with pytest.raises(ArtifactError):
            ArtifactStore.load(path)

    def test_load_minimal_document(self, tmp_path):
        path = tmp_path / "minimal.json"
        path.write_text(json.dumps({"migratedAccounts": [], "importedVestedEntries": []}))

        loaded = ArtifactStore.load(path)

        assert loaded.skipped_accounts == []
        assert loaded.reconciliation is None
