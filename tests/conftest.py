"""
Shared pytest fixtures for escrow migrator tests.
"""
import json
from pathlib import Path

import pytest

from escrow_migrator.core.shutdown import InterruptGuard
from escrow_migrator.domain.models import Account, MigrationResult
from escrow_migrator.services.artifact import ArtifactStore
from tests.fixtures import MockLedgerClient, make_address


@pytest.fixture
def ledger():
    """Empty in-memory ledger; tests fill in the state they need."""
    return MockLedgerClient()


@pytest.fixture
def store(tmp_path):
    """Artifact store writing into the test's temp directory."""
    return ArtifactStore(tmp_path)


@pytest.fixture
def guard():
    return InterruptGuard()


@pytest.fixture
def result():
    return MigrationResult(network="kovan", started_at=1_700_000_000, dry_run=False)


@pytest.fixture
def make_accounts():
    """Factory for pending accounts with distinct addresses and balances."""

    def _make(count: int, start: int = 1) -> list[Account]:
        return [
            Account(
                address=make_address(i),
                legacy_balance=i * 10**18,
                legacy_vested=i,
            )
            for i in range(start, start + count)
        ]

    return _make


@pytest.fixture
def write_account_json(tmp_path):
    """Write a static account list and return its path."""

    def _write(entries, name: str = "accounts.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(entries))
        return path

    return _write
