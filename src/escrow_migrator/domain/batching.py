"""
Fixed-size batch partitioning.

Batches are contiguous slices of the input in input order. Concatenating
every batch gives back the original sequence; only the last batch may be
short.
"""
from typing import Sequence, TypeVar

from escrow_migrator.domain.models import (
    Account,
    FlattenedEntry,
    ImportBatch,
    MigrationBatch,
)

T = TypeVar("T")

# Ledger-imposed limits on array length per call
MIGRATION_BATCH_SIZE = 450
IMPORT_BATCH_SIZE = 350


def partition(items: Sequence[T], size: int) -> list[tuple[T, ...]]:
    """Split ``items`` into contiguous tuples of at most ``size`` elements.

    Raises:
        ValueError: If size is not positive.
    """
    if size <= 0:
        raise ValueError(f"batch size must be positive, got {size}")
    return [tuple(items[i:i + size]) for i in range(0, len(items), size)]


def migration_batches(
    accounts: Sequence[Account],
    size: int = MIGRATION_BATCH_SIZE,
) -> list[MigrationBatch]:
    """Partition pending accounts into migration batches."""
    return [
        MigrationBatch(index=i, accounts=chunk)
        for i, chunk in enumerate(partition(accounts, size))
    ]


def import_batches(
    entries: Sequence[FlattenedEntry],
    size: int = IMPORT_BATCH_SIZE,
) -> list[ImportBatch]:
    """Partition flattened entries into import batches."""
    return [
        ImportBatch(index=i, entries=chunk)
        for i, chunk in enumerate(partition(entries, size))
    ]
