"""Domain models - pure data structures with no I/O dependencies."""

from escrow_migrator.domain.batching import (
    IMPORT_BATCH_SIZE,
    MIGRATION_BATCH_SIZE,
    import_batches,
    migration_batches,
    partition,
)
from escrow_migrator.domain.models import (
    Account,
    AccountRecord,
    Amount,
    BlockRef,
    FlattenedEntry,
    ImportBatch,
    MigrationBatch,
    MigrationResult,
    ReconciliationReport,
    ReconciliationStatus,
    TxResult,
    TxStatus,
    format_units,
    parse_amount,
)

__all__ = [
    # Models
    "Amount",
    "AccountRecord",
    "Account",
    "FlattenedEntry",
    "MigrationBatch",
    "ImportBatch",
    "BlockRef",
    "TxStatus",
    "TxResult",
    "ReconciliationStatus",
    "ReconciliationReport",
    "MigrationResult",
    "parse_amount",
    "format_units",
    # Batching
    "MIGRATION_BATCH_SIZE",
    "IMPORT_BATCH_SIZE",
    "partition",
    "migration_batches",
    "import_batches",
]
