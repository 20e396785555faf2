"""Migration services - one module per pipeline stage."""

from escrow_migrator.services.artifact import ArtifactStore, artifact_filename
from escrow_migrator.services.classifier import Classification, MigrationClassifier
from escrow_migrator.services.discovery import AccountDiscoverer, dedupe, load_account_list
from escrow_migrator.services.flattener import VestingFlattener, flatten_schedule
from escrow_migrator.services.importer import ImportBatcher
from escrow_migrator.services.migrator import BatchMigrator
from escrow_migrator.services.pipeline import MigrationPipeline
from escrow_migrator.services.reconciler import Reconciler

__all__ = [
    "ArtifactStore",
    "artifact_filename",
    "AccountDiscoverer",
    "load_account_list",
    "dedupe",
    "Classification",
    "MigrationClassifier",
    "BatchMigrator",
    "VestingFlattener",
    "flatten_schedule",
    "ImportBatcher",
    "Reconciler",
    "MigrationPipeline",
]
