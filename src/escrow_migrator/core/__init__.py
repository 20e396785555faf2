"""Core framework infrastructure - config, errors, logging, retry, interrupts."""

from escrow_migrator.core.config import ConfigManager
from escrow_migrator.core.errors import (
    ArtifactError,
    BatchSubmissionError,
    ClassificationReadError,
    ConfigurationError,
    ContractCallError,
    ErrorCategory,
    LedgerClientError,
    MalformedScheduleEntry,
    MigrationError,
    MigrationInterrupted,
    NetworkError,
    PermanentError,
    TransientError,
)
from escrow_migrator.core.logging import bind_run_context, setup_logging
from escrow_migrator.core.retry import (
    RetryConfig,
    call_with_retry,
    classify_error,
    is_retryable,
    wrap_external_error,
)
from escrow_migrator.core.shutdown import InterruptGuard

__all__ = [
    # Config
    "ConfigManager",
    # Logging
    "setup_logging",
    "bind_run_context",
    # Errors
    "ErrorCategory",
    "MigrationError",
    "TransientError",
    "NetworkError",
    "PermanentError",
    "LedgerClientError",
    "ContractCallError",
    "ConfigurationError",
    "ClassificationReadError",
    "BatchSubmissionError",
    "MalformedScheduleEntry",
    "ArtifactError",
    "MigrationInterrupted",
    # Retry
    "RetryConfig",
    "call_with_retry",
    "is_retryable",
    "classify_error",
    "wrap_external_error",
    # Interrupts
    "InterruptGuard",
]
