"""
Error hierarchy for the escrow migrator.

Every error carries an ``ErrorCategory`` so callers can decide between
retrying (transient), aborting the run (fatal/permanent) and logging and
moving on (recoverable) without inspecting concrete types.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    """Classification of error types for retry and abort decisions."""

    TRANSIENT = "transient"  # Network issues, rate limits - should retry
    PERMANENT = "permanent"  # Bad request, revert - should NOT retry
    FATAL = "fatal"  # Aborts the migration run
    RECOVERABLE = "recoverable"  # Logged and skipped, run continues
    UNKNOWN = "unknown"  # Unclassified - treat as transient by default


class MigrationError(Exception):
    """Base exception for all migrator errors."""

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


# =============================================================================
# Transport-level errors (ledger client)
# =============================================================================


class TransientError(MigrationError):
    """Error that may succeed on retry.

    Examples:
    - RPC timeout
    - Rate limit exceeded
    - Connection reset
    """

    category = ErrorCategory.TRANSIENT


class NetworkError(TransientError):
    """Network-related transient error."""

    pass


class PermanentError(MigrationError):
    """Error that will NOT succeed on retry."""

    category = ErrorCategory.PERMANENT


class LedgerClientError(PermanentError):
    """Client misuse or an unusable connection."""

    pass


class ContractCallError(PermanentError):
    """A contract read reverted or returned undecodable data."""

    pass


# =============================================================================
# Pipeline errors
# =============================================================================


class ConfigurationError(MigrationError):
    """Required input is missing or invalid.

    Raised before any ledger interaction, e.g. no account list on a network
    that requires one.
    """

    category = ErrorCategory.FATAL


class ClassificationReadError(MigrationError):
    """A read call failed while classifying an account.

    Classification has no side effects, so the whole run can be aborted
    without partial-state risk.
    """

    category = ErrorCategory.FATAL

    def __init__(self, address: str, message: str, cause: Optional[Exception] = None):
        super().__init__(f"{address}: {message}", cause)
        self.address = address


class BatchSubmissionError(MigrationError):
    """A state-mutating batch call was rejected, reverted or never confirmed.

    Batches committed before this one stay committed and stay in the
    checkpoint artifact.
    """

    category = ErrorCategory.FATAL

    def __init__(
        self,
        message: str,
        batch_index: int,
        tx_hash: Optional[str] = None,
        reason: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, cause)
        self.batch_index = batch_index
        self.tx_hash = tx_hash
        self.reason = reason


class MalformedScheduleEntry(MigrationError):
    """A vesting schedule pair has exactly one of timestamp/amount equal to zero."""

    category = ErrorCategory.RECOVERABLE

    def __init__(self, address: str, timestamp: int, amount: int):
        super().__init__(
            f"{address} has malformed vesting entry (timestamp={timestamp}, amount={amount})"
        )
        self.address = address
        self.timestamp = timestamp
        self.amount = amount


class ArtifactError(MigrationError):
    """A persisted migration artifact is unreadable or fails schema validation."""

    category = ErrorCategory.FATAL


class MigrationInterrupted(MigrationError):
    """Operator interrupt honoured at a batch boundary."""

    category = ErrorCategory.FATAL
