"""
Unit tests for error classification and transient-read retry.

Tests cover:
- Error hierarchy categories
- RetryConfig loaded from the [retry] config section
- call_with_retry as used by the ledger client
- classify_error / wrap_external_error for provider exceptions
"""

import asyncio

import pytest

from escrow_migrator.core.config import ConfigManager
from escrow_migrator.core.errors import (
    BatchSubmissionError,
    ClassificationReadError,
    ConfigurationError,
    ContractCallError,
    ErrorCategory,
    MalformedScheduleEntry,
    MigrationError,
    MigrationInterrupted,
    NetworkError,
    PermanentError,
    TransientError,
)
from escrow_migrator.core.retry import (
    RetryConfig,
    call_with_retry,
    classify_error,
    is_retryable,
    wrap_external_error,
)

NO_WAIT = RetryConfig(max_attempts=3, min_wait_seconds=0, max_wait_seconds=0, jitter=False)


class TestErrorHierarchy:
    """Test error categories."""

    def test_transient_errors(self):
        assert TransientError("x").category == ErrorCategory.TRANSIENT
        assert NetworkError("x").category == ErrorCategory.TRANSIENT

    def test_permanent_errors(self):
        assert ContractCallError("x").category == ErrorCategory.PERMANENT

    def test_fatal_errors(self):
        for error in (
            ConfigurationError("x"),
            ClassificationReadError("0xabc", "read failed"),
            BatchSubmissionError("x", batch_index=1),
            MigrationInterrupted("x"),
        ):
            assert error.category == ErrorCategory.FATAL

    def test_malformed_entry_is_recoverable(self):
        error = MalformedScheduleEntry("0xabc", 150, 0)

        assert error.category == ErrorCategory.RECOVERABLE
        assert "timestamp=150" in str(error)
        assert "amount=0" in str(error)

    def test_classification_error_names_address(self):
        error = ClassificationReadError("0xabc", "successor read failed")
        assert error.address == "0xabc"
        assert "0xabc" in str(error)

    def test_batch_error_fields(self):
        error = BatchSubmissionError("boom", batch_index=2, tx_hash="0x1", reason="revert")
        assert (error.batch_index, error.tx_hash, error.reason) == (2, "0x1", "revert")

    def test_cause_in_message(self):
        error = MigrationError("outer", cause=ValueError("inner"))
        assert str(error) == "outer (caused by: inner)"


class TestCallWithRetry:
    """Tests for call_with_retry."""

    @pytest.mark.asyncio
    async def test_passes_arguments(self):
        async def add(a, b, c=0):
            return a + b + c

        assert await call_with_retry(NO_WAIT, add, 1, 2, c=3) == 6

    @pytest.mark.asyncio
    async def test_retries_transient(self):
        attempts = []

        async def read():
            attempts.append(1)
            if len(attempts) == 1:
                raise NetworkError("timeout")
            return 7

        assert await call_with_retry(NO_WAIT, read, log_context={"call": "read"}) == 7
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_permanent_raised_immediately(self):
        attempts = []

        async def read():
            attempts.append(1)
            raise ContractCallError("reverted")

        with pytest.raises(ContractCallError):
            await call_with_retry(NO_WAIT, read)
        assert len(attempts) == 1


class TestClassification:
    """Tests for error classification utilities."""

    def test_connection_error_transient(self):
        assert classify_error(ConnectionError("refused")) == ErrorCategory.TRANSIENT
        assert classify_error(asyncio.TimeoutError()) == ErrorCategory.TRANSIENT

    def test_message_patterns(self):
        assert classify_error(Exception("429 Too Many Requests")) == ErrorCategory.TRANSIENT
        assert classify_error(Exception("execution reverted")) == ErrorCategory.PERMANENT
        assert classify_error(Exception("nonce too low")) == ErrorCategory.PERMANENT

    def test_unknown(self):
        assert classify_error(Exception("something odd")) == ErrorCategory.UNKNOWN
        assert is_retryable(Exception("something odd")) is True

    def test_migration_errors_keep_category(self):
        assert classify_error(ConfigurationError("x")) == ErrorCategory.FATAL
        assert is_retryable(ConfigurationError("x")) is False

    def test_wrap_external_error(self):
        wrapped = wrap_external_error(Exception("503 service unavailable"), "legacy.totalEscrowedBalance")

        assert isinstance(wrapped, NetworkError)
        assert "legacy.totalEscrowedBalance" in str(wrapped)

        wrapped = wrap_external_error(Exception("invalid address"))
        assert isinstance(wrapped, PermanentError)


class TestRetryConfig:
    """Tests for RetryConfig."""

    def test_defaults_without_section(self):
        assert RetryConfig.from_config(ConfigManager(environ={})) == RetryConfig()

    def test_from_config_section(self, tmp_path):
        path = tmp_path / "retry.toml"
        path.write_text("[retry]\nmax_attempts = 5\njitter = false\n")

        config = RetryConfig.from_config(ConfigManager(path, environ={}))

        assert config.max_attempts == 5
        assert config.jitter is False
        assert config.min_wait_seconds == 1.0

    def test_at_least_one_attempt(self):
        manager = ConfigManager(environ={"ESCROW_RETRY_MAX_ATTEMPTS": "0"})
        assert RetryConfig.from_config(manager).max_attempts == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        attempts = []

        async def read():
            attempts.append(1)
            raise NetworkError("503 service unavailable")

        with pytest.raises(NetworkError):
            await call_with_retry(NO_WAIT, read)
        assert len(attempts) == 3
