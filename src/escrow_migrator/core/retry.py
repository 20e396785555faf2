"""
Retries for read-only ledger calls.

Provider exceptions are first sorted into the migrator's error hierarchy
(``wrap_external_error``); only TransientError is retried, with tenacity's
exponential backoff. Batch submissions never pass through here: a batch is
sent once and its outcome is final.

Usage:
    config = RetryConfig.from_config(config_manager)
    balance = await call_with_retry(config, read_balance, address,
                                    log_context={"call": "balanceOf"})
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random_exponential,
)

from escrow_migrator.core.errors import (
    ErrorCategory,
    MigrationError,
    NetworkError,
    PermanentError,
    TransientError,
)

log = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Backoff policy for ledger reads.

    ``max_attempts`` counts the first try. With ``jitter`` the wait is drawn
    uniformly up to the exponential bound, which spreads out concurrent reads
    against a rate-limited provider.
    """

    max_attempts: int = 3
    min_wait_seconds: float = 1.0
    max_wait_seconds: float = 30.0
    exponential_multiplier: float = 2.0
    jitter: bool = True

    @classmethod
    def from_config(cls, config: Any) -> "RetryConfig":
        """Read the ``[retry]`` section of a ConfigManager."""
        defaults = cls()
        return cls(
            max_attempts=max(1, config.get_int("retry.max_attempts", defaults.max_attempts)),
            min_wait_seconds=config.get_float("retry.min_wait_seconds", defaults.min_wait_seconds),
            max_wait_seconds=config.get_float("retry.max_wait_seconds", defaults.max_wait_seconds),
            exponential_multiplier=config.get_float(
                "retry.exponential_multiplier", defaults.exponential_multiplier
            ),
            jitter=config.get_bool("retry.jitter", defaults.jitter),
        )

    def wait_strategy(self):
        strategy = wait_random_exponential if self.jitter else wait_exponential
        return strategy(
            multiplier=self.exponential_multiplier,
            min=self.min_wait_seconds,
            max=self.max_wait_seconds,
        )


def _log_before_sleep(log_context: Optional[dict[str, Any]]) -> Callable[[RetryCallState], None]:
    context = log_context or {}

    def before_sleep(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        log.warning(
            "ledger_read_retry",
            attempt=state.attempt_number,
            error=str(error) if error else None,
            error_type=type(error).__name__ if error else None,
            wait_seconds=round(state.next_action.sleep, 2) if state.next_action else 0,
            **context,
        )

    return before_sleep


async def call_with_retry(
    config: RetryConfig,
    func: Callable[..., Awaitable[T]],
    *args: Any,
    log_context: Optional[dict[str, Any]] = None,
    **kwargs: Any,
) -> T:
    """Await ``func(*args, **kwargs)``, retrying TransientError per ``config``.

    The last error is re-raised unchanged once attempts run out.
    """
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(config.max_attempts),
        wait=config.wait_strategy(),
        retry=retry_if_exception_type(TransientError),
        before_sleep=_log_before_sleep(log_context),
        reraise=True,
    ):
        with attempt:
            return await func(*args, **kwargs)
    raise AssertionError("unreachable")  # pragma: no cover


# Matched against the lowercased message and exception type name.
# Permanent patterns are checked first: "invalid json-rpc response" from a
# flaky gateway is rare, a reverted call mentioning "connection" is not.
_PERMANENT_PATTERNS = (
    "revert",
    "invalid",
    "insufficient funds",
    "nonce too low",
    "replacement transaction underpriced",
    "unauthorized",
    "forbidden",
    "400",
    "401",
    "403",
)

_TRANSIENT_PATTERNS = (
    "timeout",
    "timed out",
    "connection",
    "network",
    "rate limit",
    "too many requests",
    "429",
    "502",
    "503",
    "504",
    "service unavailable",
    "temporarily",
    "header not found",
)


def classify_error(error: Exception) -> ErrorCategory:
    """Sort an exception into an ErrorCategory.

    MigrationError subclasses carry their own category. Others are matched
    by type and message.
    """
    if isinstance(error, MigrationError):
        return error.category
    if isinstance(error, (ConnectionError, asyncio.TimeoutError)):
        return ErrorCategory.TRANSIENT

    haystack = f"{type(error).__name__} {error}".lower()
    if any(p in haystack for p in _PERMANENT_PATTERNS):
        return ErrorCategory.PERMANENT
    if any(p in haystack for p in _TRANSIENT_PATTERNS):
        return ErrorCategory.TRANSIENT
    return ErrorCategory.UNKNOWN


def is_retryable(error: Exception) -> bool:
    return classify_error(error) in (ErrorCategory.TRANSIENT, ErrorCategory.UNKNOWN)


def wrap_external_error(
    error: Exception,
    context: Optional[str] = None,
) -> Union[TransientError, PermanentError]:
    """Wrap a web3 or transport exception for the retry layer.

    Unknown errors become NetworkError so a flaky provider gets the read
    retry budget before the run is aborted.
    """
    message = f"{context}: {error}" if context else str(error)
    if classify_error(error) == ErrorCategory.PERMANENT:
        return PermanentError(message, cause=error)
    return NetworkError(message, cause=error)
