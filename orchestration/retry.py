"""Retry helper - RetryPolicy, with_retry and retryable-error classification."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from relay_sdk.logging import get_logger

T = TypeVar("T")

RetryCallback = Callable[[int, BaseException], None]
Sleep = Callable[[float], Awaitable[object]]

_logger = get_logger("orchestration.retry")

_RETRYABLE_SIGNATURES = (
    "HTTP 429",  # rate limit
    "HTTP 502",
    "HTTP 503",
    "HTTP 504",
    "ECONNRESET",
    "ETIMEDOUT",
    "ENOTFOUND",
)


@dataclass
class RetryPolicy:
    """Retry policy with exponential backoff."""

    max_attempts: int = 3
    backoff_ms: int = 1000
    backoff_multiplier: float = 2.0
    max_backoff_ms: int = 30_000


class RetryableError(Exception):
    """Error carrying an explicit retry decision."""

    def __init__(self, message: str, retryable: bool = True):
        self.retryable = retryable
        super().__init__(message)


def compute_backoff_ms(policy: RetryPolicy, attempt: int) -> float:
    """Delay before the retry that follows failed ``attempt`` (1-based)."""
    delay = policy.backoff_ms * (policy.backoff_multiplier ** (attempt - 1))
    return min(delay, policy.max_backoff_ms)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    on_retry: RetryCallback | None = None,
    *,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Run ``operation`` until it succeeds or the attempt budget is spent.

    Args:
        operation: Zero-argument factory returning a fresh awaitable per attempt
        policy: Attempt budget and backoff parameters
        on_retry: Called with (attempt, error) before each backoff delay
        sleep: Awaitable sleep taking seconds

    Returns:
        The operation's result

    Raises:
        The error of the final attempt, unchanged
    """
    max_attempts = max(1, policy.max_attempts)

    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            if attempt == max_attempts:
                raise

            if on_retry is not None:
                on_retry(attempt, exc)

            delay_ms = compute_backoff_ms(policy, attempt)
            _logger.debug("retry_scheduled", attempt=attempt, max_attempts=max_attempts, delay_ms=delay_ms)
            await sleep(delay_ms / 1000)

    raise AssertionError("unreachable")


def is_retryable_error(error: BaseException) -> bool:
    """Advisory classification of transient failures."""
    if isinstance(error, RetryableError):
        return error.retryable

    if isinstance(error, (asyncio.TimeoutError, ConnectionResetError)):
        return True

    message = str(error)
    return any(signature in message for signature in _RETRYABLE_SIGNATURES)
