"""Tests for with_retry and retryable-error classification."""

import asyncio

import pytest

from orchestration.providers.base import ProviderHTTPError
from orchestration.retry import RetryableError, RetryPolicy, compute_backoff_ms, is_retryable_error, with_retry


class FakeSleep:
    """Records requested delays instead of sleeping."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.mark.asyncio
async def test_with_retry_succeeds_after_two_failures():
    calls = 0
    retries: list[int] = []
    sleep = FakeSleep()

    async def flaky() -> str:
        nonlocal calls
        calls += 1
        if calls < 3:
            raise ConnectionError(f"attempt {calls} failed")
        return "ok"

    result = await with_retry(
        flaky,
        RetryPolicy(max_attempts=3, backoff_ms=100),
        on_retry=lambda attempt, error: retries.append(attempt),
        sleep=sleep,
    )

    assert result == "ok"
    assert calls == 3
    assert retries == [1, 2]
    assert sleep.delays == [0.1, 0.2]


@pytest.mark.asyncio
async def test_with_retry_reraises_final_error_instance():
    errors: list[Exception] = []

    async def always_fails() -> None:
        error = ValueError(f"failure {len(errors) + 1}")
        errors.append(error)
        raise error

    with pytest.raises(ValueError) as exc_info:
        await with_retry(always_fails, RetryPolicy(max_attempts=3, backoff_ms=10), sleep=FakeSleep())

    assert len(errors) == 3
    assert exc_info.value is errors[-1]


@pytest.mark.asyncio
async def test_with_retry_single_attempt_never_sleeps():
    sleep = FakeSleep()

    async def fails() -> None:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await with_retry(fails, RetryPolicy(max_attempts=1), sleep=sleep)

    assert sleep.delays == []


def test_backoff_grows_and_is_capped():
    policy = RetryPolicy(max_attempts=10, backoff_ms=1000, backoff_multiplier=2, max_backoff_ms=5000)

    assert compute_backoff_ms(policy, 1) == 1000
    assert compute_backoff_ms(policy, 2) == 2000
    assert compute_backoff_ms(policy, 3) == 4000
    assert compute_backoff_ms(policy, 4) == 5000


@pytest.mark.parametrize(
    "error, expected",
    [
        (ProviderHTTPError(429, "slow down"), True),
        (ProviderHTTPError(503, "unavailable"), True),
        (ProviderHTTPError(400, "bad request"), False),
        (Exception("socket hang up: ECONNRESET"), True),
        (asyncio.TimeoutError(), True),
        (RetryableError("nope", retryable=False), False),
        (ValueError("invalid prompt"), False),
    ],
)
def test_is_retryable_error(error, expected):
    assert is_retryable_error(error) is expected
