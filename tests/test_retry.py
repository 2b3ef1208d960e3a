import pytest

from link2vault.retry import (
    EXTRACTION_BACKOFF,
    exponential_backoff,
    extraction_backoff,
    retry_with_policy,
)


def test_extraction_backoff_schedule():
    assert [extraction_backoff(n) for n in range(1, 9)] == list(EXTRACTION_BACKOFF)
    assert extraction_backoff(20) == 20.0


def test_exponential_backoff():
    policy = exponential_backoff(2.0)
    assert [policy(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]


@pytest.mark.asyncio
async def test_retries_until_success(sleeps):
    attempts = []
    retries = []

    async def flaky(attempt):
        attempts.append(attempt)
        if attempt < 3:
            raise ConnectionError("reset")
        return "ok"

    result = await retry_with_policy(
        flaky, extraction_backoff, 8,
        on_retry=lambda attempt, total: retries.append((attempt, total)),
        sleep=sleeps,
    )

    assert result == "ok"
    assert attempts == [1, 2, 3]
    assert retries == [(1, 8), (2, 8)]
    assert sleeps.delays == [1.0, 5.0]


@pytest.mark.asyncio
async def test_reraises_last_exception(sleeps):
    async def always_fails(attempt):
        raise ValueError(f"attempt {attempt}")

    with pytest.raises(ValueError, match="attempt 3"):
        await retry_with_policy(always_fails, exponential_backoff(), 3, sleep=sleeps)
    assert sleeps.delays == [2.0, 4.0]


@pytest.mark.asyncio
async def test_returns_last_value_when_retry_predicate_never_satisfied(sleeps):
    async def returns_none(attempt):
        return None

    result = await retry_with_policy(
        returns_none, extraction_backoff, 2, should_retry=lambda outcome: outcome is None, sleep=sleeps
    )
    assert result is None
    assert len(sleeps.delays) == 1


@pytest.mark.asyncio
async def test_non_retryable_exception_is_raised_immediately(sleeps):
    async def fails(attempt):
        raise KeyError("fatal")

    with pytest.raises(KeyError):
        await retry_with_policy(
            fails, extraction_backoff, 5,
            should_retry=lambda outcome: not isinstance(outcome, KeyError),
            sleep=sleeps,
        )
    assert sleeps.delays == []
