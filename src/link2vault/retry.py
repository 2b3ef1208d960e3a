"""Retry policies and a generic async retry helper.

A policy is a pure function ``(attempt) -> delay in seconds`` where
``attempt`` is the 1-based number of the retry about to happen. Sleeping is
injected so callers and tests control time.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryPolicy = Callable[[int], float]

# Delays between in-page extraction attempts
EXTRACTION_BACKOFF = (1.0, 5.0, 5.0, 10.0, 10.0, 15.0, 15.0, 20.0)


def extraction_backoff(attempt: int) -> float:
    """Delay before retry number ``attempt``; clamps to the last step."""
    index = min(max(attempt, 1), len(EXTRACTION_BACKOFF)) - 1
    return EXTRACTION_BACKOFF[index]


def exponential_backoff(base_delay: float = 2.0, factor: float = 2.0) -> RetryPolicy:
    """base, base*factor, base*factor^2, ..."""

    def policy(attempt: int) -> float:
        return base_delay * (factor ** (max(attempt, 1) - 1))

    return policy


def _retry_on_exception(outcome: object) -> bool:
    return isinstance(outcome, Exception)


async def retry_with_policy(
    operation: Callable[[int], Awaitable[T]],
    policy: RetryPolicy,
    max_attempts: int,
    should_retry: Callable[[object], bool] = _retry_on_exception,
    on_retry: Optional[Callable[[int, int], None]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation(attempt)`` until it succeeds or attempts run out.

    ``should_retry`` receives either the returned value or the raised
    exception. When attempts are exhausted the last value is returned or
    the last exception re-raised. ``on_retry(attempt, max_attempts)`` is
    called before each retry, with the 1-based retry number.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(1, max_attempts + 1):
        try:
            outcome: object = await operation(attempt)
        except Exception as e:
            outcome = e

        if attempt == max_attempts or not should_retry(outcome):
            if isinstance(outcome, Exception):
                raise outcome
            return outcome  # type: ignore[return-value]

        delay = policy(attempt)
        logger.debug(
            "Attempt %d/%d did not succeed (%s); retrying in %.1fs",
            attempt, max_attempts, outcome, delay,
        )
        if on_retry is not None:
            on_retry(attempt, max_attempts)
        await sleep(delay)

    raise AssertionError("unreachable")
