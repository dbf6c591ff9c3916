"""Bounded retry with exponential backoff for async operations."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _always(exc: BaseException) -> bool:
    return True


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try, how long to wait, and which errors qualify.

    Delays are in milliseconds.
    """

    max_attempts: int = 3
    base_delay: float = 1_000
    backoff_factor: float = 2.0
    should_retry: Callable[[BaseException], bool] = _always

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")

    def delay_for(self, attempt: int) -> float:
        """Delay (ms) to wait after failed *attempt* (1-based) before the next one."""
        return self.base_delay * self.backoff_factor ** (attempt - 1)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> T:
    """Await ``operation()`` until it succeeds or *policy* gives up.

    Attempts never overlap. A failure rejected by ``policy.should_retry`` is
    re-raised at once; when attempts run out the last failure is re-raised.
    The operation is responsible for tolerating partial effects of an earlier
    failed attempt.
    """
    for attempt in range(1, policy.max_attempts + 1):
        logger.debug("Attempt %d/%d.", attempt, policy.max_attempts)
        try:
            return await operation()
        except Exception as exc:
            if attempt >= policy.max_attempts:
                logger.error(
                    "All %d attempt(s) failed: %s", policy.max_attempts, exc
                )
                raise
            if not policy.should_retry(exc):
                logger.warning("Error is not retryable: %s", exc)
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "Attempt %d failed (%s), retrying in %.0f ms…", attempt, exc, delay
            )
            await sleep(delay / 1000)

    raise AssertionError("unreachable")  # pragma: no cover
