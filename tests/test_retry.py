"""Tests for the retry engine."""

from __future__ import annotations

import time

import pytest

from timecardpilot.retry import RetryPolicy, with_retry


class _Flaky:
    """Fails the first *failures* calls, then returns ``"success"``."""

    def __init__(self, failures: int, exc_factory=lambda n: RuntimeError(f"fail {n}")) -> None:
        self.failures = failures
        self.calls = 0
        self._exc_factory = exc_factory

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self._exc_factory(self.calls)
        return "success"


class _RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.mark.asyncio
async def test_succeeds_on_first_attempt():
    op = _Flaky(0)
    sleep = _RecordingSleep()
    assert await with_retry(op, RetryPolicy(), sleep=sleep) == "success"
    assert op.calls == 1
    assert sleep.delays == []


@pytest.mark.asyncio
@pytest.mark.parametrize("max_attempts", [1, 2, 5])
async def test_permanent_failure_invoked_max_attempts_times(max_attempts):
    op = _Flaky(100)
    policy = RetryPolicy(max_attempts=max_attempts, base_delay=0)
    with pytest.raises(RuntimeError, match=f"fail {max_attempts}$"):
        await with_retry(op, policy, sleep=_RecordingSleep())
    assert op.calls == max_attempts


@pytest.mark.asyncio
async def test_success_on_kth_attempt_stops_retrying():
    op = _Flaky(2)
    sleep = _RecordingSleep()
    result = await with_retry(op, RetryPolicy(max_attempts=5, base_delay=10), sleep=sleep)
    assert result == "success"
    assert op.calls == 3
    # two failures -> exactly two waits, nothing after the success
    assert len(sleep.delays) == 2


@pytest.mark.asyncio
async def test_exponential_backoff_delays():
    op = _Flaky(3)
    sleep = _RecordingSleep()
    policy = RetryPolicy(max_attempts=4, base_delay=100, backoff_factor=3)
    await with_retry(op, policy, sleep=sleep)
    assert sleep.delays == pytest.approx([0.1, 0.3, 0.9])


@pytest.mark.asyncio
async def test_cumulative_real_delay():
    op = _Flaky(2)
    start = time.monotonic()
    result = await with_retry(op, RetryPolicy(max_attempts=3, base_delay=10, backoff_factor=2))
    elapsed_ms = (time.monotonic() - start) * 1000
    assert result == "success"
    assert elapsed_ms >= 30


@pytest.mark.asyncio
async def test_not_retryable_propagates_original_error():
    original = ValueError("structural")
    seen = []

    async def op():
        raise original

    def should_retry(exc):
        seen.append(exc)
        return False

    with pytest.raises(ValueError) as info:
        await with_retry(op, RetryPolicy(should_retry=should_retry), sleep=_RecordingSleep())
    assert info.value is original
    assert seen == [original]


@pytest.mark.asyncio
async def test_predicate_consulted_per_failure():
    op = _Flaky(2, exc_factory=lambda n: ConnectionResetError(f"reset {n}") if n == 1 else KeyError(n))
    policy = RetryPolicy(max_attempts=5, base_delay=0, should_retry=lambda e: isinstance(e, ConnectionError))
    with pytest.raises(KeyError):
        await with_retry(op, policy, sleep=_RecordingSleep())
    assert op.calls == 2


def test_delay_for():
    policy = RetryPolicy(base_delay=10, backoff_factor=2)
    assert [policy.delay_for(i) for i in (1, 2, 3)] == [10, 20, 40]


@pytest.mark.parametrize(
    "kwargs",
    [{"max_attempts": 0}, {"base_delay": -1}, {"backoff_factor": 0.5}],
)
def test_invalid_policy_rejected(kwargs):
    with pytest.raises(ValueError):
        RetryPolicy(**kwargs)
