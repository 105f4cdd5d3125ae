"""Tests for retry classification, backoff and the concurrency limiter."""

import asyncio

import pytest

from chunkloom.core.exceptions import TaskCancelledError, is_cancellation
from chunkloom.utils.concurrency import ConcurrencyLimiter, p_limit
from chunkloom.utils.retry import (
    RetryOptions,
    compute_delay,
    is_retryable_error,
    with_retry,
)

FAST = RetryOptions(max_retries=3, initial_delay=0, jitter=0)


class Flaky:
    """Fails ``failures`` times with ``error`` and then returns "ok"."""

    def __init__(self, failures: int, error: Exception):
        self.failures = failures
        self.error = error
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


class TestRetryClassification:
    @pytest.mark.parametrize(
        "error",
        [
            ConnectionError("reset by peer"),
            asyncio.TimeoutError(),
            RuntimeError("HTTP 429 Too Many Requests"),
            RuntimeError("upstream returned 503"),
            RuntimeError("request timed out"),
            RuntimeError("ECONNRESET"),
        ],
    )
    def test_transient_errors_are_retryable(self, error):
        assert is_retryable_error(error)

    @pytest.mark.parametrize(
        "error",
        [ValueError("invalid input"), KeyError("missing"), RuntimeError("401 unauthorized")],
    )
    def test_other_errors_are_not_retryable(self, error):
        assert not is_retryable_error(error)

    def test_cancellation_detection(self):
        assert is_cancellation(TaskCancelledError("job-1"))
        assert is_cancellation(RuntimeError("Operation was cancelled"))
        assert not is_cancellation(RuntimeError("boom"))


class TestBackoff:
    def test_delay_grows_exponentially(self):
        options = RetryOptions(initial_delay=1.0, backoff_factor=2.0, jitter=0)
        assert [compute_delay(n, options) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]

    def test_delay_is_capped(self):
        options = RetryOptions(initial_delay=10.0, max_delay=15.0, jitter=0)
        assert compute_delay(5, options) == 15.0

    def test_jitter_stays_within_bounds(self):
        options = RetryOptions(initial_delay=1.0, jitter=0.1)
        for _ in range(50):
            assert 0.9 <= compute_delay(1, options) <= 1.1


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_succeeds_after_transient_failures(self):
        op = Flaky(2, ConnectionError("network down"))
        assert await with_retry(op, FAST) == "ok"
        assert op.calls == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        op = Flaky(10, RuntimeError("503 service unavailable"))
        with pytest.raises(RuntimeError, match="503"):
            await with_retry(op, FAST)
        assert op.calls == 4

    @pytest.mark.asyncio
    async def test_non_retryable_error_propagates_immediately(self):
        op = Flaky(1, ValueError("bad request"))
        with pytest.raises(ValueError):
            await with_retry(op, FAST)
        assert op.calls == 1

    @pytest.mark.asyncio
    async def test_on_retry_callback(self):
        seen = []
        options = RetryOptions(
            max_retries=2,
            initial_delay=0,
            jitter=0,
            on_retry=lambda attempt, error, delay: seen.append((attempt, str(error))),
        )
        op = Flaky(2, RuntimeError("rate limit exceeded"))

        assert await with_retry(op, options) == "ok"
        assert seen == [(1, "rate limit exceeded"), (2, "rate limit exceeded")]

    @pytest.mark.asyncio
    async def test_total_backoff_stays_within_bound(self):
        delays = []
        options = RetryOptions(
            max_retries=3,
            initial_delay=0.01,
            backoff_factor=2.0,
            jitter=0.1,
            on_retry=lambda attempt, error, delay: delays.append(delay),
        )
        op = Flaky(10, RuntimeError("502 bad gateway"))

        with pytest.raises(RuntimeError):
            await with_retry(op, options)

        assert op.calls == 4
        assert len(delays) == 3
        assert sum(delays) <= 0.01 * (1 + 2.0 + 2.0**2) * 1.1 + 1e-9

    @pytest.mark.asyncio
    async def test_abort_signal_interrupts_backoff(self):
        abort = asyncio.Event()
        options = RetryOptions(max_retries=3, initial_delay=30.0, jitter=0)

        async def op():
            abort.set()
            raise ConnectionError("network down")

        with pytest.raises(TaskCancelledError):
            await asyncio.wait_for(with_retry(op, options, abort_signal=abort), timeout=5)

    @pytest.mark.asyncio
    async def test_abort_signal_unset_still_retries(self):
        op = Flaky(2, ConnectionError("network down"))
        assert await with_retry(op, FAST, abort_signal=asyncio.Event()) == "ok"
        assert op.calls == 3


class TestConcurrencyLimiter:
    def test_rejects_zero_limit(self):
        with pytest.raises(ValueError):
            ConcurrencyLimiter(0)

    @pytest.mark.asyncio
    async def test_never_exceeds_limit(self):
        limiter = ConcurrencyLimiter(2)
        running = 0
        peak = 0

        async def work(n: int) -> int:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return n * 10

        results = await asyncio.gather(*(limiter.run(work, n) for n in range(6)))

        assert results == [0, 10, 20, 30, 40, 50]
        assert peak == 2
        assert limiter.active_count == 0
        assert limiter.pending_count == 0

    @pytest.mark.asyncio
    async def test_waiters_start_in_fifo_order(self):
        limiter = ConcurrencyLimiter(1)
        started = []

        async def work(n: int) -> None:
            started.append(n)
            await asyncio.sleep(0)

        await asyncio.gather(*(limiter.run(work, n) for n in range(5)))
        assert started == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_failure_releases_slot(self):
        limiter = ConcurrencyLimiter(1)

        async def fail() -> None:
            raise RuntimeError("boom")

        async def succeed() -> str:
            return "done"

        with pytest.raises(RuntimeError):
            await limiter.run(fail)
        assert await limiter.run(succeed) == "done"
        assert limiter.active_count == 0

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_leak_slot(self):
        limiter = ConcurrencyLimiter(1)
        gate = asyncio.Event()

        async def blocker() -> None:
            await gate.wait()

        first = asyncio.create_task(limiter.run(blocker))
        await asyncio.sleep(0)
        waiting = asyncio.create_task(limiter.run(blocker))
        await asyncio.sleep(0)
        assert limiter.pending_count == 1

        waiting.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiting
        gate.set()
        await first

        assert limiter.active_count == 0
        assert limiter.pending_count == 0

    @pytest.mark.asyncio
    async def test_p_limit_shares_one_limit(self):
        limit = p_limit(1)
        order = []

        async def work(tag: str) -> None:
            order.append(f"start {tag}")
            await asyncio.sleep(0)
            order.append(f"end {tag}")

        await asyncio.gather(limit(work, "a"), limit(work, "b"))
        assert order == ["start a", "end a", "start b", "end b"]
