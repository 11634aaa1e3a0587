"""
Unit Tests: Rate Limiting

Tests:
    - TokenBucket reservations, refunds and refill
    - RateLimitWaiter deadline handling and cancellation
    - new_waiter selection
    - Deadline bounds
"""

import asyncio
import time

import pytest

from s3keyspace.core.errors import ErrorCode
from s3keyspace.core.types import Deadline
from s3keyspace.storage.limiter import (
    READ,
    WRITE,
    NoopWaiter,
    RateLimitWaiter,
    TokenBucket,
    new_waiter,
)


class TestTokenBucket:
    """Tests for TokenBucket."""

    def test_burst_is_free(self):
        bucket = TokenBucket(rate=10, capacity=3)
        assert [bucket.reserve() for _ in range(3)] == [0.0, 0.0, 0.0]

    def test_delay_after_burst(self):
        """The next reservation waits one token interval."""
        bucket = TokenBucket(rate=10, capacity=1)
        assert bucket.reserve() == 0.0
        delay = bucket.reserve()
        assert delay == pytest.approx(0.1, abs=0.02)

    def test_reserve_refused_beyond_max_wait(self):
        """Nothing is reserved when the delay exceeds max_wait."""
        bucket = TokenBucket(rate=1, capacity=1)
        bucket.reserve()
        before = bucket.available
        assert bucket.reserve(max_wait=0.5) is None
        assert bucket.available == pytest.approx(before, abs=0.05)

    def test_release_refunds(self):
        bucket = TokenBucket(rate=1, capacity=1)
        bucket.reserve()
        bucket.reserve()
        assert bucket.available < 0
        bucket.release()
        assert bucket.available == pytest.approx(0.0, abs=0.05)

    def test_refill_capped_at_capacity(self):
        bucket = TokenBucket(rate=1000, capacity=2)
        time.sleep(0.01)
        assert bucket.available == 2

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            TokenBucket(rate=0, capacity=1)
        with pytest.raises(ValueError):
            TokenBucket(rate=1, capacity=0)


class TestWaiters:
    """Tests for Waiter implementations."""

    def test_new_waiter_unlimited(self):
        assert isinstance(new_waiter(0, READ), NoopWaiter)
        assert isinstance(new_waiter(-5, WRITE), NoopWaiter)

    def test_new_waiter_limited(self):
        waiter = new_waiter(50, WRITE)
        assert isinstance(waiter, RateLimitWaiter)
        assert waiter.bucket.rate == 50

    @pytest.mark.asyncio
    async def test_noop_never_blocks(self):
        result = await NoopWaiter().wait(Deadline.after(0))
        assert result.is_ok()

    @pytest.mark.asyncio
    async def test_wait_within_deadline(self):
        waiter = RateLimitWaiter(qps=20, op_class=READ, burst=1)
        assert (await waiter.wait()).is_ok()
        started = time.monotonic()
        assert (await waiter.wait(Deadline.after(1.0))).is_ok()
        assert time.monotonic() - started >= 0.03

    @pytest.mark.asyncio
    async def test_deadline_too_close_aborts(self):
        """An unreachable token fails fast with RATE_LIMIT_ABORTED."""
        waiter = RateLimitWaiter(qps=1, op_class=WRITE)
        assert (await waiter.wait()).is_ok()

        started = time.monotonic()
        result = await waiter.wait(Deadline.after(0.05))
        assert time.monotonic() - started < 0.5
        assert result.is_err()
        assert result.error.code == ErrorCode.RATE_LIMIT_ABORTED
        assert "rate limit context ended" in result.error.message
        assert result.error.context["op_class"] == WRITE

    @pytest.mark.asyncio
    async def test_cancelled_wait_refunds_token(self):
        waiter = RateLimitWaiter(qps=2, op_class=READ, burst=1)
        assert (await waiter.wait()).is_ok()

        task = asyncio.ensure_future(waiter.wait())
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        # Only the first reservation is still outstanding.
        assert waiter.bucket.available > -0.5


class TestDeadline:
    """Tests for Deadline."""

    def test_unbounded(self):
        deadline = Deadline.after(None)
        assert deadline.unbounded
        assert deadline.remaining() is None
        assert not deadline.expired()

    def test_bounded(self):
        deadline = Deadline.after(5.0)
        assert not deadline.unbounded
        assert 0 < deadline.remaining() <= 5.0

    def test_zero_is_expired(self):
        deadline = Deadline.after(0)
        assert deadline.expired()
        assert deadline.remaining() == 0.0
