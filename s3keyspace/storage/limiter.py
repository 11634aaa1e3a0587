"""
Rate Limiter: Token Gates for Read and Write Requests

Implements per-class request throttling:
- Token bucket with burst support
- Reservation-based waiting (FIFO-fair under contention)
- Deadline-aware: a wait that cannot finish in time fails fast
- No-op waiter when no limit is configured

One Waiter per operation class (read, write) is created by the Store and
shared by every keyspace derived from it, since S3 enforces request rates
per bucket prefix in aggregate.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Optional

from s3keyspace.core.errors import RateLimitError
from s3keyspace.core.types import Deadline, NO_DEADLINE, Result, Ok, Err

logger = logging.getLogger(__name__)

READ = "read"
WRITE = "write"


class TokenBucket:
    """
    Token bucket rate limiter.

    Provides smooth rate limiting with burst support. Callers reserve a
    token up front and sleep until it matures, so the balance may go
    negative while reservations are outstanding.
    Thread-safe via lock.
    """

    __slots__ = ("_capacity", "_rate", "_tokens", "_last_update", "_lock")

    def __init__(self, rate: float, capacity: float) -> None:
        """
        Args:
            rate: Tokens per second to add
            capacity: Maximum tokens (burst size)
        """
        if rate <= 0:
            raise ValueError(f"rate must be > 0, got {rate}")
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._rate = rate
        self._capacity = capacity
        self._tokens = capacity
        self._last_update = time.monotonic()
        self._lock = threading.Lock()

    def reserve(self, tokens: float = 1.0, max_wait: Optional[float] = None) -> Optional[float]:
        """
        Reserve tokens.

        Args:
            tokens: Tokens to take.
            max_wait: Longest acceptable delay in seconds (None = unbounded).

        Returns:
            Seconds the caller must wait before proceeding, or None if that
            would exceed max_wait. Nothing is reserved in the latter case.
        """
        with self._lock:
            self._refill()
            balance = self._tokens - tokens
            delay = 0.0 if balance >= 0 else -balance / self._rate
            if max_wait is not None and delay > max_wait:
                return None
            self._tokens = balance
            return delay

    def release(self, tokens: float = 1.0) -> None:
        """Return tokens from an abandoned reservation."""
        with self._lock:
            self._refill()
            self._tokens = min(self._capacity, self._tokens + tokens)

    def delay_for(self, tokens: float = 1.0) -> float:
        """Seconds until ``tokens`` could be granted, without reserving."""
        with self._lock:
            self._refill()
            balance = self._tokens - tokens
            return 0.0 if balance >= 0 else -balance / self._rate

    def _refill(self) -> None:
        """Add tokens based on elapsed time."""
        now = time.monotonic()
        elapsed = now - self._last_update
        self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
        self._last_update = now

    @property
    def rate(self) -> float:
        return self._rate

    @property
    def available(self) -> float:
        """Current available tokens (negative while reservations are pending)."""
        with self._lock:
            self._refill()
            return self._tokens


class Waiter(ABC):
    """Gate consulted before each remote request of one class."""

    @abstractmethod
    async def wait(self, deadline: Deadline = NO_DEADLINE) -> Result[None, RateLimitError]:
        """
        Block until the request may proceed.

        Returns:
            Ok(None) once a token is held.
            Err(RATE_LIMIT_ABORTED) if the deadline ends first.
        """
        ...


class NoopWaiter(Waiter):
    """Imposes no delay."""

    __slots__ = ()

    async def wait(self, deadline: Deadline = NO_DEADLINE) -> Result[None, RateLimitError]:
        return Ok(None)

    def __repr__(self) -> str:
        return "NoopWaiter()"


class RateLimitWaiter(Waiter):
    """
    Waiter backed by a TokenBucket.

    Example:
        >>> reads = RateLimitWaiter(qps=100, op_class=READ)
        >>> result = await reads.wait(Deadline.after(1.0))
    """

    __slots__ = ("_bucket", "_op_class")

    def __init__(self, qps: int, op_class: str, burst: Optional[int] = None) -> None:
        """
        Args:
            qps: Sustained requests per second (> 0).
            op_class: READ or WRITE, used in errors and logs.
            burst: Bucket capacity; defaults to one second of traffic.
        """
        self._bucket = TokenBucket(rate=float(qps), capacity=float(burst or qps))
        self._op_class = op_class

    async def wait(self, deadline: Deadline = NO_DEADLINE) -> Result[None, RateLimitError]:
        delay = self._bucket.reserve(1.0, deadline.remaining())
        if delay is None:
            needed = self._bucket.delay_for(1.0)
            logger.debug(f"{self._op_class} limiter: deadline too close for {needed:.3f}s wait")
            return Err(RateLimitError.aborted(self._op_class, needed))
        if delay > 0:
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                self._bucket.release(1.0)
                raise
        return Ok(None)

    @property
    def bucket(self) -> TokenBucket:
        return self._bucket

    def __repr__(self) -> str:
        return f"RateLimitWaiter(op_class={self._op_class!r}, qps={self._bucket.rate:g})"


def new_waiter(qps: int, op_class: str) -> Waiter:
    """Build the waiter for a configured QPS; zero or negative means unlimited."""
    if qps <= 0:
        return NoopWaiter()
    return RateLimitWaiter(qps=qps, op_class=op_class)
