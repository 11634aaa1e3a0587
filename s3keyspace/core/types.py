"""
Core Type Definitions for the S3 Keyspace Adapter

Every keyspace operation answers with a Result instead of raising:
missing and existing keys are ordinary outcomes, and backend failures
travel back to the caller as values carrying their context.

- Ok / Err: the two Result variants
- Timestamp: wall-clock instant stamped on errors for log correlation
- Deadline: monotonic cut-off derived from a caller-supplied timeout

Programming errors (empty key passed to the codec, negative timeout,
invalid configuration) still raise ValueError.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Generic,
    Literal,
    Optional,
    TypeVar,
    Union,
)

T = TypeVar("T")  # value carried by Ok
E = TypeVar("E")  # error carried by Err
U = TypeVar("U")

NANOS_PER_SECOND = 1_000_000_000


# =============================================================================
# RESULT
# =============================================================================
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful outcome holding ``value`` (often None for writes)."""
    
    value: T
    
    def is_ok(self) -> Literal[True]:
        return True
    
    def is_err(self) -> Literal[False]:
        return False
    
    def unwrap(self) -> T:
        return self.value
    
    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        """Replace the value with ``fn(value)``."""
        return Ok(fn(self.value))
    
    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """
    Failed outcome holding ``error``, a KeyspaceStoreError subclass.
    
    ``unwrap()`` on an Err is a bug in the caller and raises the held
    error itself, so the traceback shows the real failure.
    """
    
    error: E
    
    def is_ok(self) -> Literal[False]:
        return False
    
    def is_err(self) -> Literal[True]:
        return True
    
    def unwrap(self) -> Any:
        if isinstance(self.error, BaseException):
            raise self.error
        raise RuntimeError(f"unwrap() on Err: {self.error!r}")
    
    def map(self, fn: Callable[[Any], U]) -> Err[E]:
        """Errors pass through untouched."""
        return self
    
    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result = Union[Ok[T], Err[E]]


# =============================================================================
# TIMESTAMP
# =============================================================================
@dataclass(frozen=True, slots=True, order=True)
class Timestamp:
    """Nanoseconds since the Unix epoch."""
    
    nanos: int
    
    @classmethod
    def now(cls) -> Timestamp:
        return cls(nanos=time.time_ns())
    
    def __repr__(self) -> str:
        return f"Timestamp({self.nanos}ns)"


# =============================================================================
# DEADLINE: CALLER-SUPPLIED CANCELLATION BOUND
# =============================================================================
@dataclass(frozen=True, slots=True)
class Deadline:
    """
    Monotonic cut-off for a single keyspace operation.
    
    A Deadline with ``at_ns=None`` never expires. Every suspension point
    (rate limiter wait, remote call) asks ``remaining()`` for the time it
    may still block.
    
    Example:
        >>> deadline = Deadline.after(2.5)
        >>> await asyncio.wait_for(call(), deadline.remaining())
    """
    
    at_ns: Optional[int] = None
    
    @classmethod
    def after(cls, timeout: Optional[float]) -> Deadline:
        """
        Build a deadline ``timeout`` seconds from now.
        
        Args:
            timeout: Seconds, or None for no deadline.
        
        Raises:
            ValueError: If timeout is negative.
        """
        if timeout is None:
            return NO_DEADLINE
        if timeout < 0:
            raise ValueError(f"timeout must be >= 0, got {timeout}")
        return cls(at_ns=time.monotonic_ns() + int(timeout * NANOS_PER_SECOND))
    
    @property
    def unbounded(self) -> bool:
        return self.at_ns is None
    
    def remaining(self) -> Optional[float]:
        """Seconds left before expiry (clamped at 0), or None if unbounded."""
        if self.at_ns is None:
            return None
        left = self.at_ns - time.monotonic_ns()
        return max(0.0, left / NANOS_PER_SECOND)
    
    def expired(self) -> bool:
        return self.at_ns is not None and time.monotonic_ns() >= self.at_ns
    
    def __repr__(self) -> str:
        if self.at_ns is None:
            return "Deadline(unbounded)"
        return f"Deadline(remaining={self.remaining():.3f}s)"


NO_DEADLINE = Deadline()
