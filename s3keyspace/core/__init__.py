"""
Core module: Type definitions and error hierarchy.

This module provides the foundational abstractions for the adapter:
- Result/Either monads for zero-exception control flow
- Deadline values for caller-supplied timeouts
- Error hierarchy with pattern matching support
"""

from s3keyspace.core.types import (
    Result,
    Ok,
    Err,
    Timestamp,
    Deadline,
    NO_DEADLINE,
)
from s3keyspace.core.errors import (
    ErrorCode,
    KeyspaceStoreError,
    KeyspaceError,
    RateLimitError,
    StorageError,
    ConfigError,
    is_key_not_found,
    is_key_exists,
)

__all__ = [
    "Result",
    "Ok",
    "Err",
    "Timestamp",
    "Deadline",
    "NO_DEADLINE",
    "ErrorCode",
    "KeyspaceStoreError",
    "KeyspaceError",
    "RateLimitError",
    "StorageError",
    "ConfigError",
    "is_key_not_found",
    "is_key_exists",
]
