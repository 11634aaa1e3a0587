"""
Error Hierarchy for the S3 Keyspace Adapter

Design Principles:
- Forbid exceptions for control flow (use Result types)
- Expected outcomes (KEY_NOT_FOUND, KEY_EXISTS) are recoverable values
- Backend failures are wrapped with operation context, never reinterpreted
- Carry full error context for debugging and audit trails

Each error type includes:
- Unique error code for programmatic handling
- Human-readable message for logging
- Optional cause chain for root cause analysis
- Timestamp for correlation with logs

Usage:
    result = await kv.get(b"alpha")
    match result:
        case Ok(value):
            process(value)
        case Err(KeyspaceError(code=ErrorCode.KEY_NOT_FOUND)):
            handle_missing()
        case Err(error):
            maybe_retry(error)
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from s3keyspace.core.types import Timestamp


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Unique error codes for programmatic error handling.
    
    Codes are grouped by subsystem:
    - 1xxx: Keyspace contract outcomes
    - 2xxx: Rate limiting
    - 3xxx: Object storage backend
    - 4xxx: Configuration
    """
    
    # Keyspace errors (1xxx)
    KEY_NOT_FOUND = 1001
    KEY_EXISTS = 1002
    KEY_FOREIGN = 1003
    
    # Rate limit errors (2xxx)
    RATE_LIMIT_ABORTED = 2001
    
    # Storage backend errors (3xxx)
    STORAGE_OBJECT_NOT_FOUND = 3001
    STORAGE_BUCKET_EXISTS = 3002
    STORAGE_BACKEND_FAILURE = 3003
    STORAGE_TIMEOUT = 3004
    
    # Configuration errors (4xxx)
    CONFIG_INVALID_ADDRESS = 4001
    CONFIG_INVALID_OPTION = 4002


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass
class KeyspaceStoreError(Exception):
    """
    Base class for all adapter errors.
    
    Provides common infrastructure for error handling:
    - Unique error ID for log correlation
    - Error code for programmatic handling
    - Timestamp for correlation
    - Cause chain for root cause analysis
    """
    
    code: ErrorCode
    message: str
    error_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: Timestamp = field(default_factory=Timestamp.now)
    cause: Optional[BaseException] = None
    context: dict[str, Any] = field(default_factory=dict)
    
    def __post_init__(self) -> None:
        # Initialize Exception base class with message
        super().__init__(self.message)
    
    def with_context(self, **kwargs: Any) -> KeyspaceStoreError:
        """
        Add context to error (returns new instance of the same class).
        
        Context is useful for debugging but should not
        contain sensitive information.
        """
        return replace(self, context={**self.context, **kwargs})
    
    def to_dict(self) -> dict[str, Any]:
        """Serialize error to dictionary for structured logging."""
        return {
            "error_id": self.error_id,
            "code": self.code.name,
            "code_value": self.code.value,
            "message": self.message,
            "timestamp_nanos": self.timestamp.nanos,
            "context": self.context,
        }
    
    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message} (id={self.error_id[:8]})"
    
    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.name}, "
            f"message={self.message!r}, "
            f"error_id={self.error_id!r})"
        )


def _show_key(key: bytes) -> str:
    """Render a key for messages; printable keys are shown verbatim."""
    try:
        text = key.decode("utf-8")
    except UnicodeDecodeError:
        return key.hex()
    return repr(text) if text.isprintable() else key.hex()


# =============================================================================
# KEYSPACE ERRORS (GET/PUT/DELETE/LIST CONTRACT)
# =============================================================================
@dataclass
class KeyspaceError(KeyspaceStoreError):
    """
    Contract-level outcomes of keyspace operations.
    
    KEY_NOT_FOUND and KEY_EXISTS are expected, recoverable results.
    KEY_FOREIGN is internal to listing and never reaches callers.
    """
    
    @classmethod
    def key_not_found(cls, key: bytes) -> KeyspaceError:
        """Key is empty, absent, or covered by a delete marker."""
        return cls(
            code=ErrorCode.KEY_NOT_FOUND,
            message=f"key not found: {_show_key(key)}",
            context={"key": key},
        )
    
    @classmethod
    def key_exists(cls, key: bytes) -> KeyspaceError:
        """Non-replacing put against a present key."""
        return cls(
            code=ErrorCode.KEY_EXISTS,
            message=f"key already exists: {_show_key(key)}",
            context={"key": key},
        )
    
    @classmethod
    def foreign_key(cls, path: str, reason: str) -> KeyspaceError:
        """Object path does not belong to this namespace's encoding."""
        return cls(
            code=ErrorCode.KEY_FOREIGN,
            message=f"not a key of this namespace: {path!r} ({reason})",
            context={"path": path, "reason": reason},
        )


# =============================================================================
# RATE LIMIT ERRORS
# =============================================================================
@dataclass
class RateLimitError(KeyspaceStoreError):
    """Errors from the read/write token gates."""
    
    @classmethod
    def aborted(cls, op_class: str, wait_seconds: float) -> RateLimitError:
        """Deadline ended before a token could be granted."""
        return cls(
            code=ErrorCode.RATE_LIMIT_ABORTED,
            message=(
                f"rate limit context ended: {op_class} token needs "
                f"{wait_seconds:.3f}s beyond deadline"
            ),
            context={"op_class": op_class, "wait_seconds": wait_seconds},
        )


# =============================================================================
# STORAGE ERRORS (OBJECT STORAGE COLLABORATOR)
# =============================================================================
@dataclass
class StorageError(KeyspaceStoreError):
    """
    Errors reported by the object-storage backend.
    
    Only "not found" and "bucket exists" are interpreted; everything
    else is a passthrough failure that callers may retry.
    """
    
    @classmethod
    def object_not_found(cls, path: str, cause: Optional[BaseException] = None) -> StorageError:
        return cls(
            code=ErrorCode.STORAGE_OBJECT_NOT_FOUND,
            message=f"object not found: {path}",
            cause=cause,
            context={"path": path},
        )
    
    @classmethod
    def bucket_exists(
        cls,
        bucket: str,
        owned: bool,
        cause: Optional[BaseException] = None,
    ) -> StorageError:
        """Bucket creation found an existing bucket."""
        return cls(
            code=ErrorCode.STORAGE_BUCKET_EXISTS,
            message=f"bucket {bucket!r} already exists",
            cause=cause,
            context={"bucket": bucket, "owned": owned},
        )
    
    @classmethod
    def backend_failure(
        cls,
        operation: str,
        path: Optional[str] = None,
        cause: Optional[BaseException] = None,
        detail: Optional[str] = None,
    ) -> StorageError:
        """Opaque backend failure (permission, transient network, malformed response)."""
        where = f" {path}" if path is not None else ""
        why = detail if detail is not None else (str(cause) if cause else "unknown error")
        return cls(
            code=ErrorCode.STORAGE_BACKEND_FAILURE,
            message=f"{operation}{where}: {why}",
            cause=cause,
            context={"operation": operation, "path": path},
        )
    
    @classmethod
    def timeout(cls, operation: str, path: Optional[str] = None) -> StorageError:
        """Remote call did not finish before the operation deadline."""
        where = f" {path}" if path is not None else ""
        return cls(
            code=ErrorCode.STORAGE_TIMEOUT,
            message=f"{operation}{where}: deadline exceeded",
            context={"operation": operation, "path": path},
        )
    
    @property
    def is_not_found(self) -> bool:
        return self.code == ErrorCode.STORAGE_OBJECT_NOT_FOUND


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================
@dataclass
class ConfigError(KeyspaceStoreError):
    """Errors building connection settings from an address or environment."""
    
    @classmethod
    def invalid_address(cls, address: str, reason: str) -> ConfigError:
        return cls(
            code=ErrorCode.CONFIG_INVALID_ADDRESS,
            message=f"invalid S3 address {address!r}: {reason}",
            context={"address": address},
        )
    
    @classmethod
    def invalid_option(cls, name: str, value: Any, reason: str) -> ConfigError:
        return cls(
            code=ErrorCode.CONFIG_INVALID_OPTION,
            message=f"invalid option {name}={value!r}: {reason}",
            context={"option": name, "value": str(value)[:100]},
        )


# =============================================================================
# PREDICATES
# =============================================================================
def is_key_not_found(error: Any) -> bool:
    """Report whether error is a KEY_NOT_FOUND outcome."""
    return isinstance(error, KeyspaceStoreError) and error.code == ErrorCode.KEY_NOT_FOUND


def is_key_exists(error: Any) -> bool:
    """Report whether error is a KEY_EXISTS outcome."""
    return isinstance(error, KeyspaceStoreError) and error.code == ErrorCode.KEY_EXISTS
