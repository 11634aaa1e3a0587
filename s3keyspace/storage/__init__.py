"""
Storage Module: Ordered Keyspaces over an Object Store
======================================================

Provides:
- Key codec mapping byte keys to sharded, order-preserving object paths
- Object backend abstraction (aioboto3 S3, in-memory)
- Keyspaces with get/put/delete/has/list/count
- Namespace directories (sub-stores) and the top-level Store
- Read/write token-bucket rate limiting

Design Principles:
-----------------
1. **Backend Agnostic**: Same interface for in-memory and S3
2. **Lazy Loading**: aioboto3 is imported only when connecting
3. **Result Monad**: No exceptions for control flow

Example:
    >>> # Development (in-memory)
    >>> store = (await Store.open(S3Config(bucket_name="dev"), InMemoryObjectBackend("dev"))).unwrap()

    >>> # Production (S3)
    >>> store = (await open_store("app@my-bucket:eu-west-1")).unwrap()
"""

from __future__ import annotations

from s3keyspace.storage.backends import (
    ObjectBackend,
    ObjectHead,
    ObjectPage,
    InMemoryObjectBackend,
)
from s3keyspace.storage.codec import KeyCodec
from s3keyspace.storage.config import S3Config
from s3keyspace.storage.limiter import (
    READ,
    WRITE,
    TokenBucket,
    Waiter,
    NoopWaiter,
    RateLimitWaiter,
    new_waiter,
)
from s3keyspace.storage.keyspace import (
    Keyspace,
    ListVisitor,
    STOP_LISTING,
    prev_key,
)
from s3keyspace.storage.directory import NamespaceDirectory
from s3keyspace.storage.store import Store, open_store


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    # Backends
    "ObjectBackend",
    "ObjectHead",
    "ObjectPage",
    "InMemoryObjectBackend",
    # Codec and configuration
    "KeyCodec",
    "S3Config",
    # Rate limiting
    "READ",
    "WRITE",
    "TokenBucket",
    "Waiter",
    "NoopWaiter",
    "RateLimitWaiter",
    "new_waiter",
    # Keyspaces
    "Keyspace",
    "ListVisitor",
    "STOP_LISTING",
    "prev_key",
    "NamespaceDirectory",
    "Store",
    "open_store",
]
