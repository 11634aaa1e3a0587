"""
S3 Keyspace Store: Ordered Byte-Key / Byte-Value Storage on Amazon S3

Presents an S3 bucket as a tree of named keyspaces:
- Keyspaces: get / put / delete / has / ordered listing / count
- Key codec: sharded, order-preserving, reversible object paths
- Sub-stores: nested namespaces sharing one transport
- Rate limiting: store-wide read and write token buckets
- Backends: aioboto3 S3 client, in-memory store for tests and demos

Example:
    >>> from s3keyspace import open_store
    >>> store = (await open_store("app@my-bucket:eu-west-1?write_qps=50")).unwrap()
    >>> kv = store.sub("team-a").keyspace("blobs")
    >>> await kv.put(b"alpha", b"1")
    >>> (await kv.count()).unwrap()
    1

License: MIT
"""

__version__ = "1.0.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
from s3keyspace.core.types import (
    Result,
    Ok,
    Err,
    Deadline,
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
from s3keyspace.storage import (
    ObjectBackend,
    InMemoryObjectBackend,
    KeyCodec,
    S3Config,
    Keyspace,
    STOP_LISTING,
    NamespaceDirectory,
    Store,
    open_store,
)

__all__ = [
    "__version__",
    # Core types
    "Result",
    "Ok",
    "Err",
    "Deadline",
    # Errors
    "ErrorCode",
    "KeyspaceStoreError",
    "KeyspaceError",
    "RateLimitError",
    "StorageError",
    "ConfigError",
    "is_key_not_found",
    "is_key_exists",
    # Storage
    "ObjectBackend",
    "InMemoryObjectBackend",
    "KeyCodec",
    "S3Config",
    "Keyspace",
    "STOP_LISTING",
    "NamespaceDirectory",
    "Store",
    "open_store",
]
