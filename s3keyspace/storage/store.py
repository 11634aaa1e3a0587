"""
Store: Top-Level Handle on One Bucket
=====================================

A Store binds one bucket and region, makes sure the bucket exists, and
owns the root of the namespace tree. Keyspaces and sub-stores are
obtained from it by name and share its transport and rate limiters.

Lifecycle:
----------
1. ``Store.open(config)`` / ``open_store(address)`` connect the
   transport and create the bucket if it is absent. A bucket we already
   own counts as success; any other creation failure aborts and closes
   a transport the Store built itself.
2. ``store.keyspace(name)`` / ``store.sub(name)`` materialize the tree
   lazily; instances live as long as the Store.
3. ``store.close()`` always succeeds. It releases the HTTP connection
   pool; no data needs to be flushed.

Example:
    >>> result = await open_store("p@my-bucket:us-west-2?write_qps=100")
    >>> store = result.unwrap()
    >>> kv = store.keyspace()
    >>> await kv.put(b"a", b"1")
    >>> await store.close()
"""

from __future__ import annotations

from typing import Any, Optional

from s3keyspace.core.errors import ErrorCode, KeyspaceStoreError
from s3keyspace.core.types import Result, Ok
from s3keyspace.observability.logging import StructuredLogger
from s3keyspace.storage.backends import ObjectBackend
from s3keyspace.storage.codec import KeyCodec
from s3keyspace.storage.config import S3Config
from s3keyspace.storage.directory import NamespaceDirectory
from s3keyspace.storage.keyspace import Keyspace
from s3keyspace.storage.limiter import READ, WRITE, Waiter, new_waiter
from s3keyspace.storage.s3_backend import S3ObjectBackend

_log = StructuredLogger(__name__)


class Store:
    """
    Root of the namespace tree for one bucket.

    Construct with ``Store.open`` so the bucket is bootstrapped; the plain
    constructor assumes the backend is connected and the bucket exists.
    """

    __slots__ = ("_config", "_backend", "_root", "_reads", "_writes", "_closed")

    def __init__(self, config: S3Config, backend: ObjectBackend) -> None:
        self._config = config
        self._backend = backend
        self._reads: Waiter = new_waiter(config.read_qps, READ)
        self._writes: Waiter = new_waiter(config.write_qps, WRITE)
        self._root = NamespaceDirectory(
            backend,
            KeyCodec(prefix=config.key_prefix, shard_width=config.shard_width),
            reads=self._reads,
            writes=self._writes,
            page_size=config.list_page_size,
        )
        self._closed = False

    @classmethod
    async def open(
        cls,
        config: S3Config,
        backend: Optional[ObjectBackend] = None,
    ) -> Result[Store, KeyspaceStoreError]:
        """
        Connect and bootstrap the bucket.

        Args:
            config: Store configuration.
            backend: Transport to use; defaults to an aioboto3
                S3ObjectBackend built from config. A transport passed in
                stays open if bootstrap fails; one built here is closed.

        Returns:
            Ok(Store), or Err with the connection or bucket failure.
        """
        log = _log.with_extra(bucket=config.bucket_name, region=config.region)
        owned = backend is None
        if backend is None:
            s3 = S3ObjectBackend(config)
            connected = await s3.connect()
            if connected.is_err():
                log.failure("S3 connection failed", connected.error)
                return connected
            backend = s3

        created = await backend.create_bucket()
        if created.is_ok():
            log.info("Bucket created")
        elif created.error.code == ErrorCode.STORAGE_BUCKET_EXISTS and created.error.context.get("owned"):
            log.debug("Bucket already exists and is ours")
        else:
            log.failure("Bucket bootstrap failed", created.error)
            if owned:
                await backend.close()
            return created

        return Ok(cls(config, backend))

    # -------------------------------------------------------------------------
    # NAMESPACE TREE
    # -------------------------------------------------------------------------

    @property
    def root(self) -> NamespaceDirectory:
        return self._root

    def keyspace(self, name: str = "") -> Keyspace:
        """Keyspace called name at the root ("" = the root prefix itself)."""
        return self._root.keyspace(name)

    def sub(self, name: str) -> NamespaceDirectory:
        """Sub-store called name at the root."""
        return self._root.sub(name)

    # -------------------------------------------------------------------------
    # LIFECYCLE
    # -------------------------------------------------------------------------

    @property
    def config(self) -> S3Config:
        return self._config

    @property
    def backend(self) -> ObjectBackend:
        return self._backend

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> Result[None, KeyspaceStoreError]:
        """Release the transport. Always reports Ok."""
        if not self._closed:
            self._closed = True
            await self._backend.close()
            _log.debug("Store closed", bucket=self._backend.bucket)
        return Ok(None)

    async def __aenter__(self) -> Store:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"Store(bucket={self._backend.bucket!r}, prefix={self._root.prefix!r})"


async def open_store(
    address: str,
    backend: Optional[ObjectBackend] = None,
    **overrides: Any,
) -> Result[Store, KeyspaceStoreError]:
    """
    Open a Store from ``[prefix@]bucket:region[?query]``.

    Args:
        address: Store address (see S3Config.from_address).
        backend: Optional transport override (e.g. an in-memory backend).
        **overrides: Extra S3Config fields such as credentials.
    """
    config = S3Config.from_address(address, **overrides)
    if config.is_err():
        return config
    return await Store.open(config.unwrap(), backend=backend)
