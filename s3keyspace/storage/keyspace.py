"""
Keyspace: Byte-Key / Byte-Value Store on One S3 Namespace
=========================================================

Implements the uniform key-value contract against one namespace prefix
within one bucket:

| Operation          | Remote calls                  | Limiter        |
|--------------------|-------------------------------|----------------|
| get(key)           | GET                           | read           |
| put(key, replace)  | HEAD (if not replace), PUT    | read, write    |
| delete(key)        | HEAD, DELETE                  | read, write    |
| has(*keys)         | HEAD per key, concurrently    | read           |
| scan/list_keys     | LIST per page                 | read per page  |
| count()            | 256 concurrent partition scans| via listing    |

Empty Keys:
-----------
S3 has no empty object names, so every operation reports the empty key
as KEY_NOT_FOUND without contacting the backend.

Check-then-act:
---------------
``put(replace=False)`` and ``delete`` probe with HEAD before writing. S3
offers no compare-and-swap, so a concurrent writer can slip in between
the probe and the write. The non-replace guarantee is best-effort.

Listing:
--------
ListObjectsV2 only lists names strictly after ``StartAfter``. To list
keys >= start we list after the encoding of ``prev_key(start)`` and drop
any decoded key that still sorts before ``start``. Paths that do not
decode under this namespace (child namespaces, unrelated objects in a
shared bucket) are skipped.

``count()`` narrows each partition listing to
``KeyCodec.partition_prefix(first_byte)`` so no partition reads another
partition's keys.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from contextlib import aclosing
from typing import (
    Any, AsyncIterator, Callable, Coroutine, List, Optional, Set, TypeVar,
)

from s3keyspace.core import constants as C
from s3keyspace.core.errors import (
    ErrorCode,
    KeyspaceError,
    KeyspaceStoreError,
    StorageError,
)
from s3keyspace.core.types import Deadline, Result, Ok, Err
from s3keyspace.storage.backends import ObjectBackend
from s3keyspace.storage.codec import KeyCodec
from s3keyspace.storage.limiter import NoopWaiter, Waiter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _StopListing:
    """Sentinel a list visitor returns to end the listing without error."""

    _instance: Optional[_StopListing] = None

    def __new__(cls) -> _StopListing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "STOP_LISTING"


STOP_LISTING = _StopListing()

# Visitor result: None to continue, STOP_LISTING to stop, Err to abort.
ListVisitor = Callable[[bytes], Any]


def prev_key(key: bytes) -> bytes:
    """
    Return a string strictly below ``key`` with no stored key between
    it and ``key`` other than ones that sort below ``key`` themselves.

    Trailing zero bytes are truncated (b"a\\x00" -> b"a"); otherwise the
    last byte is decremented (b"b" -> b"a"). The empty key maps to itself.
    """
    if not key:
        return b""
    if key[-1] == 0:
        return key[:-1]
    return key[:-1] + bytes([key[-1] - 1])


class Keyspace:
    """
    Key-value view of one namespace prefix.

    Instances are created and cached by NamespaceDirectory; ask the Store
    for one rather than constructing it directly.

    Example:
        >>> kv = store.keyspace("blobs")
        >>> await kv.put(b"alpha", b"1")
        >>> (await kv.get(b"alpha")).unwrap()
        b'1'
    """

    __slots__ = ("_backend", "_codec", "_reads", "_writes", "_page_size")

    def __init__(
        self,
        backend: ObjectBackend,
        codec: KeyCodec,
        reads: Optional[Waiter] = None,
        writes: Optional[Waiter] = None,
        page_size: int = C.DEFAULT_LIST_PAGE_SIZE,
    ) -> None:
        """
        Args:
            backend: Shared object storage transport.
            codec: Key encoding for this namespace.
            reads: Gate for GET/HEAD/LIST (shared store-wide).
            writes: Gate for PUT/DELETE (shared store-wide).
            page_size: Keys requested per listing page.
        """
        self._backend = backend
        self._codec = codec
        self._reads = reads or NoopWaiter()
        self._writes = writes or NoopWaiter()
        self._page_size = page_size

    @property
    def codec(self) -> KeyCodec:
        return self._codec

    @property
    def prefix(self) -> str:
        return self._codec.prefix

    # -------------------------------------------------------------------------
    # REMOTE CALL PLUMBING
    # -------------------------------------------------------------------------

    async def _remote(
        self,
        operation: str,
        path: str,
        call: Coroutine[Any, Any, Result[T, StorageError]],
        deadline: Deadline,
    ) -> Result[T, StorageError]:
        """Run one backend call, bounded by the operation deadline."""
        if deadline.unbounded:
            return await call
        if deadline.expired():
            call.close()
            return Err(StorageError.timeout(operation, path))
        try:
            return await asyncio.wait_for(call, deadline.remaining())
        except asyncio.TimeoutError:
            return Err(StorageError.timeout(operation, path))

    # -------------------------------------------------------------------------
    # POINT OPERATIONS
    # -------------------------------------------------------------------------

    async def get(
        self,
        key: bytes,
        *,
        timeout: Optional[float] = None,
    ) -> Result[bytes, KeyspaceStoreError]:
        """
        Fetch the value stored under key.

        Returns:
            Ok(value) on success.
            Err(KEY_NOT_FOUND) if key is empty or absent.
            Err(RATE_LIMIT_ABORTED / STORAGE_*) on other failures.
        """
        if not key:
            return Err(KeyspaceError.key_not_found(key))
        deadline = Deadline.after(timeout)

        gate = await self._reads.wait(deadline)
        if gate.is_err():
            return gate

        path = self._codec.encode(key)
        result = await self._remote("get_object", path, self._backend.get_object(path), deadline)
        if result.is_err():
            if result.error.is_not_found:
                return Err(KeyspaceError.key_not_found(key))
            return Err(result.error.with_context(key=key))
        return result

    async def put(
        self,
        key: bytes,
        data: bytes,
        replace: bool = False,
        *,
        timeout: Optional[float] = None,
    ) -> Result[None, KeyspaceStoreError]:
        """
        Store data under key.

        Args:
            key: Non-empty key.
            data: Value bytes.
            replace: Overwrite an existing value. When False, an existing
                key yields Err(KEY_EXISTS) and nothing is written.

        Returns:
            Ok(None) once the backend accepted the write.
        """
        if not key:
            return Err(KeyspaceError.key_not_found(key))
        deadline = Deadline.after(timeout)

        if not replace:
            exists = await self._key_exists(key, deadline)
            if exists.is_err():
                return exists
            if exists.unwrap():
                logger.debug(f"put without replace refused, key exists in {self.prefix!r}")
                return Err(KeyspaceError.key_exists(key))

        gate = await self._writes.wait(deadline)
        if gate.is_err():
            return gate

        path = self._codec.encode(key)
        result = await self._remote(
            "put_object", path, self._backend.put_object(path, bytes(data)), deadline,
        )
        if result.is_err():
            return Err(result.error.with_context(key=key))
        return result

    async def delete(
        self,
        key: bytes,
        *,
        timeout: Optional[float] = None,
    ) -> Result[None, KeyspaceStoreError]:
        """
        Remove key. Deleting an absent key is an error (KEY_NOT_FOUND).
        """
        deadline = Deadline.after(timeout)
        exists = await self._key_exists(key, deadline)
        if exists.is_err():
            return exists
        if not exists.unwrap():
            return Err(KeyspaceError.key_not_found(key))

        gate = await self._writes.wait(deadline)
        if gate.is_err():
            return gate

        path = self._codec.encode(key)
        result = await self._remote("delete_object", path, self._backend.delete_object(path), deadline)
        if result.is_err():
            return Err(result.error.with_context(key=key))
        return result

    async def has(
        self,
        *keys: bytes,
        timeout: Optional[float] = None,
    ) -> Result[Set[bytes], KeyspaceStoreError]:
        """
        Report which of keys are present.

        Probes run concurrently; the result is the unordered subset of
        keys found. The first probe failure aborts the batch.
        """
        deadline = Deadline.after(timeout)
        unique = list(dict.fromkeys(keys))
        results = await asyncio.gather(*(self._key_exists(k, deadline) for k in unique))
        present: Set[bytes] = set()
        for key, result in zip(unique, results):
            if result.is_err():
                return result
            if result.unwrap():
                present.add(key)
        return Ok(present)

    async def _key_exists(self, key: bytes, deadline: Deadline) -> Result[bool, KeyspaceStoreError]:
        """
        HEAD probe shared by put, delete and has.

        Empty keys, missing objects and delete markers all read as absent.
        """
        if not key:
            return Ok(False)

        gate = await self._reads.wait(deadline)
        if gate.is_err():
            return gate

        path = self._codec.encode(key)
        result = await self._remote("head_object", path, self._backend.head_object(path), deadline)
        if result.is_err():
            if result.error.is_not_found:
                return Ok(False)
            return Err(result.error.with_context(key=key))
        return Ok(not result.unwrap().delete_marker)

    # -------------------------------------------------------------------------
    # LISTING
    # -------------------------------------------------------------------------

    def scan(
        self,
        start: bytes = b"",
        *,
        timeout: Optional[float] = None,
    ) -> AsyncIterator[Result[bytes, KeyspaceStoreError]]:
        """
        Iterate keys >= start in ascending byte order.

        Yields Ok(key) per key. A failure is yielded once as Err and ends
        the iteration. Breaking out of the loop stops the listing.

        Example:
            >>> async for item in kv.scan(b"user/"):
            ...     if item.is_err():
            ...         raise item.error
            ...     print(item.unwrap())
        """
        return self._scan(start, Deadline.after(timeout))

    async def _scan(
        self,
        start: bytes,
        deadline: Deadline,
        prefix: Optional[str] = None,
    ) -> AsyncIterator[Result[bytes, KeyspaceStoreError]]:
        start_after = self._codec.lower_bound(prev_key(start))
        if prefix is None:
            prefix = self._codec.namespace_prefix
        token: Optional[str] = None
        pages = 0

        while True:
            gate = await self._reads.wait(deadline)
            if gate.is_err():
                yield gate
                return

            page = await self._remote(
                "list_objects",
                start_after,
                self._backend.list_objects(
                    start_after=start_after,
                    prefix=prefix,
                    continuation_token=token,
                    limit=self._page_size,
                ),
                deadline,
            )
            if page.is_err():
                yield Err(page.error.with_context(start=start))
                return
            pages += 1

            for path in page.unwrap().paths:
                decoded = self._codec.decode(path)
                if decoded.is_err():
                    if decoded.error.code == ErrorCode.KEY_FOREIGN:
                        continue
                    yield decoded
                    return
                key = decoded.unwrap()
                if key < start:
                    continue
                yield Ok(key)

            token = page.unwrap().next_token
            if token is None:
                logger.debug(f"listing {self.prefix!r} from {start!r} done after {pages} page(s)")
                return

    async def list_keys(
        self,
        start: bytes,
        visit: ListVisitor,
        *,
        timeout: Optional[float] = None,
    ) -> Result[None, KeyspaceStoreError]:
        """
        Call visit with each key >= start in ascending order.

        Args:
            start: Inclusive lower bound (b"" for all keys).
            visit: Sync or async callable. Return None to continue,
                STOP_LISTING to end early without error, or an Err to
                abort the listing with that error.

        Returns:
            Ok(None) when the listing completed or was stopped.
        """
        return await self._list(start, visit, Deadline.after(timeout))

    async def _list(
        self,
        start: bytes,
        visit: ListVisitor,
        deadline: Deadline,
        prefix: Optional[str] = None,
    ) -> Result[None, KeyspaceStoreError]:
        async with aclosing(self._scan(start, deadline, prefix)) as items:
            async for item in items:
                if item.is_err():
                    return item
                outcome = visit(item.unwrap())
                if inspect.isawaitable(outcome):
                    outcome = await outcome
                if outcome is STOP_LISTING:
                    return Ok(None)
                if isinstance(outcome, Err):
                    return outcome
        return Ok(None)

    async def keys(
        self,
        start: bytes = b"",
        *,
        timeout: Optional[float] = None,
    ) -> Result[List[bytes], KeyspaceStoreError]:
        """Collect every key >= start into a list."""
        found: List[bytes] = []
        result = await self.list_keys(start, found.append, timeout=timeout)
        return result.map(lambda _: found)

    async def count(self, *, timeout: Optional[float] = None) -> Result[int, KeyspaceStoreError]:
        """
        Count the keys in this namespace.

        Fans out one listing per leading key byte (256 partitions), each
        restricted to that byte's path prefix, and sums the partial counts.
        The first failing partition cancels the rest.
        Rate limits apply through the per-page read gate of each listing.
        """
        deadline = Deadline.after(timeout)

        async def count_partition(first: int) -> Result[int, KeyspaceStoreError]:
            pfx = bytes([first])
            count = 0

            def visit(key: bytes) -> Any:
                nonlocal count
                if not key.startswith(pfx):
                    return STOP_LISTING
                count += 1
                return None

            result = await self._list(
                pfx, visit, deadline,
                prefix=self._codec.partition_prefix(first),
            )
            return result.map(lambda _: count)

        tasks = [
            asyncio.ensure_future(count_partition(i))
            for i in range(C.PARTITION_COUNT)
        ]
        total = 0
        try:
            for next_done in asyncio.as_completed(tasks):
                result = await next_done
                if result.is_err():
                    return result
                total += result.unwrap()
        finally:
            pending = [t for t in tasks if not t.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
        return Ok(total)

    def __repr__(self) -> str:
        return f"Keyspace(bucket={self._backend.bucket!r}, prefix={self.prefix!r})"

