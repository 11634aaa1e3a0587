"""
Object Storage Backends: Transport Contract and In-Memory Implementation

Provides the abstract interface the keyspace layer consumes:
- Create bucket (idempotent bootstrap)
- Put / Get / Head / Delete object
- List objects strictly after a path, paginated by continuation token

Every method returns Result[T, StorageError]. Only two error codes are
interpreted by callers: STORAGE_OBJECT_NOT_FOUND and STORAGE_BUCKET_EXISTS.
Everything else is passed through as STORAGE_BACKEND_FAILURE.

The in-memory backend implements the same contract for development and
testing, including S3's StartAfter/Prefix/MaxKeys listing semantics and
delete markers for versioned buckets.
"""

from __future__ import annotations

import asyncio
import bisect
import hashlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from s3keyspace.core import constants as C
from s3keyspace.core.errors import StorageError
from s3keyspace.core.types import Result, Ok, Err

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ObjectHead:
    """Metadata returned by a HEAD request."""
    path: str
    size_bytes: int = 0
    etag: str = ""
    delete_marker: bool = False
    version_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ObjectPage:
    """
    One page of a listing.

    Attributes:
        paths: Object names in ascending order.
        next_token: Continuation token, None when the listing is complete.
    """
    paths: List[str] = field(default_factory=list)
    next_token: Optional[str] = None


class ObjectBackend(ABC):
    """Abstract object storage transport bound to one bucket."""

    @property
    @abstractmethod
    def bucket(self) -> str:
        """Bucket every request is addressed to."""
        ...

    @abstractmethod
    async def create_bucket(self) -> Result[None, StorageError]:
        """Create the bucket; Err(STORAGE_BUCKET_EXISTS) if it is already there."""
        ...

    @abstractmethod
    async def get_object(self, path: str) -> Result[bytes, StorageError]:
        """Fetch the full object body."""
        ...

    @abstractmethod
    async def put_object(self, path: str, data: bytes) -> Result[None, StorageError]:
        """Store data at path, replacing any previous object."""
        ...

    @abstractmethod
    async def head_object(self, path: str) -> Result[ObjectHead, StorageError]:
        """Fetch object metadata without the body."""
        ...

    @abstractmethod
    async def delete_object(self, path: str) -> Result[None, StorageError]:
        """Remove the object at path."""
        ...

    @abstractmethod
    async def list_objects(
        self,
        start_after: str = "",
        prefix: str = "",
        continuation_token: Optional[str] = None,
        limit: int = C.DEFAULT_LIST_PAGE_SIZE,
    ) -> Result[ObjectPage, StorageError]:
        """
        List object names strictly greater than start_after.

        Args:
            start_after: Exclusive lower bound ("" = from the beginning).
            prefix: Only names starting with this string.
            continuation_token: Token from the previous page; overrides start_after.
            limit: Maximum names per page.
        """
        ...

    async def close(self) -> None:
        """Release transport resources. Safe to call multiple times."""
        return None


class InMemoryObjectBackend(ObjectBackend):
    """
    In-memory object store with S3 listing semantics.

    Example:
        backend = InMemoryObjectBackend("test-bucket")
        await backend.put_object("p/61/-", b"1")
        page = (await backend.list_objects(start_after="p/")).unwrap()
    """

    __slots__ = (
        "_bucket", "_versioned", "_created", "_objects",
        "_etags", "_order", "_markers", "_lock",
    )

    def __init__(self, bucket: str = "memory", versioned: bool = False) -> None:
        """
        Args:
            bucket: Bucket name reported to callers.
            versioned: Leave delete markers behind on delete, as a
                versioned S3 bucket does.
        """
        self._bucket = bucket
        self._versioned = versioned
        self._created = False
        self._objects: Dict[str, bytes] = {}
        self._etags: Dict[str, str] = {}
        self._order: List[str] = []  # sorted live paths
        self._markers: Set[str] = set()
        self._lock = asyncio.Lock()

    @property
    def bucket(self) -> str:
        return self._bucket

    async def create_bucket(self) -> Result[None, StorageError]:
        if self._created:
            return Err(StorageError.bucket_exists(self._bucket, owned=True))
        self._created = True
        return Ok(None)

    async def get_object(self, path: str) -> Result[bytes, StorageError]:
        async with self._lock:
            data = self._objects.get(path)
            if data is None:
                return Err(StorageError.object_not_found(path))
            return Ok(data)

    async def put_object(self, path: str, data: bytes) -> Result[None, StorageError]:
        async with self._lock:
            if path not in self._objects:
                bisect.insort(self._order, path)
            self._objects[path] = bytes(data)
            self._etags[path] = hashlib.md5(data).hexdigest()
            self._markers.discard(path)
            return Ok(None)

    async def head_object(self, path: str) -> Result[ObjectHead, StorageError]:
        async with self._lock:
            if path in self._markers:
                return Ok(ObjectHead(path=path, delete_marker=True))
            data = self._objects.get(path)
            if data is None:
                return Err(StorageError.object_not_found(path))
            return Ok(ObjectHead(path=path, size_bytes=len(data), etag=self._etags[path]))

    async def delete_object(self, path: str) -> Result[None, StorageError]:
        async with self._lock:
            if path in self._objects:
                del self._objects[path]
                del self._etags[path]
                self._order.pop(bisect.bisect_left(self._order, path))
            if self._versioned:
                self._markers.add(path)
            return Ok(None)

    async def list_objects(
        self,
        start_after: str = "",
        prefix: str = "",
        continuation_token: Optional[str] = None,
        limit: int = C.DEFAULT_LIST_PAGE_SIZE,
    ) -> Result[ObjectPage, StorageError]:
        if limit <= 0:
            return Err(StorageError.backend_failure(
                "list_objects", detail=f"invalid page size {limit}",
            ))
        after = continuation_token if continuation_token is not None else start_after
        async with self._lock:
            idx = bisect.bisect_right(self._order, after) if after else 0
            if prefix:
                idx = max(idx, bisect.bisect_left(self._order, prefix))
            paths: List[str] = []
            while idx < len(self._order) and len(paths) < limit:
                path = self._order[idx]
                if not path.startswith(prefix):
                    break
                paths.append(path)
                idx += 1
            more = idx < len(self._order) and self._order[idx].startswith(prefix)
            return Ok(ObjectPage(paths=paths, next_token=paths[-1] if more and paths else None))

    def __len__(self) -> int:
        return len(self._objects)

    def __repr__(self) -> str:
        return f"InMemoryObjectBackend(bucket={self._bucket!r}, objects={len(self._objects)})"
