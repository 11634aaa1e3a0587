"""
Shared fixtures: in-memory buckets, a fault-injecting backend wrapper,
and opened stores.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest

from s3keyspace.core.errors import StorageError
from s3keyspace.core.types import Result, Err
from s3keyspace.storage.backends import InMemoryObjectBackend, ObjectBackend, ObjectHead, ObjectPage
from s3keyspace.storage.config import S3Config
from s3keyspace.storage.store import Store


class RecordingBackend(ObjectBackend):
    """
    Wraps another backend, recording every call and injecting failures
    or delays per operation name.

    Example:
        backend = RecordingBackend(InMemoryObjectBackend())
        backend.fail["get_object"] = StorageError.backend_failure("get_object", detail="boom")
        backend.delay["head_object"] = 0.5
    """

    def __init__(self, inner: ObjectBackend) -> None:
        self.inner = inner
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.fail: Dict[str, StorageError] = {}
        self.delay: Dict[str, float] = {}
        self.closed = 0

    def ops(self) -> List[str]:
        return [name for name, _ in self.calls]

    async def _call(self, name: str, *args: Any) -> Optional[Err]:
        self.calls.append((name, args))
        if name in self.delay:
            await asyncio.sleep(self.delay[name])
        if name in self.fail:
            return Err(self.fail[name])
        return None

    @property
    def bucket(self) -> str:
        return self.inner.bucket

    async def create_bucket(self) -> Result[None, StorageError]:
        return await self._call("create_bucket") or await self.inner.create_bucket()

    async def get_object(self, path: str) -> Result[bytes, StorageError]:
        return await self._call("get_object", path) or await self.inner.get_object(path)

    async def put_object(self, path: str, data: bytes) -> Result[None, StorageError]:
        return await self._call("put_object", path) or await self.inner.put_object(path, data)

    async def head_object(self, path: str) -> Result[ObjectHead, StorageError]:
        return await self._call("head_object", path) or await self.inner.head_object(path)

    async def delete_object(self, path: str) -> Result[None, StorageError]:
        return await self._call("delete_object", path) or await self.inner.delete_object(path)

    async def list_objects(
        self,
        start_after: str = "",
        prefix: str = "",
        continuation_token: Optional[str] = None,
        limit: int = 1000,
    ) -> Result[ObjectPage, StorageError]:
        failed = await self._call("list_objects", start_after, prefix, continuation_token, limit)
        if failed is not None:
            return failed
        return await self.inner.list_objects(start_after, prefix, continuation_token, limit)

    async def close(self) -> None:
        self.closed += 1
        await self.inner.close()


@pytest.fixture
def memory_backend() -> InMemoryObjectBackend:
    """Fresh in-memory bucket."""
    return InMemoryObjectBackend("test-bucket")


@pytest.fixture
def recording_backend(memory_backend: InMemoryObjectBackend) -> RecordingBackend:
    """Recording wrapper around the in-memory bucket."""
    return RecordingBackend(memory_backend)


@pytest.fixture
def config() -> S3Config:
    return S3Config(bucket_name="test-bucket", key_prefix="p")


@pytest.fixture
async def store(config: S3Config, recording_backend: RecordingBackend) -> Store:
    """Store opened over the recording backend."""
    result = await Store.open(config, backend=recording_backend)
    assert result.is_ok()
    opened = result.unwrap()
    yield opened
    await opened.close()
