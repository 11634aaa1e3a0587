"""
Unit Tests: Ordered Listing and Count

Tests:
    - prev_key boundary computation
    - Keys >= start in ascending order, across page boundaries
    - Child namespaces and unrelated objects skipped
    - STOP_LISTING and visitor errors
    - scan() async iteration
    - count() partition fan-out
"""

import pytest

from s3keyspace.core.errors import ErrorCode, KeyspaceError, StorageError
from s3keyspace.core.types import Err
from s3keyspace.storage.backends import InMemoryObjectBackend
from s3keyspace.storage.codec import KeyCodec
from s3keyspace.storage.keyspace import STOP_LISTING, Keyspace, prev_key
from s3keyspace.tests.conftest import RecordingBackend

KEYS = [b"\x00", b"\x00\x00", b"a", b"a\x00", b"ab", b"abc", b"b", b"hello", b"\xff", b"\xff\x01"]


class TestPrevKey:
    """Tests for prev_key."""

    def test_decrements_last_byte(self):
        assert prev_key(b"b") == b"a"
        assert prev_key(b"ab") == b"aa"

    def test_truncates_trailing_zero(self):
        assert prev_key(b"a\x00") == b"a"
        assert prev_key(b"\x00") == b""

    def test_empty(self):
        assert prev_key(b"") == b""

    def test_always_below(self):
        for key in KEYS:
            assert prev_key(key) < key


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend(InMemoryObjectBackend("list-bucket"))


async def filled(backend, page_size=1000, prefix="p") -> Keyspace:
    kv = Keyspace(backend, KeyCodec(prefix=prefix), page_size=page_size)
    for key in reversed(KEYS):
        assert (await kv.put(key, key)).is_ok()
    return kv


class TestListKeys:
    """Tests for list_keys / keys."""

    @pytest.mark.asyncio
    async def test_all_keys_in_order(self, backend):
        kv = await filled(backend)
        assert (await kv.keys()).unwrap() == sorted(KEYS)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("start", [b"\x00", b"a", b"a\x00", b"aa", b"abc", b"c", b"\xff\x00"])
    async def test_start_is_inclusive_bound(self, backend, start):
        kv = await filled(backend)
        assert (await kv.keys(start)).unwrap() == [k for k in sorted(KEYS) if k >= start]

    @pytest.mark.asyncio
    async def test_start_past_end(self, backend):
        kv = await filled(backend)
        assert (await kv.keys(b"\xff\xff")).unwrap() == []

    @pytest.mark.asyncio
    async def test_pages_followed(self, backend):
        """Small pages still yield every key exactly once, in order."""
        kv = await filled(backend, page_size=3)
        backend.calls.clear()
        assert (await kv.keys()).unwrap() == sorted(KEYS)
        assert backend.ops().count("list_objects") == 4

    @pytest.mark.asyncio
    async def test_list_request_shape(self, backend):
        kv = await filled(backend)
        backend.calls.clear()
        await kv.keys(b"b")
        name, (start_after, prefix, token, limit) = backend.calls[0]
        assert name == "list_objects"
        assert start_after == kv.codec.encode(b"a")
        assert prefix == "p/"
        assert token is None
        assert limit == 1000

    @pytest.mark.asyncio
    async def test_empty_namespace(self, backend):
        kv = Keyspace(backend, KeyCodec(prefix="p"))
        assert (await kv.keys()).unwrap() == []

    @pytest.mark.asyncio
    async def test_foreign_objects_skipped(self, backend):
        """Child namespaces and stray objects never show up as keys."""
        kv = await filled(backend)
        child = Keyspace(backend, kv.codec.child("sub"))
        await child.put(b"a", b"child")
        await backend.put_object("p/README.txt", b"stray")
        await backend.put_object("p/zzz/-", b"stray")
        await backend.put_object("other/61/-", b"stray")
        assert (await kv.keys()).unwrap() == sorted(KEYS)
        assert (await child.keys()).unwrap() == [b"a"]

    @pytest.mark.asyncio
    async def test_unprefixed_root_skips_children(self, backend):
        root = Keyspace(backend, KeyCodec())
        await root.put(b"a", b"1")
        await Keyspace(backend, KeyCodec().child("x")).put(b"a", b"2")
        assert (await root.keys()).unwrap() == [b"a"]

    @pytest.mark.asyncio
    async def test_stop_listing(self, backend):
        kv = await filled(backend, page_size=2)
        seen = []

        def visit(key):
            seen.append(key)
            if len(seen) == 3:
                return STOP_LISTING
            return None

        backend.calls.clear()
        result = await kv.list_keys(b"", visit)
        assert result.is_ok()
        assert seen == sorted(KEYS)[:3]
        assert backend.ops().count("list_objects") == 2

    @pytest.mark.asyncio
    async def test_visitor_error_aborts(self, backend):
        kv = await filled(backend)
        failure = KeyspaceError.key_exists(b"a")
        seen = []

        def visit(key):
            seen.append(key)
            return Err(failure)

        result = await kv.list_keys(b"", visit)
        assert result.is_err()
        assert result.error is failure
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_async_visitor(self, backend):
        kv = await filled(backend)
        seen = []

        async def visit(key):
            seen.append(key)

        assert (await kv.list_keys(b"b", visit)).is_ok()
        assert seen == [k for k in sorted(KEYS) if k >= b"b"]

    @pytest.mark.asyncio
    async def test_list_failure(self, backend):
        kv = await filled(backend)
        backend.fail["list_objects"] = StorageError.backend_failure("list_objects", detail="denied")
        result = await kv.keys()
        assert result.is_err()
        assert result.error.code == ErrorCode.STORAGE_BACKEND_FAILURE


class TestScan:
    """Tests for scan()."""

    @pytest.mark.asyncio
    async def test_iterates_results(self, backend):
        kv = await filled(backend, page_size=4)
        found = [item.unwrap() async for item in kv.scan(b"ab")]
        assert found == [k for k in sorted(KEYS) if k >= b"ab"]

    @pytest.mark.asyncio
    async def test_error_is_last_item(self, backend):
        kv = await filled(backend)
        backend.fail["list_objects"] = StorageError.backend_failure("list_objects", detail="denied")
        items = [item async for item in kv.scan()]
        assert len(items) == 1
        assert items[0].is_err()


class TestCount:
    """Tests for count()."""

    @pytest.mark.asyncio
    async def test_counts_all_keys(self, backend):
        kv = await filled(backend, page_size=2)
        assert (await kv.count()).unwrap() == len(KEYS)

    @pytest.mark.asyncio
    async def test_empty(self, backend):
        kv = Keyspace(backend, KeyCodec(prefix="p"))
        assert (await kv.count()).unwrap() == 0

    @pytest.mark.asyncio
    async def test_one_listing_per_partition(self, backend):
        kv = Keyspace(backend, KeyCodec(prefix="p"))
        await kv.count()
        assert backend.ops().count("list_objects") == 256

    @pytest.mark.asyncio
    async def test_partitions_read_only_their_own_keys(self, backend):
        kv = Keyspace(backend, KeyCodec(prefix="p"), page_size=10)
        for i in range(50):
            assert (await kv.put(b"`" + bytes([i]), b"1")).is_ok()
            assert (await kv.put(b"a" + bytes([i]), b"1")).is_ok()
        backend.calls.clear()

        assert (await kv.count()).unwrap() == 100
        lists = [args for name, args in backend.calls if name == "list_objects"]
        # 254 empty partitions plus five full pages each for "`" and "a".
        assert len(lists) == 254 + 5 + 5
        assert {prefix for _, prefix, _, _ in lists} == {f"p/{i:02x}" for i in range(256)}

    @pytest.mark.asyncio
    async def test_ignores_child_namespaces(self, backend):
        kv = await filled(backend)
        await Keyspace(backend, kv.codec.child("x")).put(b"z", b"1")
        assert (await kv.count()).unwrap() == len(KEYS)

    @pytest.mark.asyncio
    async def test_failure(self, backend):
        kv = await filled(backend)
        backend.fail["list_objects"] = StorageError.backend_failure("list_objects", detail="denied")
        result = await kv.count()
        assert result.is_err()
        assert result.error.code == ErrorCode.STORAGE_BACKEND_FAILURE
