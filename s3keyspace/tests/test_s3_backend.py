"""
Unit Tests: S3 Object Backend

Tests:
    - botocore ClientError classification
    - Request shapes sent to the S3 client (via a fake client)
    - Behaviour before connect()

A live bucket is exercised only when S3KEYSPACE_TEST_BUCKET is set.
"""

import os
import uuid

import pytest
from botocore.exceptions import ClientError

from s3keyspace.core.errors import ErrorCode
from s3keyspace.storage.config import S3Config
from s3keyspace.storage.s3_backend import S3ObjectBackend, classify_error, error_code
from s3keyspace.storage.store import Store


def client_error(code: str, operation: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeBody:
    def __init__(self, data: bytes) -> None:
        self.data = data

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        return None

    async def read(self) -> bytes:
        return self.data


class FakeS3Client:
    """Records requests and answers from canned responses."""

    def __init__(self) -> None:
        self.requests = []
        self.raise_on = {}
        self.responses = {}

    def __getattr__(self, name):
        async def call(**kwargs):
            self.requests.append((name, kwargs))
            if name in self.raise_on:
                raise self.raise_on[name]
            return self.responses.get(name, {})
        return call


@pytest.fixture
def fake_client() -> FakeS3Client:
    return FakeS3Client()


def backend_with(client: FakeS3Client, region: str = "us-east-1") -> S3ObjectBackend:
    backend = S3ObjectBackend(S3Config(bucket_name="bkt", region=region))
    backend._client = client
    return backend


class TestClassifyError:
    """Tests for classify_error."""

    @pytest.mark.parametrize("code", ["NoSuchKey", "NotFound", "404"])
    def test_not_found(self, code):
        error = classify_error(client_error(code), "head_object", "p/61/-")
        assert error.code == ErrorCode.STORAGE_OBJECT_NOT_FOUND
        assert error.is_not_found
        assert error.context["path"] == "p/61/-"

    def test_bucket_owned(self):
        error = classify_error(client_error("BucketAlreadyOwnedByYou", "CreateBucket"), "create_bucket", bucket="bkt")
        assert error.code == ErrorCode.STORAGE_BUCKET_EXISTS
        assert error.context == {"bucket": "bkt", "owned": True}

    def test_bucket_taken(self):
        error = classify_error(client_error("BucketAlreadyExists", "CreateBucket"), "create_bucket", bucket="bkt")
        assert error.code == ErrorCode.STORAGE_BUCKET_EXISTS
        assert error.context["owned"] is False

    def test_other_client_error(self):
        original = client_error("AccessDenied", "GetObject")
        error = classify_error(original, "get_object", "p/61/-")
        assert error.code == ErrorCode.STORAGE_BACKEND_FAILURE
        assert error.cause is original
        assert not error.is_not_found

    def test_non_client_error(self):
        error = classify_error(ConnectionError("reset"), "put_object", "p/61/-")
        assert error.code == ErrorCode.STORAGE_BACKEND_FAILURE
        assert "reset" in error.message

    def test_error_code(self):
        assert error_code(client_error("SlowDown")) == "SlowDown"


class TestRequests:
    """Requests the backend sends."""

    @pytest.mark.asyncio
    async def test_create_bucket_us_east_1(self, fake_client):
        assert (await backend_with(fake_client).create_bucket()).is_ok()
        assert fake_client.requests == [("create_bucket", {"Bucket": "bkt"})]

    @pytest.mark.asyncio
    async def test_create_bucket_other_region(self, fake_client):
        await backend_with(fake_client, "eu-west-1").create_bucket()
        _, kwargs = fake_client.requests[0]
        assert kwargs["CreateBucketConfiguration"] == {"LocationConstraint": "eu-west-1"}

    @pytest.mark.asyncio
    async def test_create_bucket_owned(self, fake_client):
        fake_client.raise_on["create_bucket"] = client_error("BucketAlreadyOwnedByYou", "CreateBucket")
        result = await backend_with(fake_client).create_bucket()
        assert result.error.code == ErrorCode.STORAGE_BUCKET_EXISTS
        assert result.error.context["owned"] is True

    @pytest.mark.asyncio
    async def test_get_object(self, fake_client):
        fake_client.responses["get_object"] = {"Body": FakeBody(b"value")}
        result = await backend_with(fake_client).get_object("p/61/-")
        assert result.unwrap() == b"value"
        assert fake_client.requests == [("get_object", {"Bucket": "bkt", "Key": "p/61/-"})]

    @pytest.mark.asyncio
    async def test_get_missing(self, fake_client):
        fake_client.raise_on["get_object"] = client_error("NoSuchKey", "GetObject")
        result = await backend_with(fake_client).get_object("p/61/-")
        assert result.error.is_not_found

    @pytest.mark.asyncio
    async def test_head_delete_marker(self, fake_client):
        fake_client.responses["head_object"] = {"DeleteMarker": True, "VersionId": "v1"}
        head = (await backend_with(fake_client).head_object("p/61/-")).unwrap()
        assert head.delete_marker
        assert head.version_id == "v1"

    @pytest.mark.asyncio
    async def test_head_object(self, fake_client):
        fake_client.responses["head_object"] = {"ContentLength": 3, "ETag": '"abc"'}
        head = (await backend_with(fake_client).head_object("p/61/-")).unwrap()
        assert head.size_bytes == 3
        assert head.etag == "abc"
        assert not head.delete_marker

    @pytest.mark.asyncio
    async def test_list_objects(self, fake_client):
        fake_client.responses["list_objects_v2"] = {
            "Contents": [{"Key": "p/61/-"}, {"Key": "p/616/2"}],
            "NextContinuationToken": "tok",
        }
        page = (await backend_with(fake_client).list_objects(
            start_after="p/", prefix="p/", continuation_token=None, limit=2,
        )).unwrap()
        assert page.paths == ["p/61/-", "p/616/2"]
        assert page.next_token == "tok"
        assert fake_client.requests == [("list_objects_v2", {
            "Bucket": "bkt", "MaxKeys": 2, "StartAfter": "p/", "Prefix": "p/",
        })]

    @pytest.mark.asyncio
    async def test_list_last_page(self, fake_client):
        backend = backend_with(fake_client)
        page = (await backend.list_objects(continuation_token="tok")).unwrap()
        assert page.paths == []
        assert page.next_token is None
        assert fake_client.requests[0][1]["ContinuationToken"] == "tok"

    @pytest.mark.asyncio
    async def test_not_connected(self):
        backend = S3ObjectBackend(S3Config(bucket_name="bkt"))
        assert not backend.connected
        result = await backend.get_object("p/61/-")
        assert result.error.code == ErrorCode.STORAGE_BACKEND_FAILURE
        assert "not connected" in result.error.message
        await backend.close()


@pytest.mark.skipif(
    not os.environ.get("S3KEYSPACE_TEST_BUCKET"),
    reason="S3KEYSPACE_TEST_BUCKET not set",
)
class TestLiveBucket:
    """Round trip against a real bucket."""

    @pytest.mark.asyncio
    async def test_round_trip(self):
        config = S3Config(
            bucket_name=os.environ["S3KEYSPACE_TEST_BUCKET"],
            region=os.environ.get("S3KEYSPACE_TEST_REGION", "us-east-1"),
            endpoint_url=os.environ.get("S3KEYSPACE_TEST_ENDPOINT") or None,
            key_prefix=f"s3keyspace-test/{uuid.uuid4().hex}",
        )
        store = (await Store.open(config)).unwrap()
        async with store:
            kv = store.keyspace("live")
            assert (await kv.put(b"k", b"v")).is_ok()
            assert (await kv.get(b"k")).unwrap() == b"v"
            assert (await kv.keys()).unwrap() == [b"k"]
            assert (await kv.delete(b"k")).is_ok()
