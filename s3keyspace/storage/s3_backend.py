"""
S3 Object Backend
=================

aioboto3 implementation of the ObjectBackend contract for AWS S3 and
S3-compatible services (MinIO, Cloudflare R2, localstack).

Error Mapping:
--------------
| botocore error code                 | StorageError code          |
|-------------------------------------|----------------------------|
| NoSuchKey, NotFound, 404            | STORAGE_OBJECT_NOT_FOUND   |
| BucketAlreadyOwnedByYou             | STORAGE_BUCKET_EXISTS      |
| BucketAlreadyExists                 | STORAGE_BUCKET_EXISTS      |
| anything else                       | STORAGE_BACKEND_FAILURE    |

No retries happen here beyond botocore's own retry configuration.

Thread Safety:
--------------
- aioboto3 clients are safe for concurrent async operations
- The client is the only state and is shared read-only by all keyspaces
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, TYPE_CHECKING

from botocore.exceptions import ClientError

from s3keyspace.core import constants as C
from s3keyspace.core.errors import StorageError
from s3keyspace.core.types import Result, Ok, Err
from s3keyspace.storage.backends import ObjectBackend, ObjectHead, ObjectPage
from s3keyspace.storage.config import S3Config

if TYPE_CHECKING:
    from types_aiobotocore_s3 import S3Client

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "NotFound", "404"})
_BUCKET_OWNED_CODE = "BucketAlreadyOwnedByYou"
_BUCKET_TAKEN_CODE = "BucketAlreadyExists"

# us-east-1 rejects an explicit LocationConstraint.
_IMPLICIT_LOCATION_REGIONS = frozenset({"", "us-east-1"})


def error_code(error: ClientError) -> str:
    """Extract the service error code from a botocore ClientError."""
    return str(error.response.get("Error", {}).get("Code", ""))


def classify_error(
    error: Exception,
    operation: str,
    path: Optional[str] = None,
    bucket: str = "",
) -> StorageError:
    """
    Map a transport exception onto the StorageError taxonomy.

    Args:
        error: Exception raised by aiobotocore.
        operation: S3 operation name, kept as context.
        path: Object name involved, if any.
        bucket: Bucket name, reported for bucket-level errors.
    """
    if isinstance(error, ClientError):
        code = error_code(error)
        if code in _NOT_FOUND_CODES:
            return StorageError.object_not_found(path or "", cause=error)
        if code == _BUCKET_OWNED_CODE:
            return StorageError.bucket_exists(bucket, owned=True, cause=error)
        if code == _BUCKET_TAKEN_CODE:
            return StorageError.bucket_exists(bucket, owned=False, cause=error)
    return StorageError.backend_failure(operation, path, cause=error)


class S3ObjectBackend(ObjectBackend):
    """
    Production S3 transport.

    Example:
        >>> backend = S3ObjectBackend(S3Config(bucket_name="my-bucket"))
        >>> await backend.connect()
        >>> await backend.put_object("p/61/-", b"1")
        >>> await backend.close()
    """

    __slots__ = ("_config", "_session", "_client_cm", "_client")

    def __init__(self, config: S3Config) -> None:
        """
        Args:
            config: S3 connection configuration.

        Note:
            Call `connect()` before performing operations.
        """
        self._config = config
        self._session: Any = None
        self._client_cm: Any = None
        self._client: Optional["S3Client"] = None

    @property
    def bucket(self) -> str:
        return self._config.bucket_name

    @property
    def connected(self) -> bool:
        return self._client is not None

    # -------------------------------------------------------------------------
    # CONNECTION MANAGEMENT
    # -------------------------------------------------------------------------

    async def connect(self) -> Result[None, StorageError]:
        """
        Create the aioboto3 session and S3 client.

        Credentials come from the config when set, otherwise from the
        ambient AWS credential chain.
        """
        if self._client is not None:
            return Ok(None)
        try:
            import aioboto3

            self._session = aioboto3.Session(**self._config.get_session_kwargs())
            self._client_cm = self._session.client("s3", **self._config.get_client_kwargs())
            self._client = await self._client_cm.__aenter__()
        except Exception as e:
            self._client_cm = None
            return Err(StorageError.backend_failure("connect", cause=e))
        logger.debug(f"S3 client ready for bucket {self.bucket!r} in {self._config.region}")
        return Ok(None)

    async def close(self) -> None:
        """
        Close the S3 client and release its HTTP connection pool.

        Safe to call multiple times.
        """
        if self._client_cm is not None:
            await self._client_cm.__aexit__(None, None, None)
        self._client_cm = None
        self._client = None

    def _require_client(self, operation: str) -> Result["S3Client", StorageError]:
        if self._client is None:
            return Err(StorageError.backend_failure(operation, detail="not connected"))
        return Ok(self._client)

    # -------------------------------------------------------------------------
    # BUCKET BOOTSTRAP
    # -------------------------------------------------------------------------

    async def create_bucket(self) -> Result[None, StorageError]:
        client = self._require_client("create_bucket")
        if client.is_err():
            return client
        kwargs: Dict[str, Any] = {"Bucket": self.bucket}
        if self._config.region not in _IMPLICIT_LOCATION_REGIONS:
            kwargs["CreateBucketConfiguration"] = {
                "LocationConstraint": self._config.region,
            }
        try:
            await client.unwrap().create_bucket(**kwargs)
        except Exception as e:
            return Err(classify_error(e, "create_bucket", bucket=self.bucket))
        return Ok(None)

    # -------------------------------------------------------------------------
    # OBJECT OPERATIONS
    # -------------------------------------------------------------------------

    async def get_object(self, path: str) -> Result[bytes, StorageError]:
        client = self._require_client("get_object")
        if client.is_err():
            return client
        try:
            response = await client.unwrap().get_object(Bucket=self.bucket, Key=path)
            async with response["Body"] as stream:
                data = await stream.read()
        except Exception as e:
            return Err(classify_error(e, "get_object", path))
        return Ok(data)

    async def put_object(self, path: str, data: bytes) -> Result[None, StorageError]:
        client = self._require_client("put_object")
        if client.is_err():
            return client
        try:
            await client.unwrap().put_object(Bucket=self.bucket, Key=path, Body=data)
        except Exception as e:
            return Err(classify_error(e, "put_object", path))
        return Ok(None)

    async def head_object(self, path: str) -> Result[ObjectHead, StorageError]:
        client = self._require_client("head_object")
        if client.is_err():
            return client
        try:
            response = await client.unwrap().head_object(Bucket=self.bucket, Key=path)
        except Exception as e:
            return Err(classify_error(e, "head_object", path))
        return Ok(ObjectHead(
            path=path,
            size_bytes=response.get("ContentLength", 0),
            etag=response.get("ETag", "").strip('"'),
            delete_marker=bool(response.get("DeleteMarker", False)),
            version_id=response.get("VersionId"),
        ))

    async def delete_object(self, path: str) -> Result[None, StorageError]:
        client = self._require_client("delete_object")
        if client.is_err():
            return client
        try:
            await client.unwrap().delete_object(Bucket=self.bucket, Key=path)
        except Exception as e:
            return Err(classify_error(e, "delete_object", path))
        return Ok(None)

    async def list_objects(
        self,
        start_after: str = "",
        prefix: str = "",
        continuation_token: Optional[str] = None,
        limit: int = C.DEFAULT_LIST_PAGE_SIZE,
    ) -> Result[ObjectPage, StorageError]:
        client = self._require_client("list_objects_v2")
        if client.is_err():
            return client
        kwargs: Dict[str, Any] = {"Bucket": self.bucket, "MaxKeys": limit}
        if start_after:
            kwargs["StartAfter"] = start_after
        if prefix:
            kwargs["Prefix"] = prefix
        if continuation_token:
            kwargs["ContinuationToken"] = continuation_token
        try:
            response = await client.unwrap().list_objects_v2(**kwargs)
        except Exception as e:
            return Err(classify_error(e, "list_objects_v2", start_after))
        paths = [obj["Key"] for obj in response.get("Contents", [])]
        return Ok(ObjectPage(paths=paths, next_token=response.get("NextContinuationToken")))

    def __repr__(self) -> str:
        return f"S3ObjectBackend(bucket={self.bucket!r}, region={self._config.region!r})"
