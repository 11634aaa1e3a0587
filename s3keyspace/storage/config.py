"""
Store Configuration Module
==========================

Type-safe, immutable configuration for the S3 keyspace store.

Design Principles:
------------------
1. **Immutability**: Frozen dataclass, safe to share between keyspaces
2. **Validation**: Pre-conditions checked at construction time
3. **Sources**: Address strings, environment variables, or keyword arguments

Address Format:
---------------
    [prefix@]bucket:region[?query]

Query parameters:
    read_qps   Read requests per second (absent or <= 0: unlimited)
    write_qps  Write requests per second (absent or <= 0: unlimited)
    shard      Shard width in hex characters (default 3)
    endpoint   Custom endpoint URL (MinIO, R2, localstack)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl

from s3keyspace.core import constants as C
from s3keyspace.core.errors import ConfigError
from s3keyspace.core.types import Result, Ok, Err

_QUERY_KEYS = frozenset({"read_qps", "write_qps", "shard", "endpoint"})


def _parse_int(name: str, raw: str) -> Result[int, ConfigError]:
    try:
        return Ok(int(raw.strip()))
    except ValueError:
        return Err(ConfigError.invalid_option(name, raw, "must be an integer"))


@dataclass(frozen=True, slots=True)
class S3Config:
    """
    S3 keyspace store configuration.

    Attributes:
        bucket_name: S3 bucket name (required).
        region: AWS region; also the bucket's LocationConstraint.
        key_prefix: Prefix prepended to every object name.
        shard_width: Hex characters per shard directory (0 disables).
        read_qps: Read requests per second; <= 0 means unlimited.
        write_qps: Write requests per second; <= 0 means unlimited.
        list_page_size: Keys per ListObjectsV2 page (1..1000).
        endpoint_url: Custom endpoint for MinIO/R2 (None for AWS).
        access_key_id: AWS access key (None for ambient credentials).
        secret_access_key: AWS secret key (None for ambient credentials).
        session_token: Temporary session token for STS.
        max_concurrency: HTTP connection pool size.
        connect_timeout_seconds: TCP connect timeout.
        read_timeout_seconds: Socket read timeout.
        max_retries: SDK-level retry attempts for transient failures.
        use_ssl: Use HTTPS for connections.
        verify_ssl: Verify SSL certificates (disable for self-signed).
    """
    bucket_name: str
    region: str = C.DEFAULT_REGION
    key_prefix: str = ""
    shard_width: int = C.DEFAULT_SHARD_WIDTH
    read_qps: int = 0
    write_qps: int = 0
    list_page_size: int = C.DEFAULT_LIST_PAGE_SIZE
    endpoint_url: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None
    max_concurrency: int = C.DEFAULT_MAX_CONCURRENCY
    connect_timeout_seconds: int = C.DEFAULT_CONNECT_TIMEOUT_S
    read_timeout_seconds: int = C.DEFAULT_READ_TIMEOUT_S
    max_retries: int = C.DEFAULT_MAX_RETRIES
    use_ssl: bool = True
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """
        Validate configuration invariants.

        Raises:
            ValueError: If any invariant is violated.
        """
        if not self.bucket_name:
            raise ValueError("bucket_name must be non-empty")
        if self.shard_width < 0:
            raise ValueError(f"shard_width must be >= 0, got {self.shard_width}")
        if not 1 <= self.list_page_size <= C.MAX_LIST_PAGE_SIZE:
            raise ValueError(
                f"list_page_size must be in 1..{C.MAX_LIST_PAGE_SIZE}, "
                f"got {self.list_page_size}"
            )
        if self.max_concurrency <= 0:
            raise ValueError(f"max_concurrency must be > 0, got {self.max_concurrency}")
        if self.connect_timeout_seconds <= 0:
            raise ValueError("connect_timeout_seconds must be > 0")
        if self.read_timeout_seconds <= 0:
            raise ValueError("read_timeout_seconds must be > 0")

    # -------------------------------------------------------------------------
    # CONSTRUCTORS
    # -------------------------------------------------------------------------

    @classmethod
    def from_address(cls, address: str, **overrides: Any) -> Result[S3Config, ConfigError]:
        """
        Parse ``[prefix@]bucket:region[?query]``.

        Args:
            address: Store address.
            **overrides: Extra S3Config fields (credentials, timeouts).

        Returns:
            Ok(S3Config) or Err(ConfigError) describing the problem.

        Example:
            >>> S3Config.from_address("logs@my-bucket:us-west-2?read_qps=50")
        """
        base, _, query = address.partition("?")
        prefix, at, bucket_region = base.partition("@")
        if not at:
            prefix, bucket_region = "", base
        bucket, colon, region = bucket_region.partition(":")
        if not colon:
            return Err(ConfigError.invalid_address(address, "requires bucket:region"))
        if not bucket:
            return Err(ConfigError.invalid_address(address, "empty bucket name"))

        fields: Dict[str, Any] = {"key_prefix": prefix}
        for name, raw in parse_qsl(query, keep_blank_values=True):
            if name not in _QUERY_KEYS:
                return Err(ConfigError.invalid_option(name, raw, "unknown parameter"))
            if name == "endpoint":
                fields["endpoint_url"] = raw or None
                continue
            parsed = _parse_int(name, raw)
            if parsed.is_err():
                return parsed
            if name == "shard":
                fields["shard_width"] = parsed.unwrap()
            else:
                fields[name] = parsed.unwrap()
        fields.update(overrides)

        try:
            return Ok(cls(bucket_name=bucket, region=region or C.DEFAULT_REGION, **fields))
        except (TypeError, ValueError) as e:
            return Err(ConfigError.invalid_address(address, str(e)))

    @classmethod
    def from_env(cls, prefix: str = "S3") -> S3Config:
        """
        Construct configuration from environment variables.

        Environment Variables:
        - {prefix}_BUCKET: Bucket name (required)
        - {prefix}_REGION: AWS region (default: us-east-1)
        - {prefix}_KEY_PREFIX: Namespace prefix
        - {prefix}_SHARD_WIDTH: Shard width (default: 3)
        - {prefix}_READ_QPS / {prefix}_WRITE_QPS: Rate limits (default: unlimited)
        - {prefix}_ENDPOINT_URL: Custom endpoint URL
        - {prefix}_ACCESS_KEY_ID / {prefix}_SECRET_ACCESS_KEY: Credentials
        - AWS_SESSION_TOKEN: STS session token
        - {prefix}_MAX_CONCURRENCY: Connection pool size
        - {prefix}_USE_SSL / {prefix}_VERIFY_SSL: TLS switches (default: true)

        Raises:
            ValueError: If the bucket is missing or a value is invalid.
        """
        def _get(key: str, default: str = "") -> str:
            return os.environ.get(f"{prefix}_{key}", default)

        def _get_int(key: str, default: int) -> int:
            val = _get(key)
            return int(val) if val else default

        def _get_bool(key: str, default: bool) -> bool:
            val = _get(key).lower()
            if val in ("true", "1", "yes"):
                return True
            if val in ("false", "0", "no"):
                return False
            return default

        bucket = _get("BUCKET")
        if not bucket:
            raise ValueError(f"Environment variable {prefix}_BUCKET is required")

        return cls(
            bucket_name=bucket,
            region=_get("REGION", C.DEFAULT_REGION),
            key_prefix=_get("KEY_PREFIX"),
            shard_width=_get_int("SHARD_WIDTH", C.DEFAULT_SHARD_WIDTH),
            read_qps=_get_int("READ_QPS", 0),
            write_qps=_get_int("WRITE_QPS", 0),
            endpoint_url=_get("ENDPOINT_URL") or None,
            access_key_id=_get("ACCESS_KEY_ID") or None,
            secret_access_key=_get("SECRET_ACCESS_KEY") or None,
            session_token=os.environ.get("AWS_SESSION_TOKEN"),
            max_concurrency=_get_int("MAX_CONCURRENCY", C.DEFAULT_MAX_CONCURRENCY),
            max_retries=_get_int("MAX_RETRIES", C.DEFAULT_MAX_RETRIES),
            use_ssl=_get_bool("USE_SSL", True),
            verify_ssl=_get_bool("VERIFY_SSL", True),
        )

    def with_options(self, **changes: Any) -> S3Config:
        """Copy with fields replaced (validated again)."""
        return replace(self, **changes)

    # -------------------------------------------------------------------------
    # TRANSPORT
    # -------------------------------------------------------------------------

    def get_session_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for aioboto3.Session (explicit credentials only)."""
        kwargs: Dict[str, Any] = {}
        if self.access_key_id and self.secret_access_key:
            kwargs["aws_access_key_id"] = self.access_key_id
            kwargs["aws_secret_access_key"] = self.secret_access_key
        if self.session_token:
            kwargs["aws_session_token"] = self.session_token
        return kwargs

    def get_client_kwargs(self) -> Dict[str, Any]:
        """
        Keyword arguments for ``session.client("s3", ...)``.

        Returns:
            Dict with region, botocore Config and endpoint/TLS switches.
        """
        from botocore.config import Config

        kwargs: Dict[str, Any] = {
            "region_name": self.region,
            "use_ssl": self.use_ssl,
            "config": Config(
                max_pool_connections=self.max_concurrency,
                connect_timeout=self.connect_timeout_seconds,
                read_timeout=self.read_timeout_seconds,
                retries={"max_attempts": self.max_retries},
            ),
        }
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url
        if not self.verify_ssl:
            kwargs["verify"] = False
        return kwargs
