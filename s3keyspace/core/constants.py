"""
Constants for the S3 Keyspace Adapter

All magic numbers and encoding symbols centralized here.
"""

from typing import Final

# =============================================================================
# PATH ENCODING
# =============================================================================
PATH_SEPARATOR: Final[str] = "/"

# Hex characters of the encoded key placed in the shard directory.
# S3 scales request throughput per literal key prefix.
DEFAULT_SHARD_WIDTH: Final[int] = 3

# Tail component used when the whole hex key fits in the shard.
SHARD_FILLER: Final[str] = "-"

# Child namespace components start with this marker; it is never a hex digit
# so child prefixes cannot collide with shard directories.
NAMESPACE_MARKER: Final[str] = "_"

# =============================================================================
# LISTING
# =============================================================================
# Len() scans one partition per leading key byte.
PARTITION_COUNT: Final[int] = 256

# ListObjectsV2 never returns more than 1000 keys per page.
MAX_LIST_PAGE_SIZE: Final[int] = 1000
DEFAULT_LIST_PAGE_SIZE: Final[int] = MAX_LIST_PAGE_SIZE

# =============================================================================
# TRANSPORT DEFAULTS
# =============================================================================
DEFAULT_REGION: Final[str] = "us-east-1"
DEFAULT_MAX_CONCURRENCY: Final[int] = 64
DEFAULT_CONNECT_TIMEOUT_S: Final[int] = 5
DEFAULT_READ_TIMEOUT_S: Final[int] = 60
DEFAULT_MAX_RETRIES: Final[int] = 3
