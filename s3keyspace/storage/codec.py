"""
Key Codec: Reversible Byte-Key to Object-Path Mapping
=====================================================

Maps arbitrary non-empty byte strings onto S3 object names and back.

Path Layout:
------------
    <prefix>/<shard>/<tail>

- ``hex``   = lowercase hexadecimal encoding of the key
- ``shard`` = first ``shard_width`` hex characters
- ``tail``  = the remaining hex characters, or ``"-"`` when the whole
  key fits inside the shard (so the shard is never empty and no key
  object ever sits directly under the prefix)

Example (prefix ``"p"``, width 3):

    b"a"     -> "p/61/-"
    b"ab"    -> "p/616/2"
    b"hello" -> "p/686/56c6c6f"

Properties:
-----------
1. **Injective**: hex is injective and the split point is fixed.
2. **Order-preserving**: ``/`` and ``-`` sort below every hex digit, so
   byte-wise key order equals path order. Listing pages therefore
   arrive in key order.
3. **Left inverse**: ``decode(encode(k)) == k``; any path not produced
   by ``encode`` under the same configuration is reported as a
   KEY_FOREIGN error, which listing skips.

Child namespaces append ``_<hex(name)>`` to the prefix. ``_`` is not a
hex digit, so a child directory can never be mistaken for a shard.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from s3keyspace.core import constants as C
from s3keyspace.core.errors import KeyspaceError
from s3keyspace.core.types import Result, Ok, Err

_HEX_DIGITS = re.compile(r"[0-9a-f]+")


def _join(*parts: str) -> str:
    return C.PATH_SEPARATOR.join(p for p in parts if p)


@dataclass(frozen=True, slots=True)
class KeyCodec:
    """
    Encoding configuration for one namespace.
    
    Attributes:
        prefix: Namespace prefix; trailing separators are dropped.
        shard_width: Hex characters in the shard component (0 disables sharding).
    """
    
    prefix: str = ""
    shard_width: int = C.DEFAULT_SHARD_WIDTH
    
    def __post_init__(self) -> None:
        if self.shard_width < 0:
            raise ValueError(f"shard_width must be >= 0, got {self.shard_width}")
        object.__setattr__(self, "prefix", self.prefix.rstrip(C.PATH_SEPARATOR))
    
    # -------------------------------------------------------------------------
    # DERIVATION
    # -------------------------------------------------------------------------
    
    def with_prefix(self, prefix: str) -> KeyCodec:
        """Same shard layout under a different prefix."""
        return KeyCodec(prefix=prefix, shard_width=self.shard_width)
    
    def child(self, name: str) -> KeyCodec:
        """Codec for the named child namespace."""
        marker = C.NAMESPACE_MARKER + name.encode("utf-8").hex()
        return self.with_prefix(_join(self.prefix, marker))
    
    @property
    def namespace_prefix(self) -> str:
        """Literal prefix shared by every path of this namespace ("" if none)."""
        if not self.prefix:
            return ""
        return self.prefix + C.PATH_SEPARATOR
    
    # -------------------------------------------------------------------------
    # ENCODE / DECODE
    # -------------------------------------------------------------------------
    
    def encode(self, key: bytes) -> str:
        """
        Encode a key as an object path.
        
        Raises:
            ValueError: If key is empty; S3 has no empty object names and
                callers reject empty keys before encoding.
        """
        if not key:
            raise ValueError("cannot encode an empty key")
        digits = key.hex()
        width = self.shard_width
        if width == 0:
            return _join(self.prefix, digits)
        if len(digits) > width:
            return _join(self.prefix, digits[:width], digits[width:])
        return _join(self.prefix, digits, C.SHARD_FILLER)
    
    def lower_bound(self, key: bytes) -> str:
        """
        Path to list strictly after so that ``key`` and everything above
        it is included. The empty key maps to the namespace prefix itself.
        """
        if not key:
            return self.namespace_prefix
        return self.encode(key)
    
    def partition_prefix(self, first: int) -> str:
        """Path prefix shared by exactly the keys whose first byte is ``first``."""
        digits = bytes([first]).hex()
        width = self.shard_width
        if 0 < width < len(digits):
            return _join(self.prefix, digits[:width], digits[width:])
        return _join(self.prefix, digits)
    
    def decode(self, path: str) -> Result[bytes, KeyspaceError]:
        """
        Recover the key encoded in ``path``.
        
        Returns:
            Ok(key) for paths produced by ``encode`` under this codec.
            Err(KEY_FOREIGN) for anything else.
        """
        rest = path
        head = self.namespace_prefix
        if head:
            if not path.startswith(head):
                return Err(KeyspaceError.foreign_key(path, "prefix mismatch"))
            rest = path[len(head):]
        
        if self.shard_width == 0:
            if C.PATH_SEPARATOR in rest:
                return Err(KeyspaceError.foreign_key(path, "unexpected separator"))
            digits = rest
        else:
            shard, sep, tail = rest.partition(C.PATH_SEPARATOR)
            if not sep or C.PATH_SEPARATOR in tail:
                return Err(KeyspaceError.foreign_key(path, "malformed shard"))
            if tail == C.SHARD_FILLER:
                if not shard or len(shard) > self.shard_width:
                    return Err(KeyspaceError.foreign_key(path, "malformed shard"))
                digits = shard
            else:
                if len(shard) != self.shard_width or not tail:
                    return Err(KeyspaceError.foreign_key(path, "malformed shard"))
                digits = shard + tail
        
        if len(digits) % 2 or not _HEX_DIGITS.fullmatch(digits):
            return Err(KeyspaceError.foreign_key(path, "invalid hex"))
        return Ok(bytes.fromhex(digits))
    
    def __repr__(self) -> str:
        return f"KeyCodec(prefix={self.prefix!r}, shard_width={self.shard_width})"
