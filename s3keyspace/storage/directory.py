"""
Namespace Directory: Lazily Materialized Tree of Sub-stores and Keyspaces

Each directory node owns:
- a KeyCodec (its namespace prefix)
- a cache of named Keyspaces
- a cache of named child directories (sub-stores)

and shares the transport and rate limiters with every other node of the
same Store.

Naming:
    keyspace("")      -> this node's own prefix, unchanged
    keyspace("blobs") -> <prefix>/_626c6f6273
    sub("team-a")     -> <prefix>/_7465616d2d61 (a new directory node)

Caching:
    Repeated requests for the same name at the same node return the same
    instance for the lifetime of the node. Creation is double-checked
    under a lock, so concurrent first requests (from tasks or threads)
    never produce two instances for one name. There is no eviction.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

from s3keyspace.core import constants as C
from s3keyspace.storage.backends import ObjectBackend
from s3keyspace.storage.codec import KeyCodec
from s3keyspace.storage.keyspace import Keyspace
from s3keyspace.storage.limiter import NoopWaiter, Waiter

logger = logging.getLogger(__name__)


class NamespaceDirectory:
    """
    One node of the namespace tree.

    Example:
        >>> team = store.sub("team-a")
        >>> kv = team.keyspace("blobs")
        >>> kv is store.sub("team-a").keyspace("blobs")
        True
    """

    __slots__ = (
        "_backend", "_codec", "_reads", "_writes", "_page_size",
        "_lock", "_keyspaces", "_subs",
    )

    def __init__(
        self,
        backend: ObjectBackend,
        codec: KeyCodec,
        reads: Optional[Waiter] = None,
        writes: Optional[Waiter] = None,
        page_size: int = C.DEFAULT_LIST_PAGE_SIZE,
    ) -> None:
        self._backend = backend
        self._codec = codec
        self._reads = reads or NoopWaiter()
        self._writes = writes or NoopWaiter()
        self._page_size = page_size
        self._lock = threading.Lock()
        self._keyspaces: Dict[str, Keyspace] = {}
        self._subs: Dict[str, NamespaceDirectory] = {}

    @property
    def prefix(self) -> str:
        return self._codec.prefix

    @property
    def codec(self) -> KeyCodec:
        return self._codec

    def keyspace(self, name: str = "") -> Keyspace:
        """
        Return the keyspace called name, creating it on first use.

        The empty name is this node's own keyspace and uses the node's
        prefix unmodified.
        """
        kv = self._keyspaces.get(name)
        if kv is not None:
            return kv
        with self._lock:
            kv = self._keyspaces.get(name)
            if kv is None:
                codec = self._codec if name == "" else self._codec.child(name)
                kv = Keyspace(
                    self._backend,
                    codec,
                    reads=self._reads,
                    writes=self._writes,
                    page_size=self._page_size,
                )
                self._keyspaces[name] = kv
                logger.debug(f"keyspace {name!r} opened at prefix {codec.prefix!r}")
            return kv

    def sub(self, name: str) -> NamespaceDirectory:
        """Return the child directory called name, creating it on first use."""
        node = self._subs.get(name)
        if node is not None:
            return node
        with self._lock:
            node = self._subs.get(name)
            if node is None:
                node = NamespaceDirectory(
                    self._backend,
                    self._codec.child(name),
                    reads=self._reads,
                    writes=self._writes,
                    page_size=self._page_size,
                )
                self._subs[name] = node
                logger.debug(f"sub-store {name!r} opened at prefix {node.prefix!r}")
            return node

    def __repr__(self) -> str:
        return (
            f"NamespaceDirectory(prefix={self.prefix!r}, "
            f"keyspaces={len(self._keyspaces)}, subs={len(self._subs)})"
        )
