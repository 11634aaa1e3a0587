#!/usr/bin/env python3
"""
S3 Keyspace Store

Entry point exercising one store end to end: bootstrap, point
operations, sub-stores, listing and counting.

Usage:
    python -m s3keyspace                          # in-memory backend
    python -m s3keyspace demo@my-bucket:us-west-2 # real S3 bucket
"""

from __future__ import annotations

import asyncio
import sys
from typing import Optional

from s3keyspace.core.errors import is_key_exists, is_key_not_found
from s3keyspace.observability.logging import setup_logging, LogLevel
from s3keyspace.storage import InMemoryObjectBackend, open_store


async def demo(address: Optional[str]) -> None:
    """
    Run the probe against address, or against an in-memory bucket when
    no address is given.
    """
    print("\n" + "=" * 60)
    print("S3 Keyspace Store - Probe")
    print("=" * 60 + "\n")

    setup_logging(LogLevel.INFO, json_output=False)

    backend = None
    if address is None:
        address = "demo@memory:us-east-1"
        backend = InMemoryObjectBackend("memory")

    result = await open_store(address, backend=backend)
    if result.is_err():
        print(f"Open error: {result.error}")
        sys.exit(1)
    store = result.unwrap()
    print(f"✓ Store opened: {store!r}")

    async with store:
        kv = store.keyspace()

        # 1. Put, refuse overwrite, replace
        await kv.put(b"k1", b"v1")
        again = await kv.put(b"k1", b"v2")
        print(f"1. put without replace on existing key -> KEY_EXISTS: {is_key_exists(again.error)}")
        await kv.put(b"k1", b"v2", replace=True)
        print(f"   get after replace -> {(await kv.get(b'k1')).unwrap()!r}")

        # 2. Sub-store isolation
        team = store.sub("a")
        await team.keyspace().put(b"k1", b"sub")
        root_keys = (await kv.keys()).unwrap()
        print(f"2. root keys {root_keys!r}, sub keys {(await team.keyspace().keys()).unwrap()!r}")

        # 3. Membership and count
        present = (await kv.has(b"k1", b"k2")).unwrap()
        print(f"3. has(k1, k2) -> {sorted(present)!r}, count -> {(await kv.count()).unwrap()}")

        # 4. Delete
        await kv.delete(b"k1")
        gone = await kv.get(b"k1")
        print(f"4. get after delete -> KEY_NOT_FOUND: {is_key_not_found(gone.error)}")

    print("\n✓ Probe complete")
    print("=" * 60 + "\n")


async def main() -> None:
    """Main entry point."""
    address = sys.argv[1] if len(sys.argv) > 1 else None
    try:
        await demo(address)
    except KeyboardInterrupt:
        print("\nInterrupted")
    except Exception as e:
        print(f"Error: {e}")
        raise


def run() -> None:
    """Synchronous entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
