#!/usr/bin/env python3
"""
Example: Streaming response bodies without loading them into memory.

Shows chunked and Content-Length bodies read slice by slice, line by line,
and through the asyncio response.
"""
from __future__ import annotations

import asyncio
import logging

from _wire import open_async_response, open_response


def sync_streaming_bytes():
    """Stream a chunked body and process it slice by slice."""
    print("=== Sync Streaming (bytes) ===")

    url = "http://httpbin.org/stream-bytes/50000?chunk_size=4096"

    with open_response("GET", url) as response:
        print(f"Status: {response.status_code}")
        print(f"Chunked: {response.chunked}, keep-alive: {response.keepalive}")

        total_bytes = 0
        chunk_count = 0

        for chunk in response.iter_bytes(chunk_size=8192):
            total_bytes += len(chunk)
            chunk_count += 1

        print(f"Received {total_bytes} bytes in {chunk_count} slices")


def sync_streaming_lines():
    """Stream a response and process it line by line."""
    print("\n=== Sync Streaming (lines) ===")

    with open_response("GET", "http://httpbin.org/stream/5") as response:
        print(f"Status: {response.status_code}")

        for i, line in enumerate(response.iter_lines()):
            print(f"  Line {i}: {line[:60]}...")


def sync_chunk_by_chunk():
    """Read one wire chunk per call with iter_content()."""
    print("\n=== Sync Chunk by Chunk ===")

    with open_response("GET", "http://httpbin.org/stream/3") as response:
        while True:
            data = response.iter_content()
            if not data:
                break
            print(f"  {len(data)} bytes")


async def async_streaming_bytes():
    """Async stream a body and process it slice by slice."""
    print("\n=== Async Streaming (bytes) ===")

    url = "http://httpbin.org/bytes/100000"

    async with await open_async_response("GET", url) as response:
        print(f"Status: {response.status_code}")

        total_bytes = 0
        async for chunk in response.aiter_bytes(chunk_size=16384):
            total_bytes += len(chunk)

        print(f"Received {total_bytes} bytes")


def main():
    """Run all streaming examples."""
    logging.basicConfig(level=logging.DEBUG)
    print("Nagare Streaming Examples")
    print("=" * 50)

    sync_streaming_bytes()
    sync_streaming_lines()
    sync_chunk_by_chunk()

    asyncio.run(async_streaming_bytes())

    print("\n" + "=" * 50)
    print("All examples completed!")


if __name__ == "__main__":
    main()
