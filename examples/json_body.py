"""
Example: Decode a JSON response body.

json() reads the whole body, checks Content-Type is application/json and
returns the decoded value.
"""

import asyncio

from _wire import open_async_response, open_response
from nagare import UnsupportedContentTypeError


def sync_example():
    """Synchronous JSON example."""
    with open_response("GET", "http://httpbin.org/json") as response:
        print(f"Status: {response.status_code}")
        data = response.json()
        print(f"Slideshow title: {data['slideshow']['title']}")

    with open_response("GET", "http://httpbin.org/html") as response:
        try:
            response.json()
        except UnsupportedContentTypeError as exc:
            print(f"Refused: {exc}")


async def async_example():
    """Asynchronous JSON example."""
    async with await open_async_response("GET", "http://httpbin.org/get?lib=nagare") as response:
        data = await response.json()
        print(f"\nAsync Status: {response.status_code}")
        print(f"Echoed args: {data['args']}")


if __name__ == "__main__":
    print("=== Sync Example ===")
    sync_example()

    print("\n=== Async Example ===")
    asyncio.run(async_example())
