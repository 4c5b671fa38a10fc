"""Pytest configuration and fixtures."""

import io

import pytest

from nagare.aio import AsyncResponse
from nagare.errors import TransportError
from nagare.response import Response
from nagare.transport import AsyncTransport, Transport


class _Wire:
    """Byte source shared by the fake transports; records every read."""

    def __init__(self, data: bytes, max_recv: int | None) -> None:
        self.stream = io.BytesIO(data)
        self.max_recv = max_recv
        self.reads: list[int] = []
        self.lines = 0
        self.close_calls: list[bool] = []

    def receive(self, n: int) -> bytes:
        self.reads.append(n)
        if self.max_recv is not None:
            n = min(n, self.max_recv)
        return self.stream.read(n)

    def readline(self, delimiter: bytes) -> bytes:
        self.lines += 1
        buf = bytearray()
        while not buf.endswith(delimiter):
            ch = self.stream.read(1)
            if not ch:
                raise TransportError("Connection closed before end of line")
            buf += ch
        return bytes(buf[: -len(delimiter)])

    @property
    def io_count(self) -> int:
        return len(self.reads) + self.lines

    @property
    def remaining(self) -> bytes:
        return self.stream.getvalue()[self.stream.tell():]


class FakeTransport(Transport):
    """In-memory blocking transport."""

    def __init__(self, data: bytes = b"", max_recv: int | None = None, error_filter=None) -> None:
        super().__init__(error_filter)
        self.wire = _Wire(data, max_recv)

    def receive(self, n):
        return self.wire.receive(n)

    def receive_until(self, delimiter):
        return lambda: self.wire.readline(delimiter)

    def close(self, keepalive=False):
        self.wire.close_calls.append(keepalive)
        if not keepalive:
            self.mark_closed()


class AsyncFakeTransport(AsyncTransport):
    """In-memory asyncio transport."""

    def __init__(self, data: bytes = b"", max_recv: int | None = None, error_filter=None) -> None:
        super().__init__(error_filter)
        self.wire = _Wire(data, max_recv)

    async def receive(self, n):
        return self.wire.receive(n)

    def receive_until(self, delimiter):
        async def readline():
            return self.wire.readline(delimiter)

        return readline

    async def close(self, keepalive=False):
        self.wire.close_calls.append(keepalive)
        if not keepalive:
            self.mark_closed()


@pytest.fixture
def fake_transport():
    """Factory for in-memory blocking transports."""
    return FakeTransport


@pytest.fixture
def async_fake_transport():
    """Factory for in-memory asyncio transports."""
    return AsyncFakeTransport


@pytest.fixture
def make_response():
    """Build a Response over an in-memory transport."""

    def build(data=b"", headers=(), status_code=200, method="GET", max_recv=None, error_filter=None, **kwargs):
        transport = FakeTransport(data, max_recv=max_recv, error_filter=error_filter)
        return Response("http://example.com/", method, status_code, headers, transport, **kwargs)

    return build


@pytest.fixture
def make_async_response():
    """Build an AsyncResponse over an in-memory transport."""

    def build(data=b"", headers=(), status_code=200, method="GET", max_recv=None, error_filter=None, **kwargs):
        transport = AsyncFakeTransport(data, max_recv=max_recv, error_filter=error_filter)
        return AsyncResponse("http://example.com/", method, status_code, headers, transport, **kwargs)

    return build


@pytest.fixture
def chunked_headers():
    return [("Transfer-Encoding", "chunked")]
