from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Any

from .chunked import AsyncChunkedReader
from .length import AsyncContentLengthReader
from .response import BaseResponse
from .transport import AsyncTransport

__all__ = ["AsyncResponse"]


class AsyncResponse(BaseResponse):
    """
    Async HTTP/1.1 response whose body is read lazily from an asyncio transport.

    Mirrors Response: iter_content() drives the decoder, body(), text(),
    json() and the async iterators sit on top, and any read error closes the
    connection before propagating.
    """

    _chunked_reader = AsyncChunkedReader
    _length_reader = AsyncContentLengthReader
    _transport: AsyncTransport

    async def iter_content(self, size: int | None = None) -> bytes:
        """
        Read the next slice of the body.

        Args:
            size: Most bytes to return; None returns at most one chunk of a
                chunked body, or the rest of a Content-Length body

        Returns:
            Body bytes, or b"" once the body is complete
        """
        self._check_readable(size)
        transport = self._transport
        try:
            transport.begin_body()
            data = await self._decoder.read(size)
        except BaseException as exc:
            try:
                self._fail(exc)
            finally:
                self._closed = True
                await transport.close(self.keepalive)
            raise

        if self._decoder.eof:
            self._read_eof = True
            if not self.keepalive:
                await self.close()
        return data

    async def body(self) -> bytes:
        """Read the entire body into memory."""
        self._take_consumed()
        parts: list[bytes] = []
        while True:
            data = await self.iter_content()
            if not data:
                break
            parts.append(data)
        return b"".join(parts)

    async def text(self) -> str:
        return self._decode_text(await self.body())

    async def json(self) -> Any:
        body = await self.body()
        self._check_json()
        return json.loads(self._decode_text(body))

    async def aiter_bytes(self, chunk_size: int | None = None) -> AsyncIterator[bytes]:
        """
        Async iterate over the body in slices of at most chunk_size bytes.

        Args:
            chunk_size: Size of slices to yield (default: the response chunk_size)
        """
        size = chunk_size or self.chunk_size
        while True:
            data = await self.iter_content(size)
            if not data:
                return
            yield data

    async def aiter_lines(self, chunk_size: int | None = None, decode: str = "utf-8") -> AsyncIterator[str]:
        pending = b""
        async for chunk in self.aiter_bytes(chunk_size):
            pending += chunk
            while b"\n" in pending:
                line, pending = pending.split(b"\n", 1)
                yield line.rstrip(b"\r").decode(decode, errors="replace")

        if pending:
            yield pending.rstrip(b"\r").decode(decode, errors="replace")

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._abandon_unread()
        await self._transport.close(self.keepalive)

    async def __aenter__(self) -> AsyncResponse:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.aiter_bytes()
