from __future__ import annotations

from typing import TYPE_CHECKING

from .errors import IncompleteBodyError

if TYPE_CHECKING:
    from .transport import AsyncTransport, Transport

DEFAULT_CHUNK_SIZE = 8192


class _LengthState:
    """
    Byte accounting for a Content-Length body.

    rest is None when the length is unknown, in which case the body runs
    until the peer closes the connection.
    """

    def __init__(self, rest: int | None, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self.rest = rest
        self.chunk_size = chunk_size
        self.eof = False

    @property
    def drained(self) -> bool:
        """True once no body bytes are left on the wire."""
        return self.eof or self.rest == 0

    def _plan(self, size: int | None) -> int:
        if self.rest is None:
            return size or self.chunk_size
        if size is None:
            return self.rest
        return min(size, self.rest)

    def _account(self, data: bytes) -> bytes:
        if not data:
            if self.rest is not None:
                raise IncompleteBodyError(f"Connection closed with {self.rest} bytes of body remaining")
            self.eof = True
            return data
        if self.rest is not None:
            self.rest -= len(data)
        return data


class ContentLengthReader(_LengthState):
    def __init__(
        self,
        transport: Transport,
        rest: int | None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        super().__init__(rest, chunk_size)
        self._transport = transport

    def read(self, size: int | None = None) -> bytes:
        if self.rest == 0:
            self.eof = True
            return b""
        return self._account(self._transport.receive(self._plan(size)))


class AsyncContentLengthReader(_LengthState):
    def __init__(
        self,
        transport: AsyncTransport,
        rest: int | None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        super().__init__(rest, chunk_size)
        self._transport = transport

    async def read(self, size: int | None = None) -> bytes:
        if self.rest == 0:
            self.eof = True
            return b""
        return self._account(await self._transport.receive(self._plan(size)))
