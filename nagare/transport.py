"""
Connection handles that response bodies are read from.

A transport offers three primitives: read up to N bytes, read one delimited
line, and close (or hand the connection back for reuse). It also carries the
connection status, which only moves through the transitions defined here.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from .errors import ClosedError, ProtocolError, TransportError, TransportTimeoutError

if TYPE_CHECKING:
    import socket
    import ssl

log = logging.getLogger(__name__)

DEFAULT_RECV_SIZE = 8192
DEFAULT_MAX_LINE_SIZE = 65536


class ConnState(enum.Enum):
    IDLE = "idle"
    RECV_BODY = "recv_body"
    CLOSED = "closed"


ErrorFilter = Callable[[ConnState, BaseException], None]


class ConnectionHandle:
    """
    Status shared by the sync and async transports.

    IDLE -> RECV_BODY when a body read starts, anything -> CLOSED on teardown
    or a fatal error, and back to IDLE only when released for reuse. CLOSED
    is terminal for reads.
    """

    def __init__(self, error_filter: ErrorFilter | None = None) -> None:
        self._state = ConnState.IDLE
        self.error_filter = error_filter

    @property
    def state(self) -> ConnState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state is ConnState.CLOSED

    def begin_body(self) -> None:
        if self._state is ConnState.CLOSED:
            raise ClosedError("Connection is closed")
        self._state = ConnState.RECV_BODY

    def mark_closed(self) -> None:
        self._state = ConnState.CLOSED

    def reset(self) -> None:
        if self._state is ConnState.CLOSED:
            raise ClosedError("Cannot reuse a closed connection")
        self._state = ConnState.IDLE


class Transport(ConnectionHandle):
    """Blocking transport interface."""

    def receive(self, n: int) -> bytes:
        """Return up to n bytes, or b"" once the peer has closed."""
        raise NotImplementedError

    def receive_until(self, delimiter: bytes) -> Callable[[], bytes]:
        """Return a reader yielding one line per call, delimiter stripped."""
        raise NotImplementedError

    def close(self, keepalive: bool = False) -> None:
        raise NotImplementedError


class AsyncTransport(ConnectionHandle):
    """Asyncio transport interface."""

    async def receive(self, n: int) -> bytes:
        raise NotImplementedError

    def receive_until(self, delimiter: bytes) -> Callable[[], Awaitable[bytes]]:
        raise NotImplementedError

    async def close(self, keepalive: bool = False) -> None:
        raise NotImplementedError


class SocketTransport(Transport):
    """
    Transport over a connected (optionally TLS-wrapped) socket.

    Args:
        sock: Connected socket; timeouts are whatever the socket is set to
        buffered: Bytes already read past the header block
        release: Called with this transport instead of closing the socket
            when the connection may be kept alive
        error_filter: Diagnostic hook called before a fatal close
        max_line_size: Longest line accepted by receive_until()
        recv_size: Bytes requested from the socket per recv() when filling
    """

    def __init__(
        self,
        sock: socket.socket | ssl.SSLSocket,
        *,
        buffered: bytes = b"",
        release: Callable[[SocketTransport], None] | None = None,
        error_filter: ErrorFilter | None = None,
        max_line_size: int = DEFAULT_MAX_LINE_SIZE,
        recv_size: int = DEFAULT_RECV_SIZE,
    ) -> None:
        super().__init__(error_filter)
        self.sock: socket.socket | ssl.SSLSocket | None = sock
        self._buffer = bytearray(buffered)
        self._release = release
        self.max_line_size = max_line_size
        self.recv_size = recv_size

    def _recv(self, n: int) -> bytes:
        if self.sock is None:
            raise TransportError("Socket is closed")
        try:
            return self.sock.recv(n)
        except TimeoutError as exc:
            raise TransportTimeoutError(f"Read timed out: {exc}") from exc
        except OSError as exc:
            raise TransportError(f"Read failed: {exc}") from exc

    def receive(self, n: int) -> bytes:
        if self._buffer:
            data = bytes(self._buffer[:n])
            del self._buffer[:n]
            return data
        return self._recv(n)

    def receive_until(self, delimiter: bytes) -> Callable[[], bytes]:
        def readline() -> bytes:
            start = 0
            while True:
                index = self._buffer.find(delimiter, start)
                if index != -1:
                    line = bytes(self._buffer[:index])
                    del self._buffer[: index + len(delimiter)]
                    return line
                if len(self._buffer) > self.max_line_size:
                    raise ProtocolError(f"Line exceeds {self.max_line_size} bytes")
                # The delimiter may straddle two reads.
                start = max(0, len(self._buffer) - len(delimiter) + 1)
                data = self._recv(self.recv_size)
                if not data:
                    raise TransportError("Connection closed before end of line")
                self._buffer.extend(data)

        return readline

    def close(self, keepalive: bool = False) -> None:
        if self.sock is None:
            return
        if keepalive and self._release is not None and not self.closed:
            log.debug("Releasing connection for reuse")
            self.reset()
            self._release(self)
            return
        log.debug("Closing connection (keepalive=%s, state=%s)", keepalive, self.state.value)
        try:
            self.sock.close()
        finally:
            self.sock = None
            self.mark_closed()


class AsyncStreamTransport(AsyncTransport):
    """
    Transport over an asyncio stream pair.

    Args:
        reader: Stream positioned at the start of the body
        writer: Matching writer, closed on teardown
        release: Called with this transport instead of closing the stream
            when the connection may be kept alive
        error_filter: Diagnostic hook called before a fatal close
        timeout: Seconds allowed per read, None to wait forever
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        *,
        release: Callable[[AsyncStreamTransport], None] | None = None,
        error_filter: ErrorFilter | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(error_filter)
        self.reader = reader
        self.writer: asyncio.StreamWriter | None = writer
        self._release = release
        self.timeout = timeout

    async def _wait(self, operation: Awaitable[bytes]) -> bytes:
        try:
            return await asyncio.wait_for(operation, self.timeout)
        except asyncio.TimeoutError as exc:
            raise TransportTimeoutError("Read timed out") from exc
        except asyncio.IncompleteReadError as exc:
            raise TransportError("Connection closed before end of line") from exc
        except asyncio.LimitOverrunError as exc:
            raise ProtocolError(f"Line exceeds stream limit: {exc}") from exc
        except OSError as exc:
            raise TransportError(f"Read failed: {exc}") from exc

    async def receive(self, n: int) -> bytes:
        if self.writer is None:
            raise TransportError("Stream is closed")
        return await self._wait(self.reader.read(n))

    def receive_until(self, delimiter: bytes) -> Callable[[], Awaitable[bytes]]:
        async def readline() -> bytes:
            if self.writer is None:
                raise TransportError("Stream is closed")
            line = await self._wait(self.reader.readuntil(delimiter))
            return line[: -len(delimiter)]

        return readline

    async def close(self, keepalive: bool = False) -> None:
        if self.writer is None:
            return
        if keepalive and self._release is not None and not self.closed:
            log.debug("Releasing stream for reuse")
            self.reset()
            self._release(self)
            return
        log.debug("Closing stream (keepalive=%s, state=%s)", keepalive, self.state.value)
        writer, self.writer = self.writer, None
        self.mark_closed()
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as exc:
            log.debug("Error while closing stream: %s", exc)
