"""Tests for nagare.transport module."""

import asyncio
import socket
from unittest.mock import AsyncMock, MagicMock

import pytest

from nagare.errors import ClosedError, ProtocolError, TransportError, TransportTimeoutError
from nagare.response import Response
from nagare.transport import AsyncStreamTransport, ConnectionHandle, ConnState, SocketTransport


@pytest.fixture
def sock_pair():
    """Connected socket pair: (client side, server side)."""
    client, server = socket.socketpair()
    client.settimeout(2.0)
    yield client, server
    client.close()
    server.close()


class TestConnectionHandle:
    """Tests for connection state transitions."""

    def test_starts_idle(self):
        """Test a new handle is idle."""
        handle = ConnectionHandle()
        assert handle.state is ConnState.IDLE
        assert handle.closed is False
        assert handle.error_filter is None

    def test_begin_body(self):
        """Test starting a body read moves to RECV_BODY."""
        handle = ConnectionHandle()
        handle.begin_body()
        assert handle.state is ConnState.RECV_BODY

    def test_closed_is_terminal(self):
        """Test a closed handle refuses body reads and reuse."""
        handle = ConnectionHandle()
        handle.mark_closed()
        with pytest.raises(ClosedError):
            handle.begin_body()
        with pytest.raises(ClosedError):
            handle.reset()
        assert handle.state is ConnState.CLOSED

    def test_reset_to_idle(self):
        """Test a released handle is idle again."""
        handle = ConnectionHandle()
        handle.begin_body()
        handle.reset()
        assert handle.state is ConnState.IDLE


class TestSocketTransport:
    """Tests for SocketTransport over a real socket pair."""

    def test_receive(self, sock_pair):
        """Test receive returns bytes written by the peer."""
        client, server = sock_pair
        server.sendall(b"hello")
        transport = SocketTransport(client)
        assert transport.receive(5) == b"hello"

    def test_buffered_bytes_served_first(self, sock_pair):
        """Test bytes read past the headers are returned before the socket."""
        client, server = sock_pair
        server.sendall(b"world")
        transport = SocketTransport(client, buffered=b"hello ")
        assert transport.receive(3) == b"hel"
        assert transport.receive(10) == b"lo "
        assert transport.receive(10) == b"world"

    def test_receive_until(self, sock_pair):
        """Test lines are split on the delimiter and the rest is kept."""
        client, server = sock_pair
        server.sendall(b"first\r\nsecond\r\nrest")
        transport = SocketTransport(client, recv_size=4)
        readline = transport.receive_until(b"\r\n")
        assert readline() == b"first"
        assert readline() == b"second"
        rest = b""
        while len(rest) < 4:
            rest += transport.receive(4 - len(rest))
        assert rest == b"rest"

    def test_delimiter_split_across_reads(self, sock_pair):
        """Test a delimiter straddling two socket reads is found."""
        client, server = sock_pair
        server.sendall(b"ab\r")
        transport = SocketTransport(client, recv_size=3)
        readline = transport.receive_until(b"\r\n")
        server.sendall(b"\ncd\r\n")
        assert readline() == b"ab"
        assert readline() == b"cd"

    def test_eof_before_delimiter(self, sock_pair):
        """Test a peer close mid-line is a transport error."""
        client, server = sock_pair
        server.sendall(b"partial")
        server.shutdown(socket.SHUT_WR)
        readline = SocketTransport(client).receive_until(b"\r\n")
        with pytest.raises(TransportError, match="end of line"):
            readline()

    def test_line_too_long(self, sock_pair):
        """Test over-long lines are refused."""
        client, server = sock_pair
        server.sendall(b"x" * 64)
        readline = SocketTransport(client, max_line_size=16, recv_size=32).receive_until(b"\r\n")
        with pytest.raises(ProtocolError, match="exceeds"):
            readline()

    def test_peer_close_returns_empty(self, sock_pair):
        """Test receive returns b"" once the peer has closed."""
        client, server = sock_pair
        server.shutdown(socket.SHUT_WR)
        assert SocketTransport(client).receive(10) == b""

    def test_timeout(self, sock_pair):
        """Test a socket timeout is reported as TransportTimeoutError."""
        client, _ = sock_pair
        client.settimeout(0.05)
        with pytest.raises(TransportTimeoutError):
            SocketTransport(client).receive(1)

    def test_os_error_wrapped(self):
        """Test socket failures are wrapped in TransportError."""
        sock = MagicMock()
        sock.recv.side_effect = ConnectionResetError("reset by peer")
        with pytest.raises(TransportError, match="reset by peer"):
            SocketTransport(sock).receive(1)

    def test_close_tears_down(self, sock_pair):
        """Test close without keep-alive closes the socket."""
        client, _ = sock_pair
        transport = SocketTransport(client)
        transport.close()
        assert transport.sock is None
        assert transport.state is ConnState.CLOSED
        assert client.fileno() == -1
        transport.close()

    def test_close_keepalive_releases(self, sock_pair):
        """Test close with keep-alive hands the connection to release."""
        client, _ = sock_pair
        released = []
        transport = SocketTransport(client, release=released.append)
        transport.begin_body()
        transport.close(keepalive=True)
        assert released == [transport]
        assert transport.state is ConnState.IDLE
        assert transport.sock is client

    def test_close_keepalive_without_release(self, sock_pair):
        """Test keep-alive without a release callback still closes."""
        client, _ = sock_pair
        transport = SocketTransport(client)
        transport.close(keepalive=True)
        assert transport.state is ConnState.CLOSED

    def test_close_keepalive_after_failure(self, sock_pair):
        """Test a connection marked closed is never released for reuse."""
        client, _ = sock_pair
        release = MagicMock()
        transport = SocketTransport(client, release=release)
        transport.mark_closed()
        transport.close(keepalive=True)
        release.assert_not_called()
        assert transport.sock is None

    def test_response_over_socket(self, sock_pair):
        """Test a chunked response is decoded straight off a socket."""
        client, server = sock_pair
        server.sendall(b"5\r\nhello\r\n6\r\n world\r\n0\r\n\r\n")
        released = []
        transport = SocketTransport(client, buffered=b"", release=released.append)
        resp = Response(
            "http://example.com/",
            "GET",
            200,
            [("Transfer-Encoding", "chunked"), ("Connection", "keep-alive")],
            transport,
        )
        assert resp.body() == b"hello world"
        resp.close()
        assert released == [transport]

    def test_response_closed_with_unread_body(self, sock_pair):
        """Test a keep-alive response closed mid-body is not released for reuse."""
        client, server = sock_pair
        server.sendall(b"0123456789")
        release = MagicMock()
        transport = SocketTransport(client, release=release)
        resp = Response(
            "http://example.com/",
            "GET",
            200,
            [("Content-Length", "10"), ("Connection", "keep-alive")],
            transport,
        )
        assert resp.iter_content(3) == b"012"
        resp.close()
        release.assert_not_called()
        assert transport.state is ConnState.CLOSED
        assert transport.sock is None
        with pytest.raises(ClosedError):
            resp.iter_content(3)


class TestAsyncStreamTransport:
    """Tests for AsyncStreamTransport over an asyncio StreamReader."""

    @staticmethod
    def _writer():
        writer = MagicMock()
        writer.wait_closed = AsyncMock()
        return writer

    @pytest.mark.asyncio
    async def test_receive_and_lines(self):
        """Test reads and delimited lines come from the stream."""
        reader = asyncio.StreamReader()
        reader.feed_data(b"size\r\npayload")
        reader.feed_eof()
        transport = AsyncStreamTransport(reader, self._writer())
        readline = transport.receive_until(b"\r\n")
        assert await readline() == b"size"
        assert await transport.receive(7) == b"payload"
        assert await transport.receive(7) == b""

    @pytest.mark.asyncio
    async def test_eof_before_delimiter(self):
        """Test a stream ending mid-line is a transport error."""
        reader = asyncio.StreamReader()
        reader.feed_data(b"partial")
        reader.feed_eof()
        readline = AsyncStreamTransport(reader, self._writer()).receive_until(b"\r\n")
        with pytest.raises(TransportError):
            await readline()

    @pytest.mark.asyncio
    async def test_line_over_limit(self):
        """Test lines beyond the stream limit are refused."""
        reader = asyncio.StreamReader(limit=8)
        reader.feed_data(b"x" * 32 + b"\r\n")
        readline = AsyncStreamTransport(reader, self._writer()).receive_until(b"\r\n")
        with pytest.raises(ProtocolError):
            await readline()

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test a stalled read is reported as TransportTimeoutError."""
        reader = asyncio.StreamReader()
        transport = AsyncStreamTransport(reader, self._writer(), timeout=0.05)
        with pytest.raises(TransportTimeoutError):
            await transport.receive(1)

    @pytest.mark.asyncio
    async def test_close(self):
        """Test close shuts the writer once."""
        writer = self._writer()
        transport = AsyncStreamTransport(asyncio.StreamReader(), writer)
        await transport.close()
        await transport.close()
        writer.close.assert_called_once()
        writer.wait_closed.assert_awaited_once()
        assert transport.state is ConnState.CLOSED

    @pytest.mark.asyncio
    async def test_close_keepalive_releases(self):
        """Test close with keep-alive hands the stream to release."""
        writer = self._writer()
        release = MagicMock()
        transport = AsyncStreamTransport(asyncio.StreamReader(), writer, release=release)
        await transport.close(keepalive=True)
        release.assert_called_once_with(transport)
        writer.close.assert_not_called()

    @pytest.mark.asyncio
    async def test_read_after_close(self):
        """Test reading a closed stream is a transport error."""
        transport = AsyncStreamTransport(asyncio.StreamReader(), self._writer())
        await transport.close()
        with pytest.raises(TransportError):
            await transport.receive(1)
