"""
Minimal request writer and header reader shared by the examples.

Status-line and header parsing belong to the layer above nagare; this is
just enough of it to hand a real connection to a response object.
"""
from __future__ import annotations

import asyncio
import socket
from urllib.parse import urlparse

from nagare import AsyncResponse, AsyncStreamTransport, Response, SocketTransport


def _request_bytes(method: str, host: str, path: str) -> bytes:
    return (
        f"{method} {path} HTTP/1.1\r\n"
        f"Host: {host}\r\n"
        "Accept-Encoding: identity\r\n"
        "Connection: keep-alive\r\n"
        "\r\n"
    ).encode("ascii")


def _parse_head(lines: list[bytes]) -> tuple[str, int, list[tuple[str, str]]]:
    status_line = lines[0].decode("latin-1")
    status_code = int(status_line.split(" ", 2)[1])
    headers = []
    for line in lines[1:]:
        name, value = line.decode("latin-1").split(":", 1)
        headers.append((name.strip(), value.strip()))
    return status_line, status_code, headers


def open_response(method: str, url: str, timeout: float = 10.0) -> Response:
    parsed = urlparse(url)
    host = parsed.hostname or ""
    path = parsed.path or "/"
    if parsed.query:
        path = f"{path}?{parsed.query}"
    sock = socket.create_connection((host, parsed.port or 80), timeout=timeout)
    sock.sendall(_request_bytes(method, host, path))

    transport = SocketTransport(sock)
    readline = transport.receive_until(b"\r\n")
    lines = [readline()]
    while lines[-1]:
        lines.append(readline())
    status_line, status_code, headers = _parse_head(lines[:-1])
    return Response(url, method, status_code, headers, transport, status_line=status_line)


async def open_async_response(method: str, url: str, timeout: float = 10.0) -> AsyncResponse:
    parsed = urlparse(url)
    host = parsed.hostname or ""
    path = parsed.path or "/"
    if parsed.query:
        path = f"{path}?{parsed.query}"
    reader, writer = await asyncio.wait_for(
        asyncio.open_connection(host, parsed.port or 80), timeout
    )
    writer.write(_request_bytes(method, host, path))
    await writer.drain()

    transport = AsyncStreamTransport(reader, writer, timeout=timeout)
    readline = transport.receive_until(b"\r\n")
    lines = [await readline()]
    while lines[-1]:
        lines.append(await readline())
    status_line, status_code, headers = _parse_head(lines[:-1])
    return AsyncResponse(url, method, status_code, headers, transport, status_line=status_line)
