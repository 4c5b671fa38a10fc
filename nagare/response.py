from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from .chunked import ChunkedReader
from .errors import BodyEOFError, ClosedError, ConsumedError, UnsupportedContentTypeError
from .framing import select_framing
from .headers import HeaderValue, collect_headers, find_header, flatten_headers, normalize_headers
from .length import DEFAULT_CHUNK_SIZE, ContentLengthReader
from .transport import ConnectionHandle, Transport

log = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"

Headers = Mapping[str, str | HeaderValue | Iterable[str]] | Iterable[tuple[str, str]]


class BaseResponse:
    """
    State shared by the blocking and asyncio responses: framing, headers and
    the bookkeeping around the body decoder. Subclasses pick the decoder
    classes and drive the reads.
    """

    _chunked_reader: type = ChunkedReader
    _length_reader: type = ContentLengthReader

    def __init__(
        self,
        url: str,
        method: str,
        status_code: int,
        headers: Headers,
        transport: ConnectionHandle,
        *,
        status_line: str | None = None,
        http_version: str = "1.1",
        request: Any = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if isinstance(headers, Mapping):
            headers = flatten_headers(headers)
        self.url = url
        self.method = method
        self.status_code = status_code
        self.status_line = status_line
        self.http_version = http_version
        self.request = request
        self.raw_headers: list[tuple[str, str]] = list(headers)
        self.chunk_size = chunk_size
        self._transport = transport
        self._consumed = False
        self._read_eof = False
        self._closed = False

        collected = collect_headers(self.raw_headers)
        framing = select_framing(status_code, method, collected)
        log.debug("%s %s -> %s framing: %s", method, url, status_code, framing)
        self.framing = framing
        self.keepalive = framing.keepalive
        if framing.chunked:
            self._decoder = self._chunked_reader(transport)
        else:
            self._decoder = self._length_reader(transport, framing.content_length, chunk_size)
        self.headers: dict[str, str] = normalize_headers(collected)

    @property
    def transport(self) -> ConnectionHandle:
        return self._transport

    @property
    def consumed(self) -> bool:
        return self._consumed

    @property
    def read_eof(self) -> bool:
        return self._read_eof

    @property
    def chunked(self) -> bool:
        return self.framing.chunked

    def header(self, name: str, default: str | None = None) -> str | None:
        value = find_header(self.headers, name)
        return default if value is None else value

    def _check_readable(self, size: int | None) -> None:
        if size is not None and size <= 0:
            raise ValueError("size must be a positive integer or None")
        if self._read_eof:
            raise BodyEOFError("Response body has already been read")
        if self._closed or self._transport.closed:
            raise ClosedError("Connection is closed")

    def _take_consumed(self) -> None:
        if self._consumed:
            raise ConsumedError("Response body has already been consumed")
        self._consumed = True

    def _fail(self, exc: BaseException) -> None:
        transport = self._transport
        log.debug("Body read failed in state %s: %r", transport.state.value, exc)
        try:
            if transport.error_filter is not None:
                transport.error_filter(transport.state, exc)
        finally:
            transport.mark_closed()

    def _decode_text(self, body: bytes) -> str:
        encoding = "utf-8"
        ctype = self.header("Content-Type") or ""
        for param in ctype.split(";")[1:]:
            name, _, value = param.partition("=")
            if name.strip().lower() == "charset":
                encoding = value.strip().strip('"') or encoding
        try:
            return body.decode(encoding, errors="replace")
        except LookupError:
            return body.decode("utf-8", errors="replace")

    def _abandon_unread(self) -> None:
        # A connection with body bytes still on the wire cannot be reused.
        if not self._decoder.drained:
            log.debug("Closing with unread body on %s", self.url)
            self._transport.mark_closed()

    def _check_json(self) -> None:
        ctype = self.header("Content-Type") or ""
        media_type = ctype.split(";", 1)[0].strip().lower()
        if media_type != JSON_CONTENT_TYPE:
            raise UnsupportedContentTypeError(f"Expected {JSON_CONTENT_TYPE}, got {ctype or 'no content type'}")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} [{self.status_code}]>"


class Response(BaseResponse):
    """
    HTTP/1.1 response whose body is read lazily from a blocking transport.

    iter_content() is the single entry point into the body decoder; body(),
    text(), json() and the iterators are built on top of it. Any error while
    reading the body closes the connection before it propagates.
    """

    _transport: Transport

    def iter_content(self, size: int | None = None) -> bytes:
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
            data = self._decoder.read(size)
        except BaseException as exc:
            try:
                self._fail(exc)
            finally:
                self._closed = True
                transport.close(self.keepalive)
            raise

        if self._decoder.eof:
            self._read_eof = True
            if not self.keepalive:
                self.close()
        return data

    def body(self) -> bytes:
        """Read the entire body into memory."""
        self._take_consumed()
        parts: list[bytes] = []
        while True:
            data = self.iter_content()
            if not data:
                break
            parts.append(data)
        return b"".join(parts)

    def text(self) -> str:
        return self._decode_text(self.body())

    def json(self) -> Any:
        """Read the body and decode it as JSON."""
        body = self.body()
        self._check_json()
        return json.loads(self._decode_text(body))

    def iter_bytes(self, chunk_size: int | None = None) -> Iterator[bytes]:
        """
        Iterate over the body in slices of at most chunk_size bytes.

        Args:
            chunk_size: Size of slices to yield (default: the response chunk_size)
        """
        size = chunk_size or self.chunk_size
        while True:
            data = self.iter_content(size)
            if not data:
                return
            yield data

    def iter_lines(self, chunk_size: int | None = None, decode: str = "utf-8") -> Iterator[str]:
        pending = b""
        for chunk in self.iter_bytes(chunk_size):
            pending += chunk
            while b"\n" in pending:
                line, pending = pending.split(b"\n", 1)
                yield line.rstrip(b"\r").decode(decode, errors="replace")

        if pending:
            yield pending.rstrip(b"\r").decode(decode, errors="replace")

    def close(self) -> None:
        """Close the response, handing the connection back when keep-alive allows."""
        if self._closed:
            return
        self._closed = True
        self._abandon_unread()
        self._transport.close(self.keepalive)

    def __enter__(self) -> Response:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[bytes]:
        return self.iter_bytes()
