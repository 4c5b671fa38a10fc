"""
Chunked transfer-encoding decoder.

The decoder state is an immutable ChunkState moved along by pure transition
functions; ChunkedReader and AsyncChunkedReader only perform the I/O each
phase asks for and feed the results back in.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from .errors import FramingError, IncompleteBodyError, ProtocolError

if TYPE_CHECKING:
    from .transport import AsyncTransport, Transport

log = logging.getLogger(__name__)

CRLF = b"\r\n"
_HEX = re.compile(rb"[0-9A-Fa-f]+")


class Phase(enum.Enum):
    SIZE_LINE = "size-line"  # expecting "<hex>[;ext]"
    DATA = "data"  # inside a chunk, rest > 0
    DATA_CRLF = "data-crlf"  # chunk delivered, expecting the empty line
    TRAILER = "trailer"  # terminal chunk seen, skipping trailer fields
    LAST = "last"  # body complete, empty result not yet surfaced
    DONE = "done"


@dataclass(frozen=True)
class ChunkState:
    phase: Phase = Phase.SIZE_LINE
    size: int = -1
    rest: int = 0


def parse_chunk_size(line: bytes) -> int:
    """Parse a chunk-size line, ignoring any chunk extensions."""
    size = line.split(b";", 1)[0].strip()
    if not _HEX.fullmatch(size):
        raise FramingError(f"Invalid chunk header: {line!r}")
    return int(size, 16)


def _expect(state: ChunkState, phase: Phase) -> None:
    if state.phase is not phase:
        raise ProtocolError(f"Chunked decoder in {state.phase.value}, expected {phase.value}")


def on_size_line(state: ChunkState, line: bytes) -> ChunkState:
    _expect(state, Phase.SIZE_LINE)
    size = parse_chunk_size(line)
    if size == 0:
        return ChunkState(Phase.TRAILER, 0, 0)
    return ChunkState(Phase.DATA, size, size)


def on_data(state: ChunkState, received: int) -> ChunkState:
    _expect(state, Phase.DATA)
    if received == 0:
        raise IncompleteBodyError(f"Connection closed with {state.rest} bytes of chunk remaining")
    if received > state.rest:
        raise ProtocolError(f"Received {received} bytes for a chunk with {state.rest} left")
    rest = state.rest - received
    return replace(state, phase=Phase.DATA_CRLF if rest == 0 else Phase.DATA, rest=rest)


def on_data_crlf(state: ChunkState, line: bytes) -> ChunkState:
    _expect(state, Phase.DATA_CRLF)
    if line:
        raise FramingError("Invalid chunked data")
    return replace(state, phase=Phase.SIZE_LINE)


def on_trailer_line(state: ChunkState, line: bytes) -> ChunkState:
    _expect(state, Phase.TRAILER)
    if line:
        log.debug("Discarding chunked trailer field %r", line)
        return state
    return replace(state, phase=Phase.LAST)


def on_terminal(state: ChunkState) -> ChunkState:
    _expect(state, Phase.LAST)
    return replace(state, phase=Phase.DONE)


class ChunkedReader:
    """
    Incremental chunked body reader over a blocking transport.

    read(None) returns at most one chunk; read(n) keeps going across chunk
    boundaries until n bytes are gathered or the body ends.
    """

    def __init__(self, transport: Transport) -> None:
        self.state = ChunkState()
        self._transport = transport
        self._readline = transport.receive_until(CRLF)

    @property
    def eof(self) -> bool:
        return self.state.phase is Phase.DONE

    @property
    def drained(self) -> bool:
        return self.state.phase in (Phase.LAST, Phase.DONE)

    def read(self, size: int | None = None) -> bytes:
        if self.state.phase is Phase.LAST:
            self.state = on_terminal(self.state)
            return b""

        parts: list[bytes] = []
        remaining = size
        while True:
            if self.state.phase is Phase.SIZE_LINE:
                self.state = on_size_line(self.state, self._readline())
            while self.state.phase is Phase.TRAILER:
                self.state = on_trailer_line(self.state, self._readline())
            if self.state.phase is Phase.LAST:
                if not parts:
                    self.state = on_terminal(self.state)
                break

            want = self.state.rest if remaining is None else min(remaining, self.state.rest)
            data = self._transport.receive(want)
            self.state = on_data(self.state, len(data))
            parts.append(data)
            if remaining is not None:
                remaining -= len(data)

            if self.state.phase is Phase.DATA_CRLF:
                self.state = on_data_crlf(self.state, self._readline())
                if size is None:
                    break
            if remaining == 0:
                break

        return b"".join(parts)


class AsyncChunkedReader:
    """Async counterpart of ChunkedReader."""

    def __init__(self, transport: AsyncTransport) -> None:
        self.state = ChunkState()
        self._transport = transport
        self._readline = transport.receive_until(CRLF)

    @property
    def eof(self) -> bool:
        return self.state.phase is Phase.DONE

    @property
    def drained(self) -> bool:
        return self.state.phase in (Phase.LAST, Phase.DONE)

    async def read(self, size: int | None = None) -> bytes:
        if self.state.phase is Phase.LAST:
            self.state = on_terminal(self.state)
            return b""

        parts: list[bytes] = []
        remaining = size
        while True:
            if self.state.phase is Phase.SIZE_LINE:
                self.state = on_size_line(self.state, await self._readline())
            while self.state.phase is Phase.TRAILER:
                self.state = on_trailer_line(self.state, await self._readline())
            if self.state.phase is Phase.LAST:
                if not parts:
                    self.state = on_terminal(self.state)
                break

            want = self.state.rest if remaining is None else min(remaining, self.state.rest)
            data = await self._transport.receive(want)
            self.state = on_data(self.state, len(data))
            parts.append(data)
            if remaining is not None:
                remaining -= len(data)

            if self.state.phase is Phase.DATA_CRLF:
                self.state = on_data_crlf(self.state, await self._readline())
                if size is None:
                    break
            if remaining == 0:
                break

        return b"".join(parts)
