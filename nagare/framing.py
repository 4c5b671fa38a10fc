"""
Body framing decisions for HTTP/1.1 responses.

Everything here works on the header set as received, before multi-line
values are joined, and never touches the connection.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass

from .headers import HeaderValue, find_header

_DIGITS = re.compile(r"[0-9]+")


def body_forbidden(status_code: int, method: str) -> bool:
    """
    Return True when a response can never carry a body, whatever its
    framing headers say: 1xx, 204 No Content, 304 Not Modified, or any
    answer to a HEAD request.
    """
    if status_code < 200 or status_code in (204, 304):
        return True
    return method.upper() == "HEAD"


def is_chunked(headers: Mapping[str, HeaderValue]) -> bool:
    value = find_header(headers, "Transfer-Encoding")
    if value is None:
        return False
    return any("chunked" in part.lower() for part in value)


def parse_content_length(value: HeaderValue | None) -> int | None:
    """
    Parse a Content-Length header.

    Returns None when the header is absent or unusable. Repeated lines are
    accepted only when they all carry the same number.
    """
    if value is None:
        return None
    lengths = {part.strip() for part in value}
    if len(lengths) != 1:
        return None
    (length,) = lengths
    if not _DIGITS.fullmatch(length):
        return None
    return int(length)


def is_keepalive(headers: Mapping[str, HeaderValue]) -> bool:
    # Only an explicit "keep-alive" counts; HTTP/1.1's implicit default is not assumed.
    value = find_header(headers, "Connection")
    return value is not None and value.joined() == "keep-alive"


@dataclass(frozen=True)
class Framing:
    """How a response body is delimited on the wire."""

    chunked: bool
    content_length: int | None
    keepalive: bool
    forbidden: bool = False


def select_framing(
    status_code: int,
    method: str,
    headers: Mapping[str, HeaderValue],
) -> Framing:
    keepalive = is_keepalive(headers)
    if body_forbidden(status_code, method):
        return Framing(chunked=False, content_length=0, keepalive=keepalive, forbidden=True)
    if is_chunked(headers):
        return Framing(chunked=True, content_length=None, keepalive=keepalive)
    length = parse_content_length(find_header(headers, "Content-Length"))
    return Framing(chunked=False, content_length=length, keepalive=keepalive)
