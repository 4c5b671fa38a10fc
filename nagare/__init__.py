from nagare.response import Response
from nagare.aio import AsyncResponse
from nagare.transport import (
    ConnState,
    Transport,
    AsyncTransport,
    SocketTransport,
    AsyncStreamTransport,
)
from nagare.headers import Single, Multiple, collect_headers, flatten_headers, normalize_headers
from nagare.framing import body_forbidden, select_framing
from nagare.errors import (
    NagareError,
    TransportError,
    TransportTimeoutError,
    ProtocolError,
    FramingError,
    IncompleteBodyError,
    BodyEOFError,
    ClosedError,
    ConsumedError,
    UnsupportedContentTypeError,
)

__all__ = [
    "Response",
    "AsyncResponse",
    "ConnState",
    "Transport",
    "AsyncTransport",
    "SocketTransport",
    "AsyncStreamTransport",
    "Single",
    "Multiple",
    "collect_headers",
    "flatten_headers",
    "normalize_headers",
    "body_forbidden",
    "select_framing",
    "NagareError",
    "TransportError",
    "TransportTimeoutError",
    "ProtocolError",
    "FramingError",
    "IncompleteBodyError",
    "BodyEOFError",
    "ClosedError",
    "ConsumedError",
    "UnsupportedContentTypeError",
]
