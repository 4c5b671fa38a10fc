class NagareError(Exception):
    """Base error for Nagare."""


class TransportError(NagareError):
    """Raised when the underlying connection fails to read or close."""


class TransportTimeoutError(TransportError):
    """Raised when a transport read times out."""


class ProtocolError(NagareError):
    """Raised when an HTTP protocol error occurs."""


class FramingError(ProtocolError):
    """Raised when the body does not follow its declared framing."""


class IncompleteBodyError(FramingError):
    """Raised when the connection ends before the declared body does."""


class BodyEOFError(NagareError, EOFError):
    """Raised when reading a body that has already been fully read."""


class ClosedError(NagareError):
    """Raised when reading from a connection that has been closed."""


class ConsumedError(NagareError):
    """Raised when the full body is requested a second time."""


class UnsupportedContentTypeError(NagareError):
    """Raised when a body is decoded as a content type it does not declare."""
