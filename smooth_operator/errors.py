# smooth_operator/errors.py

"""Exceptions raised by the Smooth Operator client."""

from typing import Optional


class SmoothOperatorError(Exception):
    """Base class for all client errors."""


class InstallError(SmoothOperatorError):
    """The server bundle could not be located or extracted."""


class ProcessLaunchError(SmoothOperatorError):
    """The operating system refused to start the server process."""


class HandshakeTimeoutError(SmoothOperatorError, TimeoutError):
    """The server did not report its port number in time."""


class ReadinessTimeoutError(SmoothOperatorError, TimeoutError):
    """The server reported a port but never answered the liveness check."""


class InvalidStateError(SmoothOperatorError):
    """An operation was called in a session state that does not allow it."""


class HttpError(SmoothOperatorError):
    """The server answered with a non-success status code."""

    def __init__(self, status_code: int, body: str, url: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        self.url = url
        preview = body[:200] + ("..." if len(body) > 200 else "")
        super().__init__(f"HTTP {status_code} from {url or 'server'}: {preview}")


class ProtocolError(SmoothOperatorError):
    """A response or handshake file had content that could not be parsed."""


class TransportError(SmoothOperatorError):
    """The request never produced an HTTP response (refused, reset, timed out)."""
