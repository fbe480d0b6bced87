from __future__ import annotations

"""Error types raised by the CouchDB client.

- CouchError: base class, optionally carrying an HTTP status code
- ConstructionError: an endpoint could not be built from the given inputs
- TransportExhaustionError: every transport attempt failed at connection level
- ProtocolError: the server answered with a non-2xx status
- ValidationError: a client-side precondition failed before any request
"""

from typing import Any


class CouchError(Exception):
    """Base exception for all client errors.

    Attributes:
        message: Human-readable error message
        status_code: HTTP status code, or 0 when no response was involved
    """

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ConstructionError(CouchError, ValueError):
    """Invalid host, port, database name or path segment for an endpoint."""


class TransportExhaustionError(CouchError):
    """All attempts to reach an endpoint failed without an HTTP response."""

    def __init__(self, url: str, attempts: int, cause: Exception | None = None) -> None:
        """Record the endpoint and attempt count alongside the last failure."""

        super().__init__(f"Operation failed after {attempts} attempts: {url}")
        self.url = url
        self.attempts = attempts
        self.cause = cause


class ProtocolError(CouchError):
    """Non-2xx response from the server.

    Attributes:
        body: Raw response body, when one was received
    """

    def __init__(self, status_code: int, message: str, body: str | None = None) -> None:
        super().__init__(message, status_code=status_code)
        self.body = body


class ValidationError(CouchError, ValueError):
    """Client-side precondition failure, raised before any network call."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}
