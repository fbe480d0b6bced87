from __future__ import annotations

"""HTTP transport shared by every server and database handle.

Two retry policies live here and stay separate:
- transient-failure retry, repeating a request after a connection-level error
- server-busy retry, repeating a request while the server answers 5xx
"""

import logging
import time

import httpx

from .errors import TransportExhaustionError, ValidationError
from .response import CouchResponse

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (httpx.NetworkError, httpx.RemoteProtocolError)


class Transport:
    """Thin synchronous wrapper over a thread-safe ``httpx.Client``."""

    def __init__(
        self,
        timeout_seconds: float = 30.0,
        transport: httpx.BaseTransport | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        """Create a transport, owning a new ``httpx.Client`` unless one is given."""

        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout_seconds, transport=transport)

    def close(self) -> None:
        """Close the underlying connection pool when owned."""

        if self._owns_client:
            self._client.close()

    def __enter__(self) -> Transport:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def request(
        self,
        method: str,
        url: httpx.URL | str,
        body: bytes | None = None,
        content_type: str | None = None,
        attempts: int = 1,
    ) -> CouchResponse:
        """Execute one request, retrying connection failures up to ``attempts`` times.

        Any HTTP response, error statuses included, is returned unclassified.
        """

        if attempts < 1:
            raise ValidationError("attempts must be greater than 0", {"attempts": attempts})

        headers = {"Content-Type": content_type} if content_type else None
        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                response = self._client.request(method, url, content=body, headers=headers)
            except RETRYABLE_ERRORS as exc:
                last_error = exc
                logger.debug(
                    "Got %s on attempt #%d of %d on %s %s", exc, attempt, attempts, method, url
                )
                continue
            except httpx.TransportError as exc:
                raise TransportExhaustionError(str(url), attempt, exc) from exc
            return CouchResponse.from_httpx(response)

        raise TransportExhaustionError(str(url), attempts, last_error) from last_error

    def request_busy_retry(
        self,
        method: str,
        url: httpx.URL | str,
        attempts: int = 5,
        delay_seconds: float = 0.1,
    ) -> CouchResponse:
        """Repeat a request while the server answers 5xx, sleeping between attempts.

        The last response is returned for classification once attempts run out
        or a non-5xx status arrives.
        """

        if attempts < 1:
            raise ValidationError("attempts must be greater than 0", {"attempts": attempts})

        attempt = 1
        response = self.request(method, url)
        while response.status_code >= 500 and attempt < attempts:
            logger.debug(
                "Got %d on attempt #%d of %d on %s %s",
                response.status_code,
                attempt,
                attempts,
                method,
                url,
            )
            time.sleep(delay_seconds)
            attempt += 1
            response = self.request(method, url)
        return response

    def get(self, url: httpx.URL | str) -> CouchResponse:
        """Send a GET request."""

        return self.request("GET", url)

    def put(
        self,
        url: httpx.URL | str,
        body: bytes | None = None,
        content_type: str | None = None,
        attempts: int = 1,
    ) -> CouchResponse:
        """Send a PUT request, retrying connection failures ``attempts`` times."""

        return self.request("PUT", url, body=body, content_type=content_type, attempts=attempts)

    def post(
        self,
        url: httpx.URL | str,
        body: bytes | None = None,
        content_type: str | None = None,
    ) -> CouchResponse:
        """Send a POST request."""

        return self.request("POST", url, body=body, content_type=content_type)

    def delete(self, url: httpx.URL | str) -> CouchResponse:
        """Send a DELETE request."""

        return self.request("DELETE", url)
