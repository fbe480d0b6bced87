from __future__ import annotations

"""Response envelope and status classification for CouchDB replies."""

import json
from typing import Any

import httpx

from .errors import ProtocolError

_UNPARSED = object()


class CouchResponse:
    """Status, reason phrase and body of one CouchDB HTTP response.

    The structured JSON view of the body is parsed on first access and cached.
    Two threads reading ``json`` at the same time may both parse the body; the
    result is identical and nothing else is touched, so no lock is taken.
    """

    def __init__(
        self,
        status_code: int,
        reason_phrase: str = "",
        body: str | None = None,
        content: bytes = b"",
        content_type: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.reason_phrase = reason_phrase
        self.body = body
        self.content = content
        self.content_type = content_type
        self._json: Any = _UNPARSED

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> CouchResponse:
        """Capture an ``httpx.Response`` whose content has been read."""

        content = response.content
        body = content.decode("utf-8", errors="replace") if content else None
        return cls(
            status_code=response.status_code,
            reason_phrase=response.reason_phrase,
            body=body,
            content=content,
            content_type=response.headers.get("content-type"),
        )

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def json(self) -> Any:
        """Parsed body, or ``None`` for an empty body.

        Raises ``ValueError`` when the body is not valid JSON.
        """

        if self._json is _UNPARSED:
            self._json = json.loads(self.body) if self.body and self.body.strip() else None
        return self._json

    def __repr__(self) -> str:
        return f"<CouchResponse {self.status_code} {self.reason_phrase}>"


def error_message(response: CouchResponse) -> str:
    """Compose ``Error: <error> - <reason> (<status>)`` from an error body.

    Falls back to the reason phrase when the body carries neither field.
    """

    try:
        payload = response.json
    except ValueError:
        payload = None

    parts: list[str] = []
    if isinstance(payload, dict):
        if payload.get("error") is not None:
            parts.append(f"Error: {payload['error']}")
        if payload.get("reason") is not None:
            parts.append(str(payload["reason"]))
    if not parts:
        return f"{response.reason_phrase or 'HTTP error'} ({response.status_code})"
    return f"{' - '.join(parts)} ({response.status_code})"


def raise_for_status(response: CouchResponse) -> CouchResponse:
    """Return the response when it is 2xx, otherwise raise ``ProtocolError``."""

    if not response.ok:
        raise ProtocolError(response.status_code, error_message(response), body=response.body)
    return response
