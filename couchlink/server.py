from __future__ import annotations

"""Server-level CouchDB API: version, databases, UUIDs, config and stats."""

from typing import Any

import httpx

from . import endpoints
from .config import Settings, get_settings
from .database import Database
from .response import raise_for_status
from .results import parse_values
from .transport import Transport


class CouchServer:
    """Connection to one CouchDB server.

    Host and port are fixed for the lifetime of the object. The server owns a
    single ``Transport`` which every ``Database`` created from it shares.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 5984,
        settings: Settings | None = None,
        transport: Transport | None = None,
        http_transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Validate the address and create (or adopt) the shared transport.

        ``http_transport`` is passed to the underlying ``httpx.Client`` and is
        mostly useful for tests with ``httpx.MockTransport``.
        """

        self._host = endpoints.validate_host(host)
        self._port = endpoints.validate_port(port)
        self.settings = settings or get_settings()
        self._owns_transport = transport is None
        self.transport = transport or Transport(
            timeout_seconds=self.settings.timeout_seconds,
            transport=http_transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **kwargs: Any) -> CouchServer:
        """Create a server addressed by ``COUCHDB_HOST``/``COUCHDB_PORT``."""

        settings = settings or get_settings()
        return cls(settings.host, settings.port, settings=settings, **kwargs)

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    def close(self) -> None:
        """Close the shared transport when this server created it."""

        if self._owns_transport:
            self.transport.close()

    def __enter__(self) -> CouchServer:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def database(self, name: str, bulk_limit: int | None = None) -> Database:
        """Return a handle for ``name``; nothing is created on the server."""

        return Database(self, name, bulk_limit=bulk_limit)

    def _get_json(self, url: httpx.URL) -> Any:
        return raise_for_status(self.transport.get(url)).json

    def version(self) -> str:
        """Return the server version, a cheap reachability check."""

        return self._get_json(endpoints.server_root(self.host, self.port))["version"]

    def all_dbs(self) -> list[str]:
        """Return the names of every database on the server."""

        return parse_values(self._get_json(endpoints.all_dbs(self.host, self.port)))

    def config(self) -> dict[str, Any]:
        """Return the server configuration, grouped by section."""

        return self._get_json(endpoints.config(self.host, self.port))

    def stats(self) -> dict[str, Any]:
        """Return the server statistics document."""

        return self._get_json(endpoints.stats(self.host, self.port))

    def next_uuids(self, count: int) -> list[str]:
        """Fetch ``count`` server-generated UUIDs for new document ids."""

        payload = self._get_json(endpoints.uuids(self.host, self.port, count))
        return parse_values(payload, "uuids")

    def next_uuid(self) -> str:
        """Fetch one server-generated UUID."""

        return self.next_uuids(1)[0]

    def active_tasks(self) -> list[dict[str, Any]]:
        """Return the background tasks currently running on the server."""

        return parse_values(self._get_json(endpoints.active_tasks(self.host, self.port)))

    def __repr__(self) -> str:
        return f"CouchDB @{endpoints.server_root(self.host, self.port)}"
