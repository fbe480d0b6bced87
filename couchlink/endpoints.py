from __future__ import annotations

"""Endpoint construction for the CouchDB HTTP API.

Every function here is pure: it maps a host, port, database name and optional
document/view identifiers onto a fully encoded ``httpx.URL``. Raw identifiers
are percent-encoded exactly once; invalid inputs raise ``ConstructionError``.
"""

from collections.abc import Mapping, Sequence
import json
import re
from typing import Any
from urllib.parse import quote, urlencode

import httpx

from .errors import ConstructionError

Query = Mapping[str, Any] | Sequence[tuple[str, Any]] | None

VALID_DB_NAME = re.compile(r"^[a-z][a-z0-9_$()+/-]*$")
SPECIAL_DB_NAMES = frozenset({"_users", "_replicator"})
RESERVED_DOC_PREFIXES = ("_design/", "_local/")
JSON_ENCODED_OPTIONS = frozenset({"key", "keys", "startkey", "endkey"})

_HOST_FORBIDDEN = re.compile(r"[\s/?#@\\]")


def validate_host(host: str) -> str:
    """Return the host, bracketed when it is a bare IPv6 literal."""

    if not isinstance(host, str) or not host.strip():
        raise ConstructionError("Host must be a non-empty string")
    if _HOST_FORBIDDEN.search(host):
        raise ConstructionError(f"Invalid host {host!r}")
    if ":" in host and not host.startswith("["):
        return f"[{host}]"
    return host


def validate_port(port: int) -> int:
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
        raise ConstructionError(f"Invalid port {port!r}")
    return port


def validate_db_name(name: str) -> str:
    """Return the name if CouchDB accepts it as a database name."""

    if not isinstance(name, str) or (
        name not in SPECIAL_DB_NAMES and not VALID_DB_NAME.match(name)
    ):
        raise ConstructionError(f"Invalid database name {name!r}")
    return name


def _require_segment(value: str, what: str) -> str:
    if not isinstance(value, str) or not value:
        raise ConstructionError(f"{what} must be a non-empty string")
    return value


def document_path(doc_id: str) -> list[str]:
    """Split a document id into raw path segments.

    Ids under a reserved prefix such as ``_design/foo`` keep the prefix as its
    own segment; any other ``/`` belongs to the id and gets encoded.
    """

    _require_segment(doc_id, "Document id")
    for prefix in RESERVED_DOC_PREFIXES:
        if doc_id.startswith(prefix) and len(doc_id) > len(prefix):
            return [prefix[:-1], doc_id[len(prefix):]]
    return [doc_id]


def _encode_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_query(query: Query) -> str:
    """URL-encode query parameters given as a mapping or a list of pairs."""

    if not query:
        return ""
    pairs = query.items() if isinstance(query, Mapping) else query
    return urlencode([(name, _encode_value(value)) for name, value in pairs])


def encode_view_options(options: Query) -> list[tuple[str, str]]:
    """JSON-encode key-like and non-string view options.

    ``startkey="a"`` becomes ``startkey="a"`` (quoted) and ``include_docs=True``
    becomes ``include_docs=true``, as the view API expects JSON values.
    """

    if not options:
        return []
    pairs = options.items() if isinstance(options, Mapping) else options
    encoded: list[tuple[str, str]] = []
    for name, value in pairs:
        if name in JSON_ENCODED_OPTIONS or not isinstance(value, str):
            value = json.dumps(value, separators=(",", ":"))
        encoded.append((name, value))
    return encoded


def build_url(host: str, port: int, *segments: str, query: Query = None) -> httpx.URL:
    """Build an endpoint from raw path segments, encoding each exactly once."""

    authority = f"{validate_host(host)}:{validate_port(port)}"
    path = "/".join(quote(segment, safe="") for segment in segments)
    url = f"http://{authority}/{path}"
    encoded_query = encode_query(query)
    if encoded_query:
        url = f"{url}?{encoded_query}"
    try:
        return httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise ConstructionError(f"Cannot build endpoint {url!r}: {exc}") from exc


# Server level


def server_root(host: str, port: int) -> httpx.URL:
    return build_url(host, port)


def all_dbs(host: str, port: int) -> httpx.URL:
    return build_url(host, port, "_all_dbs")


def uuids(host: str, port: int, count: int) -> httpx.URL:
    """UUID endpoint; ``count`` is omitted from the query when not positive."""

    query = {"count": count} if count > 0 else None
    return build_url(host, port, "_uuids", query=query)


def config(host: str, port: int) -> httpx.URL:
    return build_url(host, port, "_config")


def stats(host: str, port: int) -> httpx.URL:
    return build_url(host, port, "_stats")


def active_tasks(host: str, port: int) -> httpx.URL:
    return build_url(host, port, "_active_tasks")


# Database level


def database(host: str, port: int, db_name: str) -> httpx.URL:
    return build_url(host, port, validate_db_name(db_name))


def all_docs(host: str, port: int, db_name: str, query: Query = None) -> httpx.URL:
    return build_url(host, port, validate_db_name(db_name), "_all_docs", query=query)


def bulk_docs(host: str, port: int, db_name: str) -> httpx.URL:
    return build_url(host, port, validate_db_name(db_name), "_bulk_docs")


def changes(host: str, port: int, db_name: str, query: Query = None) -> httpx.URL:
    return build_url(host, port, validate_db_name(db_name), "_changes", query=query)


def revs_limit(host: str, port: int, db_name: str) -> httpx.URL:
    return build_url(host, port, validate_db_name(db_name), "_revs_limit")


def compact(
    host: str,
    port: int,
    db_name: str,
    design_doc: str | None = None,
) -> httpx.URL:
    """Database compaction, or view compaction when ``design_doc`` is given."""

    segments = [validate_db_name(db_name), "_compact"]
    if design_doc is not None:
        segments.append(_require_segment(design_doc, "Design document name"))
    return build_url(host, port, *segments)


def view_cleanup(host: str, port: int, db_name: str) -> httpx.URL:
    return build_url(host, port, validate_db_name(db_name), "_view_cleanup")


def temp_view(host: str, port: int, db_name: str) -> httpx.URL:
    return build_url(host, port, validate_db_name(db_name), "_temp_view")


# Documents and attachments


def document(
    host: str,
    port: int,
    db_name: str,
    doc_id: str | None = None,
    batch: bool = False,
) -> httpx.URL:
    """Document endpoint; without ``doc_id`` it targets the database for POST."""

    segments = [validate_db_name(db_name)]
    if doc_id is not None:
        segments.extend(document_path(doc_id))
    query = {"batch": "ok"} if batch else None
    return build_url(host, port, *segments, query=query)


def document_revision(host: str, port: int, db_name: str, doc_id: str, rev: str) -> httpx.URL:
    """Endpoint addressing one revision of a document, as used by delete."""

    segments = [validate_db_name(db_name), *document_path(doc_id)]
    return build_url(host, port, *segments, query={"rev": _require_segment(rev, "Revision")})


def attachment(
    host: str,
    port: int,
    db_name: str,
    doc_id: str,
    file_name: str,
    rev: str | None = None,
) -> httpx.URL:
    segments = [
        validate_db_name(db_name),
        *document_path(doc_id),
        _require_segment(file_name, "Attachment file name"),
    ]
    query = {"rev": rev} if rev else None
    return build_url(host, port, *segments, query=query)


# Design documents and views


def design_document(host: str, port: int, db_name: str, design_doc: str) -> httpx.URL:
    name = _require_segment(design_doc, "Design document name")
    return build_url(host, port, validate_db_name(db_name), "_design", name)


def design_document_info(host: str, port: int, db_name: str, design_doc: str) -> httpx.URL:
    name = _require_segment(design_doc, "Design document name")
    return build_url(host, port, validate_db_name(db_name), "_design", name, "_info")


def view(
    host: str,
    port: int,
    db_name: str,
    design_doc: str,
    view_name: str,
    query: Query = None,
) -> httpx.URL:
    return build_url(
        host,
        port,
        validate_db_name(db_name),
        "_design",
        _require_segment(design_doc, "Design document name"),
        "_view",
        _require_segment(view_name, "View name"),
        query=query,
    )
