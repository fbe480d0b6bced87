from __future__ import annotations

"""Normalization of CouchDB result payloads into documents and plain values.

Three raw shapes are handled:
- ``{total_rows, rows: [...]}`` from ``_all_docs`` and view queries
- ``{id, rev?, ok}`` from single-document writes
- ``[{id, rev} | {id, error, reason}, ...]`` from ``_bulk_docs``
"""

from copy import deepcopy
from typing import Any

from pydantic import BaseModel, ConfigDict

from .document import Document
from .errors import CouchError


class BulkWriteResult(BaseModel):
    """Outcome of one document inside a ``_bulk_docs`` request."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    rev: str | None = None
    ok: bool | None = None
    error: str | None = None
    reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


def _require_object(payload: Any, what: str) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise CouchError(f"Expected a JSON object for {what}, got {type(payload).__name__}")
    return payload


def parse_row(row: dict[str, Any]) -> Document | None:
    """Build a document from one result row, or ``None`` for an error row."""

    if row.get("doc") is not None:
        content = deepcopy(row["doc"])
        rev = content.pop("_rev", None) if isinstance(content, dict) else None
        if isinstance(content, dict):
            content.pop("_id", None)
        return Document(id=row.get("id"), rev=rev, key=row.get("key"), content=content)

    if "error" in row:
        return None

    value = deepcopy(row.get("value"))
    rev = None
    if isinstance(value, dict):
        rev = value.pop("rev", None)
        if rev is None:
            rev = value.pop("_rev", None)
    return Document(id=row.get("id"), rev=rev, key=row.get("key"), content=value)


def parse_rows(payload: Any) -> list[Document]:
    """Parse an ``_all_docs`` or view response into documents, in row order.

    Rows carrying an ``error`` field (for example keys that were not found)
    are skipped, so the result may be shorter than ``total_rows``.
    """

    rows = _require_object(payload, "row results").get("rows") or []
    documents: list[Document] = []
    for row in rows:
        doc = parse_row(row)
        if doc is not None:
            documents.append(doc)
    return documents


def parse_document(payload: Any) -> Document:
    """Build a document from a fetched document body."""

    content = deepcopy(_require_object(payload, "a document"))
    rev = content.pop("_rev", None)
    doc_id = content.pop("_id", None)
    return Document(id=doc_id, rev=rev, content=content)


def parse_write_result(payload: Any) -> Document:
    """Build a document from a create/update/delete acknowledgement.

    ``rev`` is absent only for writes made in batch mode; the remaining
    fields (usually ``{"ok": true}``) become the content.
    """

    content = dict(_require_object(payload, "a write result"))
    doc_id = content.pop("id", None)
    rev = content.pop("rev", None)
    return Document(id=doc_id, rev=rev, content=content)


def parse_bulk_report(payload: Any) -> list[BulkWriteResult]:
    """Parse a ``_bulk_docs`` response into one result per submitted document."""

    if not isinstance(payload, list):
        raise CouchError(f"Expected a JSON array for a bulk report, got {type(payload).__name__}")
    return [BulkWriteResult.model_validate(row) for row in payload]


def parse_values(payload: Any, field: str | None = None) -> list[Any]:
    """Return a plain list, optionally taken from ``payload[field]``."""

    values = _require_object(payload, field).get(field) if field is not None else payload
    if not isinstance(values, list):
        raise CouchError(f"Expected a JSON array, got {type(values).__name__}")
    return list(values)
