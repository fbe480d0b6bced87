from __future__ import annotations

"""Database-level CouchDB API: documents, attachments, bulk writes and views."""

from collections.abc import Iterable, Mapping
import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from . import endpoints
from .bulk import BulkBuffer
from .document import Document
from .encoding import JSON_CONTENT_TYPE, body_content_type, json_body, text_body
from .endpoints import Query, encode_view_options
from .errors import ValidationError
from .response import CouchResponse, raise_for_status
from .results import (
    BulkWriteResult,
    parse_document,
    parse_rows,
    parse_values,
    parse_write_result,
)
from .transport import Transport

if TYPE_CHECKING:
    from .server import CouchServer

logger = logging.getLogger(__name__)


class Database:
    """Handle on one database of a ``CouchServer``.

    Each handle owns one ``BulkBuffer``; documents queued with
    ``save_in_bulk``/``delete_in_bulk`` stay pending until the buffer reaches
    ``bulk_limit`` or ``flush_bulk`` is called.
    """

    def __init__(self, server: CouchServer, name: str, bulk_limit: int | None = None) -> None:
        self.server = server
        self.name = endpoints.validate_db_name(name)
        self._bulk = BulkBuffer(
            self._send_bulk,
            limit=bulk_limit if bulk_limit is not None else server.settings.bulk_limit,
        )

    @property
    def _transport(self) -> Transport:
        return self.server.transport

    @property
    def _legacy_latin1(self) -> bool:
        return self.server.settings.legacy_latin1_bodies

    @property
    def _body_content_type(self) -> str:
        return body_content_type(self._legacy_latin1)

    def _address(self) -> tuple[str, int, str]:
        return self.server.host, self.server.port, self.name

    def _json(self, response: CouchResponse) -> Any:
        return raise_for_status(response).json

    def _post_json(self, url: httpx.URL, payload: Any) -> CouchResponse:
        body = json_body(payload, self._legacy_latin1)
        return self._transport.post(url, body=body, content_type=self._body_content_type)

    # Database

    def info(self) -> dict[str, Any]:
        """Return the database information document."""

        return self._json(self._transport.get(endpoints.database(*self._address())))

    def info_as_map(self) -> dict[str, str]:
        """Database info with every value rendered as text."""

        return {
            name: value if isinstance(value, str) else json.dumps(value)
            for name, value in self.info().items()
        }

    def exists(self) -> bool:
        """Return whether the database exists; a 404 means it does not."""

        response = self._transport.get(endpoints.database(*self._address()))
        if response.status_code == 404:
            return False
        raise_for_status(response)
        return True

    def create(self) -> None:
        """Create the database; an existing one yields ``ProtocolError(412)``."""

        raise_for_status(self._transport.put(endpoints.database(*self._address())))

    def create_if_not_exists(self) -> None:
        """Create the database unless it is already there."""

        if not self.exists():
            logger.debug("Creating missing database %s", self.name)
            self.create()

    def delete(self) -> None:
        """Delete the database, retrying while the server reports 5xx.

        Deleting right after heavy use often fails with a transient 500
        (file still locked on some platforms).
        """

        settings = self.server.settings
        response = self._transport.request_busy_retry(
            "DELETE",
            endpoints.database(*self._address()),
            attempts=settings.delete_attempts,
            delay_seconds=settings.delete_retry_delay_seconds,
        )
        raise_for_status(response)

    def get_revs_limit(self) -> int:
        """Return how many revisions the database keeps per document."""

        response = raise_for_status(self._transport.get(endpoints.revs_limit(*self._address())))
        return int((response.body or "").strip())

    def set_revs_limit(self, limit: int) -> None:
        """Set how many revisions the database keeps per document."""

        raise_for_status(
            self._transport.put(
                endpoints.revs_limit(*self._address()),
                body=str(limit).encode("ascii"),
                content_type=JSON_CONTENT_TYPE,
            )
        )

    def changes(self, params: Query = None) -> list[dict[str, Any]]:
        """Return the rows of a one-shot ``_changes`` feed.

        Continuous and long-polling feeds never complete and are rejected.
        """

        options = encode_view_options(params)
        for name, value in options:
            if (name == "feed" and value in ("continuous", "longpoll", "eventsource")) or (
                name == "continuous" and value == "true"
            ):
                raise ValidationError("Streaming change feeds are not supported", {name: value})
        payload = self._json(self._transport.get(endpoints.changes(*self._address(), options)))
        return parse_values(payload, "results")

    def compact(self) -> None:
        """Start compaction of the database file."""

        url = endpoints.compact(*self._address())
        raise_for_status(self._transport.post(url, content_type=JSON_CONTENT_TYPE))

    # Documents

    def get_document(self, doc_id: str) -> Document:
        """Fetch the current revision of a document."""

        url = endpoints.document(*self._address(), doc_id)
        return parse_document(self._json(self._transport.get(url)))

    def get_document_or_none(self, doc_id: str) -> Document | None:
        """Fetch a document, returning ``None`` when it is not found."""

        response = self._transport.get(endpoints.document(*self._address(), doc_id))
        if response.status_code == 404:
            return None
        return parse_document(raise_for_status(response).json)

    def get_documents(self, ids: Iterable[str], include_docs: bool = False) -> list[Document]:
        """Fetch several documents by id; ids that are not found are left out."""

        query = encode_view_options({"include_docs": True} if include_docs else None)
        url = endpoints.all_docs(*self._address(), query)
        return parse_rows(self._json(self._post_json(url, {"keys": list(ids)})))

    def get_all_documents(
        self,
        include_docs: bool = False,
        params: Query = None,
    ) -> list[Document]:
        """List ``_all_docs`` rows, with full documents when ``include_docs`` is set."""

        if params is None and include_docs:
            params = {"include_docs": True}
        url = endpoints.all_docs(*self._address(), encode_view_options(params))
        return parse_rows(self._json(self._transport.get(url)))

    def create_document(
        self,
        doc: Document | Mapping[str, Any],
        doc_id: str | None = None,
        batch: bool = False,
    ) -> Document:
        """Create a document, with the given id or a server-assigned one.

        In batch mode the server acknowledges without a revision and applies
        the write later; the returned document then has no ``rev``.
        """

        if isinstance(doc, Document):
            doc_id = doc_id or doc.id
            content = doc.writable_content()
        elif isinstance(doc, Mapping):
            content = dict(doc)
        else:
            raise ValidationError("Document content must be a JSON object")

        body = json_body(content, self._legacy_latin1)
        url = endpoints.document(*self._address(), doc_id, batch=batch)
        if doc_id is not None:
            response = self._transport.put(url, body=body, content_type=self._body_content_type)
        else:
            response = self._transport.post(url, body=body, content_type=self._body_content_type)
        return parse_write_result(self._json(response))

    def update_document(self, doc: Document) -> Document:
        """Write new content for an existing document revision.

        Connection resets are common on updates, so the request is repeated up
        to ``update_attempts`` times. A stale ``rev`` yields ``ProtocolError(409)``.
        """

        if not doc.has_id:
            raise ValidationError("Cannot update a document without an id")
        if not doc.has_rev:
            raise ValidationError(
                f"Cannot update {doc.id} - missing a current revision number",
                {"id": doc.id},
            )
        if not doc.has_content:
            raise ValidationError(f"Cannot update {doc.id} - document has no content", {"id": doc.id})

        content = {**doc.writable_content(), "_rev": doc.rev}
        response = self._transport.put(
            endpoints.document(*self._address(), doc.id),
            body=json_body(content, self._legacy_latin1),
            content_type=self._body_content_type,
            attempts=self.server.settings.update_attempts,
        )
        return parse_write_result(self._json(response))

    def delete_document(self, doc: Document) -> str:
        """Delete a document revision and return the revision of the deletion stub."""

        if not doc.has_id or not doc.has_rev:
            raise ValidationError("Deleting a document requires its id and revision", {"id": doc.id})
        url = endpoints.document_revision(*self._address(), doc.id, doc.rev)
        return self._json(self._transport.delete(url))["rev"]

    # Attachments

    def get_attachment(self, doc_id: str, file_name: str) -> bytes:
        """Return the raw bytes of a document attachment."""

        url = endpoints.attachment(*self._address(), doc_id, file_name)
        return raise_for_status(self._transport.get(url)).content

    def get_attachment_response(self, doc_id: str, file_name: str) -> CouchResponse:
        """Return the unclassified attachment response, content type included."""

        return self._transport.get(endpoints.attachment(*self._address(), doc_id, file_name))

    def save_attachment(
        self,
        doc: Document,
        file_name: str,
        data: bytes,
        content_type: str,
    ) -> Document:
        """Attach ``data`` to ``doc``, creating the document when it has no ``rev``."""

        if not doc.has_id:
            raise ValidationError("Attachments require a document id")
        url = endpoints.attachment(*self._address(), doc.id, file_name, rev=doc.rev)
        response = self._transport.put(url, body=data, content_type=content_type)
        return parse_write_result(self._json(response))

    def delete_attachment(self, doc: Document, file_name: str) -> Document:
        """Remove an attachment, returning the document at its new revision."""

        if not doc.has_id or not doc.has_rev:
            raise ValidationError(
                "Deleting an attachment requires the document id and revision", {"id": doc.id}
            )
        url = endpoints.attachment(*self._address(), doc.id, file_name, rev=doc.rev)
        return parse_write_result(self._json(self._transport.delete(url)))

    # Bulk writes

    @property
    def bulk_limit(self) -> int:
        """Pending document count that triggers an automatic bulk flush."""

        return self._bulk.limit

    @bulk_limit.setter
    def bulk_limit(self, value: int) -> None:
        self._bulk.limit = value

    def _send_bulk(self, payload: dict[str, Any]) -> Any:
        return self._json(self._post_json(endpoints.bulk_docs(*self._address()), payload))

    def save_in_bulk(self, doc: Document) -> None:
        """Queue a create/update; a document without ``rev`` is inserted."""

        self._bulk.add(doc)

    def delete_in_bulk(self, doc: Document) -> None:
        """Queue a deletion stub for the next ``_bulk_docs`` request."""

        self._bulk.delete_marked(doc)

    def flush_bulk(
        self,
        all_or_nothing: bool = False,
        return_report: bool = False,
    ) -> list[BulkWriteResult] | None:
        """Send every pending bulk document now."""

        return self._bulk.flush(all_or_nothing=all_or_nothing, return_report=return_report)

    def pending_bulk_count(self) -> int:
        """Return the number of documents waiting in the bulk buffer."""

        return self._bulk.size()

    def clear_bulk(self) -> None:
        """Drop pending bulk documents without sending them."""

        self._bulk.clear()

    # Design documents and views

    def get_design_document(self, design_doc: str) -> Document:
        """Fetch a design document by its name, without the ``_design/`` prefix."""

        url = endpoints.design_document(*self._address(), design_doc)
        return parse_document(self._json(self._transport.get(url)))

    def design_document_info(self, design_doc: str) -> dict[str, Any]:
        """Return index statistics for the views of one design document."""

        url = endpoints.design_document_info(*self._address(), design_doc)
        return self._json(self._transport.get(url))

    def query_view_raw(
        self,
        design_doc: str,
        view_name: str,
        params: Query = None,
    ) -> dict[str, Any]:
        """Query a view and return the undecorated JSON response.

        ``params`` hold Python values; keys and non-string values are sent as JSON.
        """

        url = endpoints.view(*self._address(), design_doc, view_name, encode_view_options(params))
        return self._json(self._transport.get(url))

    def query_view(self, design_doc: str, view_name: str, params: Query = None) -> list[Document]:
        """Query a view and return its rows as documents."""

        return parse_rows(self.query_view_raw(design_doc, view_name, params))

    def get_from_view(
        self,
        design_doc: str,
        view_name: str,
        keys: Iterable[Any],
        params: Query = None,
    ) -> list[Document]:
        """Query a view for a set of keys in one request."""

        url = endpoints.view(*self._address(), design_doc, view_name, encode_view_options(params))
        return parse_rows(self._json(self._post_json(url, {"keys": list(keys)})))

    def temp_view(self, view: Mapping[str, Any] | str) -> list[Document]:
        """Run an ad-hoc view given as a mapping or as serialized JSON text."""

        url = endpoints.temp_view(*self._address())
        if isinstance(view, str):
            body = text_body(view, self._legacy_latin1)
            response = self._transport.post(url, body=body, content_type=self._body_content_type)
        else:
            response = self._post_json(url, dict(view))
        return parse_rows(self._json(response))

    def compact_views(self, design_doc: str) -> None:
        """Compact the view indexes of one design document."""

        url = endpoints.compact(*self._address(), design_doc)
        raise_for_status(self._transport.post(url, content_type=JSON_CONTENT_TYPE))

    def cleanup_views(self) -> None:
        """Remove index files no longer used by any design document."""

        url = endpoints.view_cleanup(*self._address())
        raise_for_status(self._transport.post(url, content_type=JSON_CONTENT_TYPE))

    def __repr__(self) -> str:
        return f"{self.server!r}{self.name}"
