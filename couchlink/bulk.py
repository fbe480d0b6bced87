from __future__ import annotations

"""Thread-safe buffer of pending document writes for ``_bulk_docs``."""

from collections.abc import Callable
import logging
import threading
from typing import Any

from .document import Document
from .errors import ValidationError
from .results import BulkWriteResult, parse_bulk_report

logger = logging.getLogger(__name__)

BulkSender = Callable[[dict[str, Any]], Any]


class BulkBuffer:
    """Queue of documents written together once ``limit`` is reached.

    Every operation touching the pending list holds the same lock, so a flush
    triggered by one thread's ``add`` cannot interleave with another thread's
    ``add``, ``flush``, ``clear`` or ``size``.
    """

    def __init__(self, send: BulkSender, limit: int = 1000) -> None:
        """Create a buffer that hands ``{"docs": [...]}`` payloads to ``send``.

        ``send`` must return the decoded ``_bulk_docs`` response and raise on
        a failed request.
        """

        self._send = send
        self._lock = threading.Lock()
        self._pending: list[Document] = []
        self._limit = _validate_limit(limit)

    @property
    def limit(self) -> int:
        with self._lock:
            return self._limit

    @limit.setter
    def limit(self, value: int) -> None:
        with self._lock:
            self._limit = _validate_limit(value)

    def add(self, doc: Document) -> None:
        """Queue a document, flushing when the buffer reaches its limit."""

        if not doc.has_content:
            raise ValidationError("Document has no JSON content", {"id": doc.id})
        if not isinstance(doc.content, dict):
            raise ValidationError("Document content must be a JSON object", {"id": doc.id})

        with self._lock:
            self._pending.append(doc)
            if len(self._pending) >= self._limit:
                self._flush_locked(all_or_nothing=False, return_report=False)

    def delete_marked(self, doc: Document) -> None:
        """Queue a deletion by setting ``_deleted`` on the document's content."""

        doc.mark_deleted()
        self.add(doc)

    def flush(
        self,
        all_or_nothing: bool = False,
        return_report: bool = False,
    ) -> list[BulkWriteResult] | None:
        """Send every pending document in one request and empty the buffer.

        Individual conflicts are reported per row and do not fail the call.
        Returns the per-document rows when ``return_report`` is set.
        """

        with self._lock:
            return self._flush_locked(all_or_nothing, return_report)

    def size(self) -> int:
        """Return the number of pending documents."""

        with self._lock:
            return len(self._pending)

    def clear(self) -> None:
        """Drop every pending document without sending it."""

        with self._lock:
            self._pending.clear()

    def __len__(self) -> int:
        return self.size()

    def _flush_locked(
        self,
        all_or_nothing: bool,
        return_report: bool,
    ) -> list[BulkWriteResult] | None:
        if not self._pending:
            return [] if return_report else None

        payload: dict[str, Any] = {"docs": [_bulk_entry(doc) for doc in self._pending]}
        if all_or_nothing:
            payload["all_or_nothing"] = True

        logger.debug("Flushing %d pending documents", len(self._pending))
        report = self._send(payload)
        self._pending.clear()
        if not return_report:
            return None
        return parse_bulk_report(report)


def _validate_limit(limit: int) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationError("Bulk limit must be greater than 0", {"limit": limit})
    return limit


def _bulk_entry(doc: Document) -> dict[str, Any]:
    """Content plus ``_id`` and ``_rev``; a missing ``_rev`` means insert."""

    entry = dict(doc.content)
    if doc.has_id:
        entry["_id"] = doc.id
    if doc.has_rev:
        entry["_rev"] = doc.rev
    return entry
