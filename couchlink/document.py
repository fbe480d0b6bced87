from __future__ import annotations

"""Document model shared by reads, writes and view queries."""

from typing import Any

from pydantic import BaseModel

from .errors import ValidationError


class Document(BaseModel):
    """One addressable CouchDB record.

    ``content`` is the JSON body without the ``_id``/``_rev`` bookkeeping
    fields, which are carried separately in ``id`` and ``rev``. ``key`` is set
    only for documents produced by a view or ``_all_docs`` row.
    """

    id: str | None = None
    rev: str | None = None
    key: Any = None
    content: Any = None

    @property
    def has_id(self) -> bool:
        return self.id is not None

    @property
    def has_rev(self) -> bool:
        return self.rev is not None

    @property
    def has_content(self) -> bool:
        return self.content is not None

    def writable_content(self) -> dict[str, Any]:
        """Return the content as a JSON object suitable for a write request."""

        if not self.has_id and not self.has_content:
            raise ValidationError("Document has neither an id nor content")
        if self.content is None:
            return {}
        if not isinstance(self.content, dict):
            raise ValidationError(
                "Document content must be a JSON object for writes",
                {"id": self.id, "content_type": type(self.content).__name__},
            )
        return self.content

    def mark_deleted(self) -> None:
        """Set the ``_deleted`` marker, creating empty content when absent."""

        if self.content is None:
            self.content = {}
        elif not isinstance(self.content, dict):
            raise ValidationError("Cannot mark non-object content as deleted", {"id": self.id})
        self.content["_deleted"] = True

    def __repr__(self) -> str:
        return f"<Document {self.id}@{self.rev}>"
