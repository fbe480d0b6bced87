from __future__ import annotations

"""JSON serialization for request bodies sent to CouchDB."""

import json
from typing import Any

JSON_CONTENT_TYPE = "application/json"
LEGACY_JSON_CONTENT_TYPE = "application/json; charset=ISO-8859-1"
UTF8_JSON_CONTENT_TYPE = "application/json; charset=utf-8"


def serialize_json(payload: Any) -> str:
    """Serialize to compact JSON, keeping non-ASCII characters as-is."""

    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def reencode_utf8_as_latin1(text: str) -> str:
    """Reinterpret the UTF-8 bytes of ``text`` as ISO-8859-1 characters.

    Older CouchDB releases reject bodies that are not raw UTF-8 bytes sent one
    byte per character; the result maps every UTF-8 byte to one code point.

    >>> reencode_utf8_as_latin1("é")
    'Ã©'
    """

    return text.encode("utf-8").decode("iso-8859-1")


def text_body(text: str, legacy_latin1: bool = True) -> bytes:
    """Return the wire bytes for already-serialized JSON text."""

    if legacy_latin1:
        return reencode_utf8_as_latin1(text).encode("iso-8859-1")
    return text.encode("utf-8")


def json_body(payload: Any, legacy_latin1: bool = True) -> bytes:
    """Serialize ``payload`` and return its wire bytes."""

    return text_body(serialize_json(payload), legacy_latin1)


def body_content_type(legacy_latin1: bool = True) -> str:
    """Content type announced for a JSON body built by ``text_body``.

    Legacy bodies are labelled ISO-8859-1, the charset their characters were
    reinterpreted in; otherwise the body is declared as UTF-8.
    """

    return LEGACY_JSON_CONTENT_TYPE if legacy_latin1 else UTF8_JSON_CONTENT_TYPE
