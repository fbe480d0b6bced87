from __future__ import annotations

import json
from urllib.parse import unquote
import uuid

import httpx
import pytest

from couchlink.config import Settings, get_settings
from couchlink.server import CouchServer


@pytest.fixture(autouse=True)
def clear_settings_cache() -> None:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _not_found(reason: str = "missing") -> httpx.Response:
    return httpx.Response(404, json={"error": "not_found", "reason": reason})


def _conflict() -> httpx.Response:
    return httpx.Response(409, json={"error": "conflict", "reason": "Document update conflict."})


class FakeCouch:
    """In-memory stand-in for the CouchDB endpoints the client talks to."""

    def __init__(self) -> None:
        self.dbs: dict[str, dict[str, dict]] = {}
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        raw_path = request.url.raw_path.decode("ascii").split("?", 1)[0]
        parts = [unquote(part) for part in raw_path.strip("/").split("/") if part]
        params = dict(request.url.params)

        if not parts:
            return httpx.Response(200, json={"couchdb": "Welcome", "version": "3.3.3"})
        if parts == ["_all_dbs"]:
            return httpx.Response(200, json=sorted(self.dbs))
        if parts == ["_uuids"]:
            count = int(params.get("count", "1"))
            return httpx.Response(200, json={"uuids": [uuid.uuid4().hex for _ in range(count)]})

        name, rest = parts[0], parts[1:]
        if not rest:
            return self._database(request, name, params)
        if name not in self.dbs:
            return _not_found("Database does not exist.")

        store = self.dbs[name]
        if rest == ["_bulk_docs"]:
            return self._bulk_docs(store, self._body(request))
        if rest == ["_all_docs"]:
            return self._all_docs(request, store, params)

        doc_id = "/".join(rest[:2]) if rest[0] in ("_design", "_local") else rest[0]
        if request.method == "GET":
            doc = store.get(doc_id)
            if doc is None:
                return _not_found()
            if doc.get("_deleted"):
                return _not_found("deleted")
            return httpx.Response(200, json={"_id": doc_id, **doc})
        if request.method == "PUT":
            body = self._body(request)
            if params.get("batch") == "ok":
                self._write(store, doc_id, body)
                return httpx.Response(202, json={"ok": True, "id": doc_id})
            return self._write_response(store, doc_id, body)
        if request.method == "DELETE":
            return self._write_response(store, doc_id, {"_rev": params.get("rev"), "_deleted": True})
        return httpx.Response(405, json={"error": "method_not_allowed", "reason": "Only GET,PUT,DELETE allowed"})

    @staticmethod
    def _body(request: httpx.Request) -> dict:
        return json.loads(request.content.decode("utf-8"))

    def _database(self, request: httpx.Request, name: str, params: dict) -> httpx.Response:
        if request.method == "PUT":
            if name in self.dbs:
                return httpx.Response(
                    412,
                    json={
                        "error": "file_exists",
                        "reason": "The database could not be created, the file already exists.",
                    },
                )
            self.dbs[name] = {}
            return httpx.Response(201, json={"ok": True})
        if name not in self.dbs:
            return _not_found("Database does not exist.")
        if request.method == "GET":
            live = [doc for doc in self.dbs[name].values() if not doc.get("_deleted")]
            return httpx.Response(200, json={"db_name": name, "doc_count": len(live)})
        if request.method == "DELETE":
            del self.dbs[name]
            return httpx.Response(200, json={"ok": True})
        if request.method == "POST":
            doc_id = uuid.uuid4().hex
            if params.get("batch") == "ok":
                self._write(self.dbs[name], doc_id, self._body(request))
                return httpx.Response(202, json={"ok": True, "id": doc_id})
            return self._write_response(self.dbs[name], doc_id, self._body(request))
        return httpx.Response(405, json={"error": "method_not_allowed", "reason": "Unsupported"})

    @staticmethod
    def _write(store: dict[str, dict], doc_id: str, body: dict) -> dict | None:
        body = dict(body)
        body.pop("_id", None)
        given_rev = body.pop("_rev", None)
        current = store.get(doc_id)
        if current is not None and not current.get("_deleted"):
            if given_rev != current["_rev"]:
                return None
        elif given_rev is not None and current is None:
            return None
        generation = int(current["_rev"].split("-", 1)[0]) + 1 if current else 1
        rev = f"{generation}-{uuid.uuid4().hex}"
        if body.get("_deleted"):
            store[doc_id] = {"_rev": rev, "_deleted": True}
        else:
            store[doc_id] = {"_rev": rev, **body}
        return {"ok": True, "id": doc_id, "rev": rev}

    def _write_response(self, store: dict[str, dict], doc_id: str, body: dict) -> httpx.Response:
        result = self._write(store, doc_id, body)
        if result is None:
            return _conflict()
        status = 200 if body.get("_deleted") else 201
        return httpx.Response(status, json=result)

    def _bulk_docs(self, store: dict[str, dict], payload: dict) -> httpx.Response:
        report = []
        for doc in payload["docs"]:
            doc_id = doc.get("_id") or uuid.uuid4().hex
            result = self._write(store, doc_id, doc)
            if result is None:
                report.append({"id": doc_id, "error": "conflict", "reason": "Document update conflict."})
            else:
                report.append({"id": doc_id, "rev": result["rev"]})
        return httpx.Response(201, json=report)

    def _all_docs(self, request: httpx.Request, store: dict[str, dict], params: dict) -> httpx.Response:
        include_docs = params.get("include_docs") == "true"
        live = {doc_id: doc for doc_id, doc in store.items() if not doc.get("_deleted")}
        keys = self._body(request)["keys"] if request.method == "POST" else sorted(live)
        rows = []
        for key in keys:
            doc = live.get(key)
            if doc is None:
                rows.append({"key": key, "error": "not_found"})
                continue
            row = {"id": key, "key": key, "value": {"rev": doc["_rev"]}}
            if include_docs:
                row["doc"] = {"_id": key, **doc}
            rows.append(row)
        return httpx.Response(200, json={"total_rows": len(live), "offset": 0, "rows": rows})


@pytest.fixture
def settings() -> Settings:
    return Settings(delete_retry_delay_seconds=0.0, bulk_limit=1000)


@pytest.fixture
def fake_couch() -> FakeCouch:
    return FakeCouch()


@pytest.fixture
def server(fake_couch, settings) -> CouchServer:
    couch = CouchServer(
        "localhost",
        5984,
        settings=settings,
        http_transport=httpx.MockTransport(fake_couch.handler),
    )
    yield couch
    couch.close()


@pytest.fixture
def db(server):
    database = server.database("test_db")
    database.create()
    return database
