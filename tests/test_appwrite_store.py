# tests/test_appwrite_store.py

from __future__ import annotations

import json

import httpx
import pytest

from taskboard.core.errors import StoreError
from taskboard.core.ports import ListQuery
from taskboard.storage.appwrite_store import AppwriteDocumentStore, build_queries


def _store(handler, **kwargs) -> AppwriteDocumentStore:
    return AppwriteDocumentStore(
        endpoint="https://cloud.example.test/v1/",
        project_id="proj-1",
        database_id="db-1",
        api_key=kwargs.pop("api_key", "secret"),
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_build_queries() -> None:
    queries = build_queries(
        ListQuery(equal={"taskId": "t1", "duration": 0}, order_by="$createdAt", descending=True, limit=1)
    )
    assert [json.loads(q) for q in queries] == [
        {"method": "equal", "attribute": "taskId", "values": ["t1"]},
        {"method": "equal", "attribute": "duration", "values": [0]},
        {"method": "orderDesc", "attribute": "$createdAt"},
        {"method": "limit", "values": [1]},
    ]
    assert build_queries(None) == []
    assert [json.loads(q)["method"] for q in build_queries(ListQuery(order_by="order"))] == ["orderAsc"]


def test_requires_project_and_database() -> None:
    with pytest.raises(ValueError):
        AppwriteDocumentStore(endpoint="https://x.test/v1", project_id="", database_id="db")


@pytest.mark.asyncio
async def test_list_sends_queries_and_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"total": 1, "documents": [{"$id": "a", "title": "A"}]})

    store = _store(handler)
    docs = await store.list("tasks", ListQuery(order_by="$createdAt", limit=200))
    await store.aclose()

    assert docs == [{"$id": "a", "title": "A"}]
    [request] = seen
    assert request.method == "GET"
    assert request.url.path == "/v1/databases/db-1/collections/tasks/documents"
    assert request.headers["X-Appwrite-Project"] == "proj-1"
    assert request.headers["X-Appwrite-Key"] == "secret"
    assert [json.loads(q)["method"] for q in request.url.params.get_list("queries[]")] == [
        "orderAsc",
        "limit",
    ]


@pytest.mark.asyncio
async def test_api_key_is_optional() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"documents": []})

    store = _store(handler, api_key=None)
    assert await store.list("tasks") == []
    await store.aclose()

    assert "X-Appwrite-Key" not in seen[0].headers


@pytest.mark.asyncio
async def test_create_update_delete_requests() -> None:
    seen: list[tuple[str, str, dict | None]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        seen.append((request.method, request.url.path, body))
        if request.method == "DELETE":
            return httpx.Response(204)
        return httpx.Response(200, json={"$id": "doc-1", **((body or {}).get("data") or {})})

    store = _store(handler)
    created = await store.create("tasks", {"title": "A", "$id": "ignored-system-field"})
    updated = await store.update("tasks", "doc-1", {"statusId": "st-2"})
    await store.delete("tasks", "doc-1")
    await store.aclose()

    assert created == {"$id": "doc-1", "title": "A"}
    assert updated == {"$id": "doc-1", "statusId": "st-2"}
    base = "/v1/databases/db-1/collections/tasks/documents"
    assert seen == [
        ("POST", base, {"documentId": "ignored-system-field", "data": {"title": "A"}}),
        ("PATCH", f"{base}/doc-1", {"data": {"statusId": "st-2"}}),
        ("DELETE", f"{base}/doc-1", None),
    ]


@pytest.mark.asyncio
async def test_create_uses_unique_id_by_default() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(201, json={"$id": "generated"})

    store = _store(handler)
    await store.create("time-entries", {"taskId": "t1", "duration": 0})
    await store.aclose()

    assert bodies[0]["documentId"] == "unique()"


@pytest.mark.asyncio
async def test_error_status_maps_to_store_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "Document with the requested ID could not be found.", "code": 404})

    store = _store(handler)
    with pytest.raises(StoreError) as excinfo:
        await store.update("tasks", "missing", {"title": "x"})
    await store.aclose()

    assert excinfo.value.status_code == 404
    assert "could not be found" in str(excinfo.value)


@pytest.mark.asyncio
async def test_non_json_error_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="Bad Gateway")

    store = _store(handler)
    with pytest.raises(StoreError) as excinfo:
        await store.list("tasks")
    await store.aclose()

    assert excinfo.value.status_code == 502
    assert "Bad Gateway" in str(excinfo.value)


@pytest.mark.asyncio
async def test_transport_error_maps_to_store_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    store = _store(handler)
    with pytest.raises(StoreError) as excinfo:
        await store.list("tasks")
    await store.aclose()

    assert excinfo.value.status_code is None
