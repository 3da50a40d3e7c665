# src/taskboard/storage/appwrite_store.py

from __future__ import annotations

"""
Appwrite Databases REST client.

Only the four document calls the board needs. Queries are sent in the JSON
form accepted by Appwrite 1.5+:
    queries[]={"method":"equal","attribute":"taskId","values":["..."]}
"""

import json
import logging
from typing import Any

import httpx

from ..core.errors import StoreError
from ..core.ports import Document, ListQuery

logger = logging.getLogger(__name__)


def build_queries(query: ListQuery | None) -> list[str]:
    if query is None:
        return []
    out: list[str] = []
    for attr, value in query.equal.items():
        out.append(json.dumps({"method": "equal", "attribute": attr, "values": [value]}))
    if query.order_by:
        method = "orderDesc" if query.descending else "orderAsc"
        out.append(json.dumps({"method": method, "attribute": query.order_by}))
    if query.limit is not None:
        out.append(json.dumps({"method": "limit", "values": [int(query.limit)]}))
    return out


class AppwriteDocumentStore:
    def __init__(
        self,
        *,
        endpoint: str,
        project_id: str,
        database_id: str,
        api_key: str | None = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not project_id or not database_id:
            raise ValueError("Appwrite project_id and database_id are required")

        headers = {"X-Appwrite-Project": project_id, "Content-Type": "application/json"}
        if api_key:
            headers["X-Appwrite-Key"] = api_key

        self._database_id = database_id
        self._client = httpx.AsyncClient(
            base_url=endpoint.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        logger.info("AppwriteDocumentStore ready endpoint=%s database=%s", endpoint, database_id)

    @property
    def database_id(self) -> str:
        return self._database_id

    async def aclose(self) -> None:
        await self._client.aclose()

    def _path(self, collection: str, doc_id: str | None = None) -> str:
        base = f"/databases/{self._database_id}/collections/{collection}/documents"
        return f"{base}/{doc_id}" if doc_id else base

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise StoreError(f"{method} {path} failed: {exc}") from exc

        if response.is_error:
            try:
                message = response.json().get("message") or response.text
            except ValueError:
                message = response.text
            raise StoreError(
                f"{method} {path} -> {response.status_code}: {message}",
                status_code=response.status_code,
            )
        return response

    async def list(self, collection: str, query: ListQuery | None = None) -> list[Document]:
        params = [("queries[]", q) for q in build_queries(query)]
        response = await self._request("GET", self._path(collection), params=params)
        docs = response.json().get("documents") or []
        return [d for d in docs if isinstance(d, dict)]

    async def create(self, collection: str, fields: dict[str, Any]) -> Document:
        body = {
            "documentId": str(fields.get("$id") or "unique()"),
            "data": {k: v for k, v in fields.items() if not k.startswith("$")},
        }
        response = await self._request("POST", self._path(collection), json=body)
        return response.json()

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> Document:
        body = {"data": {k: v for k, v in fields.items() if not k.startswith("$")}}
        response = await self._request("PATCH", self._path(collection, doc_id), json=body)
        return response.json()

    async def delete(self, collection: str, doc_id: str) -> None:
        await self._request("DELETE", self._path(collection, doc_id))
