# src/taskboard/storage/sqlite_store.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import re
import sqlite3
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..core.errors import StoreError
from ..core.ports import Document, ListQuery
from ..realtime.feed import EventType, LocalRealtimeFeed, RealtimeEvent, channel_for
from ..tasks.models import format_ts

logger = logging.getLogger(__name__)

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# System attributes live in real columns; everything else is inside the JSON body.
_SYSTEM_COLUMNS = {"$id": "id", "$createdAt": "created_at", "$updatedAt": "updated_at"}


def _new_id() -> str:
    return uuid.uuid4().hex[:20]


class SqliteDocumentStore:
    """
    SQLite-backed document store with the same surface as the hosted backend.

    One table holds every collection; user fields are a JSON object queried
    with json_extract. Every successful write is published to the realtime
    feed, so several boards sharing one store see each other's changes.

    Thread-safety:
    - each call opens its own SQLite connection and runs in a worker thread
    """

    def __init__(
        self,
        db_path: str | Path = "taskboard.sqlite3",
        *,
        feed: LocalRealtimeFeed | None = None,
        database_id: str = "local",
    ) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._feed = feed
        self._database_id = database_id
        self._ensure_schema()
        try:
            total = self.count_documents()
        except Exception:
            total = -1
        logger.info("SqliteDocumentStore ready db=%s total=%s", self._db_path, total)

    @property
    def database_id(self) -> str:
        return self._database_id

    def attach_feed(self, feed: LocalRealtimeFeed) -> None:
        self._feed = feed

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    data TEXT NOT NULL DEFAULT '{}',
                    PRIMARY KEY (collection, id)
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_documents_created ON documents(collection, created_at)"
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_doc(row: sqlite3.Row) -> Document:
        try:
            data = json.loads(row["data"] or "{}")
        except json.JSONDecodeError:
            logger.warning("Corrupt document body collection=%s id=%s", row["collection"], row["id"])
            data = {}
        if not isinstance(data, dict):
            data = {}
        data.update(
            {
                "$id": row["id"],
                "$collectionId": row["collection"],
                "$createdAt": row["created_at"],
                "$updatedAt": row["updated_at"],
            }
        )
        return data

    @staticmethod
    def _clean_fields(fields: dict[str, Any]) -> dict[str, Any]:
        return {k: v for k, v in fields.items() if not k.startswith("$")}

    @staticmethod
    def _column_expr(field_name: str) -> str:
        col = _SYSTEM_COLUMNS.get(field_name)
        if col:
            return col
        if not _FIELD_RE.match(field_name):
            raise StoreError(f"Invalid field name: {field_name!r}", status_code=400)
        return f"json_extract(data, '$.{field_name}')"

    def _get_sync(self, conn: sqlite3.Connection, collection: str, doc_id: str) -> Document:
        row = conn.execute(
            "SELECT * FROM documents WHERE collection = ? AND id = ?", (collection, doc_id)
        ).fetchone()
        if row is None:
            raise StoreError(f"Document not found: {collection}/{doc_id}", status_code=404)
        return self._row_to_doc(row)

    # ---- sync operations ----

    def count_documents(self, collection: str | None = None) -> int:
        conn = self._get_conn()
        try:
            if collection is None:
                (n,) = conn.execute("SELECT COUNT(*) FROM documents").fetchone()
            else:
                (n,) = conn.execute(
                    "SELECT COUNT(*) FROM documents WHERE collection = ?", (collection,)
                ).fetchone()
            return int(n)
        finally:
            conn.close()

    def list_sync(self, collection: str, query: ListQuery | None = None) -> list[Document]:
        query = query or ListQuery()
        where = ["collection = ?"]
        params: list[Any] = [collection]

        for name, value in query.equal.items():
            expr = self._column_expr(name)
            if value is None:
                where.append(f"{expr} IS NULL")
            else:
                where.append(f"{expr} = ?")
                params.append(value)

        sql = f"SELECT * FROM documents WHERE {' AND '.join(where)}"
        if query.order_by:
            direction = "DESC" if query.descending else "ASC"
            sql += f" ORDER BY {self._column_expr(query.order_by)} {direction}, created_at {direction}"
        else:
            sql += " ORDER BY created_at ASC"
        if query.limit is not None:
            sql += " LIMIT ?"
            params.append(int(query.limit))

        conn = self._get_conn()
        try:
            return [self._row_to_doc(r) for r in conn.execute(sql, params).fetchall()]
        finally:
            conn.close()

    def create_sync(self, collection: str, fields: dict[str, Any]) -> Document:
        doc_id = str(fields.get("$id") or _new_id())
        now = format_ts(datetime.now(UTC))
        body = json.dumps(self._clean_fields(fields), ensure_ascii=False)

        conn = self._get_conn()
        try:
            try:
                conn.execute(
                    "INSERT INTO documents(collection, id, created_at, updated_at, data) VALUES (?, ?, ?, ?, ?)",
                    (collection, doc_id, now, now, body),
                )
            except sqlite3.IntegrityError as exc:
                raise StoreError(f"Document already exists: {collection}/{doc_id}", status_code=409) from exc
            conn.commit()
            logger.debug("Document created %s/%s", collection, doc_id)
            return self._get_sync(conn, collection, doc_id)
        finally:
            conn.close()

    def update_sync(self, collection: str, doc_id: str, fields: dict[str, Any]) -> Document:
        conn = self._get_conn()
        try:
            current = self._get_sync(conn, collection, doc_id)
            merged = self._clean_fields(current)
            merged.update(self._clean_fields(fields))
            conn.execute(
                "UPDATE documents SET data = ?, updated_at = ? WHERE collection = ? AND id = ?",
                (
                    json.dumps(merged, ensure_ascii=False),
                    format_ts(datetime.now(UTC)),
                    collection,
                    doc_id,
                ),
            )
            conn.commit()
            return self._get_sync(conn, collection, doc_id)
        finally:
            conn.close()

    def delete_sync(self, collection: str, doc_id: str) -> Document:
        conn = self._get_conn()
        try:
            doc = self._get_sync(conn, collection, doc_id)
            conn.execute("DELETE FROM documents WHERE collection = ? AND id = ?", (collection, doc_id))
            conn.commit()
            return doc
        finally:
            conn.close()

    # ---- DocumentStore (async) ----

    def _publish(self, collection: str, event_type: EventType, doc: Document) -> None:
        if self._feed is None:
            return
        self._feed.publish(
            channel_for(self._database_id, collection),
            RealtimeEvent(event_type=event_type, payload=dict(doc)),
        )

    async def list(self, collection: str, query: ListQuery | None = None) -> list[Document]:
        return await asyncio.to_thread(self.list_sync, collection, query)

    async def create(self, collection: str, fields: dict[str, Any]) -> Document:
        doc = await asyncio.to_thread(self.create_sync, collection, fields)
        self._publish(collection, EventType.CREATE, doc)
        return doc

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> Document:
        doc = await asyncio.to_thread(self.update_sync, collection, doc_id, fields)
        self._publish(collection, EventType.UPDATE, doc)
        return doc

    async def delete(self, collection: str, doc_id: str) -> None:
        doc = await asyncio.to_thread(self.delete_sync, collection, doc_id)
        self._publish(collection, EventType.DELETE, doc)
