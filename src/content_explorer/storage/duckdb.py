"""
DuckDB storage backend for content items and embeddings.
"""

from __future__ import annotations

import json
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

import duckdb

from ..content import ContentItem, descriptor_from_dict, descriptor_to_dict
from ..embeddings import validate_embedding
from ..errors import StoreQueryFailed

logger = logging.getLogger(__name__)

_SELECT_ITEMS = """
    SELECT i.key, i.descriptor_json, e.embedding, e.embedding_model, i.created_at
    FROM items i
    LEFT JOIN item_embeddings e ON e.key = i.key
"""


class DuckDBStorage:
    """DuckDB-backed persistence for content items and their embeddings."""

    def __init__(
        self,
        db_path: str,
        *,
        read_only: bool = False,
        initialize: bool = True,
    ) -> None:
        self.db_path = str(Path(db_path).expanduser().resolve())
        self.read_only = read_only
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = duckdb.connect(self.db_path, read_only=read_only)
        self._cursors: set[duckdb.DuckDBPyConnection] = set()
        self._cursors_lock = threading.Lock()
        if initialize and not read_only:
            self.initialize()

    def close(self) -> None:
        """Interrupt running reads and close the underlying DuckDB connection."""
        self.interrupt()
        self._conn.close()

    def interrupt(self) -> None:
        with self._cursors_lock:
            running = list(self._cursors)
        for cursor in running:
            try:
                cursor.interrupt()
            except duckdb.Error as exc:
                logger.debug("Interrupting store query failed: %s", exc)

    @contextmanager
    def _read_cursor(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """Yield a private cursor for one read query; ``interrupt`` can abort it."""
        cursor = self._conn.cursor()
        with self._cursors_lock:
            self._cursors.add(cursor)
        try:
            yield cursor
        finally:
            with self._cursors_lock:
                self._cursors.discard(cursor)
            cursor.close()

    def initialize(self) -> None:
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS items (
                key VARCHAR PRIMARY KEY,
                kind VARCHAR NOT NULL,
                descriptor_json VARCHAR NOT NULL DEFAULT '{}',
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS item_embeddings (
                key VARCHAR PRIMARY KEY,
                embedding DOUBLE[] NOT NULL,
                embedding_dim INTEGER NOT NULL,
                embedding_model VARCHAR,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
            """
        )

    def upsert_item(self, item: ContentItem) -> None:
        descriptor_json = json.dumps(descriptor_to_dict(item.descriptor), sort_keys=True)
        self._conn.execute(
            """
            INSERT INTO items (key, kind, descriptor_json, created_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                kind = excluded.kind,
                descriptor_json = excluded.descriptor_json,
                updated_at = now()
            """,
            [item.key, item.kind.value, descriptor_json, _naive_utc(item.created_at)],
        )
        if item.embedding is not None:
            self.store_embedding(item.key, item.embedding, model=item.embedding_model)

    def get_item(self, key: str) -> ContentItem | None:
        with self._read_cursor() as cursor:
            row = cursor.execute(
                _SELECT_ITEMS + " WHERE i.key = ? LIMIT 1",
                [key],
            ).fetchone()
        if row is None:
            return None
        return self._row_to_item(row)

    def delete_item(self, key: str) -> bool:
        row = self._conn.execute(
            "SELECT COUNT(*) FROM items WHERE key = ?", [key]
        ).fetchone()
        self._conn.execute("DELETE FROM item_embeddings WHERE key = ?", [key])
        self._conn.execute("DELETE FROM items WHERE key = ?", [key])
        return bool(row and row[0])

    def list_items(
        self,
        *,
        has_embedding: bool | None = None,
        limit: int | None = None,
    ) -> list[ContentItem]:
        sql = _SELECT_ITEMS + self._embedding_clause(has_embedding)
        sql += " ORDER BY i.created_at DESC, i.key ASC"
        params: list[Any] = []
        if limit is not None:
            sql += " LIMIT ?"
            params.append(max(limit, 0))
        try:
            with self._read_cursor() as cursor:
                rows = cursor.execute(sql, params).fetchall()
        except duckdb.Error as exc:
            raise StoreQueryFailed(f"Listing items failed: {exc}") from exc
        return [self._row_to_item(row) for row in rows]

    def count_items(self, *, has_embedding: bool | None = None) -> int:
        sql = (
            "SELECT COUNT(*) FROM items i "
            "LEFT JOIN item_embeddings e ON e.key = i.key"
            + self._embedding_clause(has_embedding)
        )
        try:
            with self._read_cursor() as cursor:
                row = cursor.execute(sql).fetchone()
        except duckdb.Error as exc:
            raise StoreQueryFailed(f"Counting items failed: {exc}") from exc
        return int(row[0]) if row else 0

    def store_embedding(
        self,
        key: str,
        embedding: list[float],
        *,
        model: str | None = None,
    ) -> bool:
        vector = validate_embedding(embedding)
        exists = self._conn.execute(
            "SELECT 1 FROM items WHERE key = ? LIMIT 1", [key]
        ).fetchone()
        if exists is None:
            return False

        # Replace rather than update; DuckDB rewrites list columns as delete+insert.
        self._conn.execute("DELETE FROM item_embeddings WHERE key = ?", [key])
        self._conn.execute(
            """
            INSERT INTO item_embeddings (key, embedding, embedding_dim, embedding_model)
            VALUES (?, ?, ?, ?)
            """,
            [key, vector, len(vector), model],
        )
        return True

    def clear_embedding(self, key: str) -> None:
        self._conn.execute("DELETE FROM item_embeddings WHERE key = ?", [key])

    def has_embeddings(self) -> bool:
        row = self._conn.execute("SELECT 1 FROM item_embeddings LIMIT 1").fetchone()
        return row is not None

    @staticmethod
    def _embedding_clause(has_embedding: bool | None) -> str:
        if has_embedding is True:
            return " WHERE e.key IS NOT NULL"
        if has_embedding is False:
            return " WHERE e.key IS NULL"
        return ""

    @staticmethod
    def _row_to_item(row: tuple[Any, ...]) -> ContentItem:
        descriptor = descriptor_from_dict(json.loads(str(row[1])))
        embedding = [float(v) for v in row[2]] if row[2] is not None else None
        created_at = row[4]
        if isinstance(created_at, datetime) and created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return ContentItem(
            key=str(row[0]),
            descriptor=descriptor,
            embedding=embedding,
            embedding_model=str(row[3]) if row[3] is not None else None,
            created_at=created_at,
        )


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
