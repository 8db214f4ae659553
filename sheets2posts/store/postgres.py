from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

import psycopg2
from psycopg2.extras import execute_values

from ..errors import StoreWriteError
from .base import ContentRecord

"""PostgreSQL content store.

Posts, their metadata and their terms live in four tables (created by
ensure_schema()). Every write runs in its own transaction: a rejected row is
rolled back and reported as StoreWriteError, the rest of the batch goes on.
"""

__all__ = [
    "SCHEMA_SQL",
    "PostgresContentStore",
]

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS s2p_posts (
    id BIGSERIAL PRIMARY KEY,
    title TEXT NOT NULL,
    content_html TEXT NOT NULL,
    status VARCHAR(20) NOT NULL,
    content_type VARCHAR(64) NOT NULL,
    post_date TIMESTAMPTZ
);
CREATE INDEX IF NOT EXISTS s2p_posts_title_idx ON s2p_posts (content_type, title);
CREATE TABLE IF NOT EXISTS s2p_post_meta (
    post_id BIGINT NOT NULL REFERENCES s2p_posts (id) ON DELETE CASCADE,
    meta_key VARCHAR(255) NOT NULL,
    meta_value TEXT NOT NULL,
    PRIMARY KEY (post_id, meta_key)
);
CREATE TABLE IF NOT EXISTS s2p_terms (
    id BIGSERIAL PRIMARY KEY,
    taxonomy VARCHAR(32) NOT NULL,
    name TEXT NOT NULL,
    UNIQUE (taxonomy, name)
);
CREATE TABLE IF NOT EXISTS s2p_post_terms (
    post_id BIGINT NOT NULL REFERENCES s2p_posts (id) ON DELETE CASCADE,
    term_id BIGINT NOT NULL REFERENCES s2p_terms (id) ON DELETE CASCADE,
    PRIMARY KEY (post_id, term_id)
);
"""

CATEGORY = "category"
TAG = "post_tag"


class PostgresContentStore:
    """Content store and taxonomy over a psycopg2 connection.

    The connection is owned by the caller (the CLI opens and closes it).
    """

    def __init__(self, conn: Any) -> None:
        self.conn = conn

    def _execute(self, sql: str, params: Sequence[Any] = (), *, fetch: bool = False) -> Any:
        """Run one statement in its own transaction and return the first row if asked."""
        try:
            with self.conn.cursor() as cur:
                cur.execute(sql, params)
                row = cur.fetchone() if fetch else None
            self.conn.commit()
            return row
        except psycopg2.Error as e:
            self.conn.rollback()
            raise StoreWriteError(str(e).strip()) from e

    def ensure_schema(self) -> None:
        self._execute(SCHEMA_SQL)
        logger.debug("schema ready")

    # ContentStore

    def find_by_exact_title(self, title: str, content_type: str) -> int | None:
        row = self._execute(
            "SELECT id FROM s2p_posts WHERE title = %s AND content_type = %s ORDER BY id LIMIT 1",
            (title, content_type),
            fetch=True,
        )
        return int(row[0]) if row else None

    def create(
        self,
        title: str,
        content_html: str,
        status: str,
        content_type: str,
        date: datetime | None = None,
    ) -> int:
        row = self._execute(
            "INSERT INTO s2p_posts (title, content_html, status, content_type, post_date) "
            "VALUES (%s, %s, %s, %s, %s) RETURNING id",
            (title, content_html, status, content_type, date),
            fetch=True,
        )
        return int(row[0])

    def update(
        self,
        record_id: int,
        title: str,
        content_html: str,
        status: str,
        content_type: str,
        date: datetime | None = None,
    ) -> None:
        row = self._execute(
            "UPDATE s2p_posts SET title = %s, content_html = %s, status = %s, content_type = %s, "
            "post_date = COALESCE(%s, post_date) WHERE id = %s RETURNING id",
            (title, content_html, status, content_type, date, record_id),
            fetch=True,
        )
        if row is None:
            raise StoreWriteError(f"record {record_id} does not exist")

    def get_metadata(self, record_id: int, key: str) -> str:
        row = self._execute(
            "SELECT meta_value FROM s2p_post_meta WHERE post_id = %s AND meta_key = %s",
            (record_id, key),
            fetch=True,
        )
        return row[0] if row else ""

    def set_metadata(self, record_id: int, key: str, value: str) -> None:
        self._execute(
            "INSERT INTO s2p_post_meta (post_id, meta_key, meta_value) VALUES (%s, %s, %s) "
            "ON CONFLICT (post_id, meta_key) DO UPDATE SET meta_value = EXCLUDED.meta_value",
            (record_id, key, value),
        )

    def get_record(self, record_id: int) -> ContentRecord:
        row = self._execute(
            "SELECT id, status, post_date FROM s2p_posts WHERE id = %s", (record_id,), fetch=True
        )
        if row is None:
            raise StoreWriteError(f"record {record_id} does not exist")
        return ContentRecord(record_id=int(row[0]), status=row[1], date=row[2])

    # Taxonomy

    def _ensure_term(self, taxonomy: str, name: str) -> int:
        row = self._execute(
            "INSERT INTO s2p_terms (taxonomy, name) VALUES (%s, %s) "
            "ON CONFLICT (taxonomy, name) DO UPDATE SET name = EXCLUDED.name RETURNING id",
            (taxonomy, name),
            fetch=True,
        )
        return int(row[0])

    def _replace_terms(self, record_id: int, taxonomy: str, term_ids: Sequence[int]) -> None:
        try:
            with self.conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM s2p_post_terms pt USING s2p_terms t "
                    "WHERE pt.term_id = t.id AND pt.post_id = %s AND t.taxonomy = %s",
                    (record_id, taxonomy),
                )
                if term_ids:
                    execute_values(
                        cur,
                        "INSERT INTO s2p_post_terms (post_id, term_id) VALUES %s "
                        "ON CONFLICT DO NOTHING",
                        [(record_id, term_id) for term_id in term_ids],
                    )
            self.conn.commit()
        except psycopg2.Error as e:
            self.conn.rollback()
            raise StoreWriteError(str(e).strip()) from e

    def ensure_category(self, name: str) -> int:
        return self._ensure_term(CATEGORY, name)

    def assign_category(self, record_id: int, category_id: int) -> None:
        self._replace_terms(record_id, CATEGORY, [category_id])

    def assign_tags(self, record_id: int, tag_names: Sequence[str]) -> None:
        term_ids = [self._ensure_term(TAG, name) for name in tag_names]
        self._replace_terms(record_id, TAG, term_ids)
