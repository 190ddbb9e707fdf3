"""PostgreSQL backed search index.

Each import run writes into its own physical table in the ``idx`` schema. Readers
never query those tables directly: they go through a view named after the
document type and dataset (``search.addr_fr``), and publishing an index is the
single transaction that repoints that view and drops the index it replaces.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Protocol

import psycopg
from psycopg import sql
from psycopg.types.json import Jsonb

from geoimport.index.settings import IndexSettings
from util.ids import alias_name, generate_index_name

logger = logging.getLogger(__name__)

INDEX_SCHEMA = "idx"
BULK_BATCH_SIZE = 5_000


class IndexingError(RuntimeError):
    """Raised when an index cannot be created or written to."""


class PublishError(RuntimeError):
    """Raised when an index cannot be made the served index of its dataset."""


class IndexVisibility(Enum):
    PUBLIC = "public"
    PRIVATE = "private"


VISIBILITY_SCHEMAS = {
    IndexVisibility.PUBLIC: "search",
    IndexVisibility.PRIVATE: "search_private",
}


class Document(Protocol):
    id: str

    def to_document(self) -> dict[str, Any]:
        ...


@dataclass(frozen=True)
class SearchIndex:
    name: str
    doc_type: str
    dataset: str

    @property
    def qualified_name(self) -> str:
        return f"{INDEX_SCHEMA}.{self.name}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class IndexClient:
    def __init__(
        self,
        conn: psycopg.Connection,
        *,
        batch_size: int = BULK_BATCH_SIZE,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._conn = conn
        self._batch_size = batch_size
        self._clock = clock

    def create_index(self, doc_type: str, dataset: str, settings: IndexSettings) -> SearchIndex:
        index = SearchIndex(
            name=generate_index_name(doc_type, dataset, created_at=self._clock()),
            doc_type=doc_type,
            dataset=dataset,
        )
        table = sql.Identifier(INDEX_SCHEMA, index.name)
        try:
            with self._conn.cursor() as cur:
                cur.execute(
                    sql.SQL(
                        "CREATE {unlogged}TABLE {table} ("
                        "id text PRIMARY KEY, "
                        "doc jsonb NOT NULL"
                        ") WITH (fillfactor = {fillfactor})"
                    ).format(
                        unlogged=sql.SQL("UNLOGGED " if settings.unlogged else ""),
                        table=table,
                        fillfactor=sql.Literal(settings.fillfactor),
                    )
                )
                for field_name in settings.search_fields:
                    cur.execute(
                        sql.SQL("CREATE INDEX ON {} ((doc ->> {}))").format(
                            table, sql.Literal(field_name)
                        )
                    )
                cur.execute(
                    """
                    INSERT INTO meta.search_index (
                        index_name,
                        doc_type,
                        dataset,
                        status
                    ) VALUES (%s, %s, %s, 'created')
                    """,
                    (index.name, doc_type, dataset),
                )
            self._conn.commit()
        except psycopg.Error as exc:
            self._conn.rollback()
            raise IndexingError(f"Cannot create index {index.qualified_name}: {exc}") from exc

        logger.info("index %s created", index.qualified_name)
        return index

    def bulk_index(self, index: SearchIndex, documents: Iterable[Document]) -> int:
        """Write ``documents`` in batches and return how many were written.

        Documents are upserted by id, so a source repeating an id keeps the last
        version.
        """

        insert_sql = sql.SQL(
            "INSERT INTO {} (id, doc) VALUES (%s, %s) "
            "ON CONFLICT (id) DO UPDATE SET doc = EXCLUDED.doc"
        ).format(sql.Identifier(INDEX_SCHEMA, index.name))

        total_written = 0
        batch: list[tuple[str, Jsonb]] = []
        try:
            with self._conn.cursor() as cur:
                for document in documents:
                    batch.append((document.id, Jsonb(document.to_document())))
                    if len(batch) >= self._batch_size:
                        cur.executemany(insert_sql, batch)
                        total_written += len(batch)
                        batch.clear()
                        logger.debug("%d documents written to %s", total_written, index.qualified_name)
                if batch:
                    cur.executemany(insert_sql, batch)
                    total_written += len(batch)
                    batch.clear()

                cur.execute(
                    """
                    UPDATE meta.search_index
                    SET status = 'populated',
                        document_count = %s
                    WHERE index_name = %s
                    """,
                    (total_written, index.name),
                )
            self._conn.commit()
        except psycopg.Error as exc:
            self._conn.rollback()
            raise IndexingError(f"Bulk write into {index.qualified_name} failed: {exc}") from exc

        return total_written

    def publish_index(
        self,
        dataset: str,
        index: SearchIndex,
        visibility: IndexVisibility = IndexVisibility.PUBLIC,
    ) -> None:
        alias = alias_name(index.doc_type, dataset)
        view = sql.Identifier(VISIBILITY_SCHEMAS[visibility], alias)
        try:
            with self._conn.cursor() as cur:
                cur.execute("SELECT to_regclass(%s)", (index.qualified_name,))
                (regclass,) = cur.fetchone()
                if regclass is None:
                    raise PublishError(f"Cannot publish: index table {index.qualified_name} is missing")

                cur.execute(
                    """
                    SELECT index_name
                    FROM meta.index_alias
                    WHERE alias_name = %s
                      AND visibility = %s
                    FOR UPDATE
                    """,
                    (alias, visibility.value),
                )
                row = cur.fetchone()
                previous = row[0] if row is not None else None

                cur.execute(
                    sql.SQL("CREATE OR REPLACE VIEW {} AS SELECT id, doc FROM {}").format(
                        view, sql.Identifier(INDEX_SCHEMA, index.name)
                    )
                )

                cur.execute("SELECT txid_current()")
                publish_txid = int(cur.fetchone()[0])

                cur.execute(
                    """
                    INSERT INTO meta.index_alias (
                        alias_name,
                        visibility,
                        doc_type,
                        dataset,
                        index_name,
                        published_at_utc,
                        publish_txid
                    ) VALUES (%s, %s, %s, %s, %s, now(), %s)
                    ON CONFLICT (alias_name, visibility)
                    DO UPDATE SET
                        index_name = EXCLUDED.index_name,
                        published_at_utc = EXCLUDED.published_at_utc,
                        publish_txid = EXCLUDED.publish_txid
                    """,
                    (alias, visibility.value, index.doc_type, dataset, index.name, publish_txid),
                )
                cur.execute(
                    """
                    UPDATE meta.search_index
                    SET status = 'published',
                        published_at_utc = now()
                    WHERE index_name = %s
                    """,
                    (index.name,),
                )

                if previous is not None and previous != index.name:
                    self._drop_if_unreferenced(cur, previous)
            self._conn.commit()
        except PublishError:
            self._conn.rollback()
            raise
        except psycopg.Error as exc:
            self._conn.rollback()
            raise PublishError(f"Cannot publish {index.qualified_name} as {alias}: {exc}") from exc

        logger.info(
            "index %s published as %s.%s",
            index.qualified_name,
            VISIBILITY_SCHEMAS[visibility],
            alias,
        )

    def _drop_if_unreferenced(self, cur: psycopg.Cursor, index_name: str) -> None:
        # The same physical index may still back the alias of the other visibility.
        cur.execute(
            "SELECT 1 FROM meta.index_alias WHERE index_name = %s LIMIT 1",
            (index_name,),
        )
        if cur.fetchone() is not None:
            return
        cur.execute(
            """
            UPDATE meta.search_index
            SET status = 'superseded'
            WHERE index_name = %s
            """,
            (index_name,),
        )
        cur.execute(sql.SQL("DROP TABLE IF EXISTS {}").format(sql.Identifier(INDEX_SCHEMA, index_name)))
        logger.info("superseded index %s.%s dropped", INDEX_SCHEMA, index_name)
