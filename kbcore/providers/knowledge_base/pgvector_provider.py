"""PostgreSQL + pgvector knowledge base provider.

Stores documents in a single table shared by all knowledge bases (rows are
scoped by ``kb_id``) and runs similarity search with pgvector's distance
operators.  Connections come from an injected ``psycopg_pool.AsyncConnectionPool``.

Metadata filters are compiled by
:func:`kbcore.services.filters.sql_compiler.compile_filter` into ``jsonb``
predicates with positional parameters.

``add_documents`` is best effort: each document is written inside its own
savepoint, so a rejected row rolls back alone and the rest of the batch is
kept.  Loss of the connection itself fails the whole call.

The document catalog lives in a companion ``<table>_catalog`` table.  Chunk
rows point at their parent through ``document_id``; search skips chunks
whose parent is disabled.  ``create_document`` writes the parent and its
chunks in one transaction.
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, AsyncIterator

import psycopg
import structlog

from kbcore.interfaces.embedding_provider import IEmbeddingProvider
from kbcore.interfaces.knowledge_base_provider import IKnowledgeBaseProvider
from kbcore.models.filters import MetadataFilter
from kbcore.models.knowledge_base import (
    AddDocumentsResult,
    CreateDocumentRequest,
    DeleteDocumentsResult,
    DistanceMetric,
    Document,
    DocumentChunk,
    DocumentSummary,
    KnowledgeBaseDocument,
    SearchResult,
    SourceInfo,
)
from kbcore.providers.knowledge_base.document_catalog import (
    chunk_documents,
    validate_create_request,
)
from kbcore.providers.knowledge_base.embedding_guard import embed_texts
from kbcore.services.filters.sql_compiler import compile_filter
from kbcore.utils.errors import BackendError
from kbcore.utils.validation import (
    validate_embedding_dimensions,
    validate_knowledge_base_id,
    validate_search_params,
    validate_sql_identifier,
)

if TYPE_CHECKING:
    from psycopg_pool import AsyncConnectionPool

logger = structlog.get_logger(logger_name=__name__)

_SELECT_COLUMNS = "id, content, metadata, source"

_CATALOG_COLUMNS = (
    "id, title, description, source_filename, content_type, original_size_bytes, "
    "chunk_count, metadata, disabled, created_at, updated_at"
)


class PgVectorKnowledgeBaseProvider(IKnowledgeBaseProvider):
    """Knowledge base stored in a pgvector-enabled PostgreSQL table.

    Parameters
    ----------
    kb_id:
        Knowledge base id; every row written by this provider carries it.
    pool:
        Open async connection pool.
    embedding_provider:
        Embeds documents at add time and queries at search time.
    dimensions:
        Vector size, used for the ``vector(n)`` column and per-row checks.
    distance_metric:
        Distance operator for search; see :class:`DistanceMetric` for the
        distance-to-similarity conversion.
    table_name:
        Target table (optionally schema-qualified).
    """

    def __init__(
        self,
        kb_id: str,
        pool: AsyncConnectionPool,
        embedding_provider: IEmbeddingProvider,
        dimensions: int,
        distance_metric: DistanceMetric = DistanceMetric.COSINE,
        table_name: str = "kb_documents",
    ) -> None:
        validate_knowledge_base_id(kb_id)
        validate_embedding_dimensions(dimensions)
        validate_sql_identifier(table_name)
        self._kb_id = kb_id
        self._pool = pool
        self._embedding_provider = embedding_provider
        self._dimensions = dimensions
        self._metric = distance_metric
        self._table = table_name
        self._catalog_table = f"{table_name}_catalog"

    @property
    def knowledge_base_id(self) -> str:
        return self._kb_id

    def get_provider_name(self) -> str:
        return "pgvector"

    @asynccontextmanager
    async def _connection(self, operation: str) -> AsyncIterator[Any]:
        try:
            async with self._pool.connection() as conn:
                yield conn
        except psycopg.Error as exc:
            logger.error(
                "pgvector_operation_failed",
                kb_id=self._kb_id,
                operation=operation,
                error=str(exc),
            )
            raise BackendError(
                message=f"pgvector {operation} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    async def ensure_schema(self) -> None:
        """Create the extension, tables and indexes if they do not exist."""
        index_prefix = self._table.rsplit(".", 1)[-1]
        statements = [
            "CREATE EXTENSION IF NOT EXISTS vector",
            (
                f"CREATE TABLE IF NOT EXISTS {self._table} ("
                "id TEXT NOT NULL, "
                "kb_id TEXT NOT NULL, "
                "content TEXT NOT NULL, "
                f"embedding vector({self._dimensions}), "
                "metadata JSONB NOT NULL DEFAULT '{}'::jsonb, "
                "source TEXT, "
                "document_id TEXT, "
                "chunk_index INTEGER, "
                "created_at TIMESTAMPTZ NOT NULL DEFAULT now(), "
                "updated_at TIMESTAMPTZ NOT NULL DEFAULT now(), "
                "PRIMARY KEY (kb_id, id))"
            ),
            (
                f"CREATE INDEX IF NOT EXISTS {index_prefix}_embedding_idx "
                f"ON {self._table} USING hnsw (embedding {self._metric.index_ops})"
            ),
            (
                f"CREATE INDEX IF NOT EXISTS {index_prefix}_source_idx "
                f"ON {self._table} (kb_id, source)"
            ),
            (
                f"CREATE INDEX IF NOT EXISTS {index_prefix}_metadata_idx "
                f"ON {self._table} USING gin (metadata)"
            ),
            f"ALTER TABLE {self._table} ADD COLUMN IF NOT EXISTS document_id TEXT",
            f"ALTER TABLE {self._table} ADD COLUMN IF NOT EXISTS chunk_index INTEGER",
            (
                f"CREATE INDEX IF NOT EXISTS {index_prefix}_document_idx "
                f"ON {self._table} (kb_id, document_id)"
            ),
            (
                f"CREATE TABLE IF NOT EXISTS {self._catalog_table} ("
                "id TEXT NOT NULL, "
                "kb_id TEXT NOT NULL, "
                "title TEXT, "
                "description TEXT, "
                "source_filename TEXT, "
                "content_type TEXT, "
                "original_size_bytes BIGINT, "
                "chunk_count INTEGER NOT NULL DEFAULT 0, "
                "metadata JSONB NOT NULL DEFAULT '{}'::jsonb, "
                "disabled BOOLEAN NOT NULL DEFAULT FALSE, "
                "created_at TIMESTAMPTZ NOT NULL DEFAULT now(), "
                "updated_at TIMESTAMPTZ NOT NULL DEFAULT now(), "
                "PRIMARY KEY (kb_id, id))"
            ),
        ]
        async with self._connection("ensure_schema") as conn:
            for statement in statements:
                await conn.execute(statement)
        logger.info("pgvector_schema_ready", table=self._table, dimensions=self._dimensions)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(
        self,
        query: str,
        top_k: int = 10,
        similarity_threshold: float = 0.7,
        metadata_filter: MetadataFilter | None = None,
        include_embeddings: bool = False,
    ) -> list[SearchResult]:
        validate_search_params(top_k, similarity_threshold)
        query_embedding = await embed_texts(
            self._embedding_provider, [query], self.get_provider_name()
        )

        columns = _SELECT_COLUMNS + f", embedding {self._metric.sql_operator} %s::vector AS distance"
        if include_embeddings:
            columns += ", embedding::text"
        params: list[Any] = [_vector_literal(query_embedding[0]), self._kb_id]

        where = "kb_id = %s"
        if metadata_filter is not None:
            compiled = compile_filter(metadata_filter)
            where += f" AND {compiled.clause}"
            params.extend(compiled.params)
        where += (
            f" AND NOT EXISTS (SELECT 1 FROM {self._catalog_table} d "
            "WHERE d.kb_id = c.kb_id AND d.id = c.document_id AND d.disabled)"
        )
        params.append(top_k)

        sql = (
            f"SELECT {columns} FROM {self._table} AS c "
            f"WHERE {where} ORDER BY distance ASC LIMIT %s"
        )

        async with self._connection("search") as conn:
            cursor = await conn.execute(sql, params)
            rows = await cursor.fetchall()

        results: list[SearchResult] = []
        for row in rows:
            score = self._metric.to_similarity(float(row[4]))
            # pgvector has no native threshold; apply it here.
            if score < similarity_threshold:
                continue
            results.append(
                SearchResult(
                    id=row[0],
                    content=row[1],
                    score=score,
                    metadata=row[2] or {},
                    source=row[3],
                    embedding=_parse_vector(row[5]) if include_embeddings else None,
                )
            )
        results.sort(key=lambda result: result.score, reverse=True)

        logger.info(
            "pgvector_search",
            kb_id=self._kb_id,
            raw_results=len(rows),
            results_count=len(results),
            top_score=results[0].score if results else 0.0,
        )
        return results

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add_documents(self, documents: list[Document]) -> AddDocumentsResult:
        if not documents:
            return AddDocumentsResult.success(0)

        embeddings = await embed_texts(
            self._embedding_provider,
            [document.content for document in documents],
            self.get_provider_name(),
        )

        sql = self._upsert_sql()
        added = 0
        errors: list[tuple[str, str]] = []
        async with self._connection("add_documents") as conn:
            for document, embedding in zip(documents, embeddings):
                try:
                    params = self._row_params(document, embedding)
                except (TypeError, ValueError) as exc:
                    errors.append((document.id, str(exc)))
                    continue
                try:
                    async with conn.transaction():
                        await conn.execute(sql, params)
                except psycopg.OperationalError:
                    raise
                except psycopg.Error as exc:
                    logger.warning(
                        "pgvector_document_rejected",
                        kb_id=self._kb_id,
                        document_id=document.id,
                        error=str(exc),
                    )
                    errors.append((document.id, str(exc)))
                    continue
                added += 1

        logger.info("pgvector_add_documents", kb_id=self._kb_id, added=added, failed=len(errors))
        if errors:
            return AddDocumentsResult.partial(added, errors)
        return AddDocumentsResult.success(added)

    def _upsert_sql(self) -> str:
        return (
            f"INSERT INTO {self._table} "
            "(id, kb_id, content, embedding, metadata, source, document_id, chunk_index, "
            "created_at, updated_at) "
            "VALUES (%s, %s, %s, %s::vector, %s::jsonb, %s, %s, %s, now(), now()) "
            "ON CONFLICT (kb_id, id) DO UPDATE SET "
            "content = EXCLUDED.content, embedding = EXCLUDED.embedding, "
            "metadata = EXCLUDED.metadata, source = EXCLUDED.source, "
            "document_id = EXCLUDED.document_id, chunk_index = EXCLUDED.chunk_index, "
            "updated_at = now()"
        )

    def _row_params(
        self,
        document: Document,
        embedding: list[float],
        parent_id: str | None = None,
        chunk_index: int | None = None,
    ) -> tuple[Any, ...]:
        if len(embedding) != self._dimensions:
            raise ValueError(
                f"Embedding has {len(embedding)} dimensions, expected {self._dimensions}"
            )
        return (
            document.id,
            self._kb_id,
            document.content,
            _vector_literal(embedding),
            json.dumps(document.metadata),
            document.source,
            parent_id,
            chunk_index,
        )

    async def delete_documents(self, ids: list[str]) -> DeleteDocumentsResult:
        if not ids:
            return DeleteDocumentsResult()
        sql = f"DELETE FROM {self._table} WHERE kb_id = %s AND id = ANY(%s)"
        async with self._connection("delete_documents") as conn:
            cursor = await conn.execute(sql, [self._kb_id, list(ids)])
            deleted = max(cursor.rowcount, 0)
        return DeleteDocumentsResult(deleted=deleted, not_found=max(len(ids) - deleted, 0))

    async def delete_by_filter(self, metadata_filter: MetadataFilter) -> DeleteDocumentsResult:
        compiled = compile_filter(metadata_filter)
        sql = f"DELETE FROM {self._table} WHERE kb_id = %s AND {compiled.clause}"
        async with self._connection("delete_by_filter") as conn:
            cursor = await conn.execute(sql, [self._kb_id, *compiled.params])
            deleted = max(cursor.rowcount, 0)
        logger.info("pgvector_delete_by_filter", kb_id=self._kb_id, deleted=deleted)
        return DeleteDocumentsResult(deleted=deleted)

    async def delete_by_source(self, source: str) -> DeleteDocumentsResult:
        sql = f"DELETE FROM {self._table} WHERE kb_id = %s AND source = %s"
        async with self._connection("delete_by_source") as conn:
            cursor = await conn.execute(sql, [self._kb_id, source])
            deleted = max(cursor.rowcount, 0)
        return DeleteDocumentsResult(deleted=deleted)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_document(self, document_id: str) -> SearchResult | None:
        sql = (
            f"SELECT {_SELECT_COLUMNS}, embedding::text FROM {self._table} "
            "WHERE kb_id = %s AND id = %s"
        )
        async with self._connection("get_document") as conn:
            cursor = await conn.execute(sql, [self._kb_id, document_id])
            row = await cursor.fetchone()
        if row is None:
            return None
        return SearchResult(
            id=row[0],
            content=row[1],
            score=1.0,
            metadata=row[2] or {},
            source=row[3],
            embedding=_parse_vector(row[4]),
        )

    async def list_by_source(self, source: str) -> list[SearchResult]:
        sql = (
            f"SELECT {_SELECT_COLUMNS} FROM {self._table} "
            "WHERE kb_id = %s AND source = %s ORDER BY id"
        )
        async with self._connection("list_by_source") as conn:
            cursor = await conn.execute(sql, [self._kb_id, source])
            rows = await cursor.fetchall()
        return [
            SearchResult(id=row[0], content=row[1], score=1.0, metadata=row[2] or {}, source=row[3])
            for row in rows
        ]

    async def list_sources(self) -> list[SourceInfo]:
        sql = (
            f"SELECT source, count(*) FROM {self._table} "
            "WHERE kb_id = %s AND source IS NOT NULL GROUP BY source ORDER BY source"
        )
        async with self._connection("list_sources") as conn:
            cursor = await conn.execute(sql, [self._kb_id])
            rows = await cursor.fetchall()
        return [SourceInfo(source=row[0], document_count=int(row[1])) for row in rows]

    async def document_count(self) -> int:
        async with self._connection("document_count") as conn:
            cursor = await conn.execute(
                f"SELECT count(*) FROM {self._table} WHERE kb_id = %s", [self._kb_id]
            )
            row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def health_check(self) -> bool:
        try:
            async with self._pool.connection() as conn:
                await conn.execute("SELECT 1")
            return True
        except psycopg.Error as exc:
            logger.warning("pgvector_health_check_failed", kb_id=self._kb_id, error=str(exc))
            return False

    # ------------------------------------------------------------------
    # Document catalog
    # ------------------------------------------------------------------

    async def create_document(self, request: CreateDocumentRequest) -> KnowledgeBaseDocument:
        validate_create_request(request, self.get_provider_name())
        catalog_document = KnowledgeBaseDocument.from_request(self._kb_id, request)
        chunks = chunk_documents(catalog_document, request)
        embeddings = await embed_texts(
            self._embedding_provider,
            [chunk.content for chunk in chunks],
            self.get_provider_name(),
        )

        try:
            rows = [
                self._row_params(chunk, embedding, catalog_document.id, chunk_request.chunk_index)
                for chunk, chunk_request, embedding in zip(chunks, request.chunks, embeddings)
            ]
        except ValueError as exc:
            raise BackendError(
                message=f"Cannot store document: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        catalog_sql = (
            f"INSERT INTO {self._catalog_table} ({_CATALOG_COLUMNS}, kb_id) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s, %s::jsonb, %s, %s, %s, %s)"
        )
        catalog_params = [
            catalog_document.id,
            catalog_document.title,
            catalog_document.description,
            catalog_document.source_filename,
            catalog_document.content_type,
            catalog_document.original_size_bytes,
            catalog_document.chunk_count,
            json.dumps(catalog_document.metadata),
            catalog_document.disabled,
            catalog_document.created_at,
            catalog_document.updated_at,
            self._kb_id,
        ]

        sql = self._upsert_sql()
        async with self._connection("create_document") as conn:
            async with conn.transaction():
                await conn.execute(catalog_sql, catalog_params)
                for params in rows:
                    await conn.execute(sql, params)

        logger.info(
            "pgvector_document_created",
            kb_id=self._kb_id,
            document_id=catalog_document.id,
            chunk_count=catalog_document.chunk_count,
        )
        return catalog_document

    async def get_document_by_id(self, document_id: str) -> KnowledgeBaseDocument | None:
        sql = f"SELECT {_CATALOG_COLUMNS} FROM {self._catalog_table} WHERE kb_id = %s AND id = %s"
        async with self._connection("get_document_by_id") as conn:
            cursor = await conn.execute(sql, [self._kb_id, document_id])
            row = await cursor.fetchone()
        if row is None:
            return None
        return KnowledgeBaseDocument(
            id=row[0],
            kb_id=self._kb_id,
            title=row[1],
            description=row[2],
            source_filename=row[3],
            content_type=row[4],
            original_size_bytes=row[5],
            chunk_count=row[6],
            metadata=row[7] or {},
            disabled=row[8],
            created_at=row[9],
            updated_at=row[10],
        )

    async def list_documents(self) -> list[DocumentSummary]:
        sql = (
            "SELECT id, title, source_filename, chunk_count, disabled, created_at "
            f"FROM {self._catalog_table} WHERE kb_id = %s ORDER BY created_at DESC"
        )
        async with self._connection("list_documents") as conn:
            cursor = await conn.execute(sql, [self._kb_id])
            rows = await cursor.fetchall()
        return [
            DocumentSummary(
                id=row[0],
                title=row[1],
                source_filename=row[2],
                chunk_count=row[3],
                disabled=row[4],
                created_at=row[5],
            )
            for row in rows
        ]

    async def get_document_chunks(self, document_id: str) -> list[DocumentChunk]:
        sql = (
            f"SELECT id, content, metadata, chunk_index, embedding::text FROM {self._table} "
            "WHERE kb_id = %s AND document_id = %s ORDER BY chunk_index"
        )
        async with self._connection("get_document_chunks") as conn:
            cursor = await conn.execute(sql, [self._kb_id, document_id])
            rows = await cursor.fetchall()
        return [
            DocumentChunk(
                id=row[0],
                document_id=document_id,
                kb_id=self._kb_id,
                content=row[1],
                metadata=row[2] or {},
                chunk_index=row[3] if row[3] is not None else 0,
                embedding=_parse_vector(row[4]),
            )
            for row in rows
        ]

    async def delete_document_by_id(self, document_id: str) -> bool:
        async with self._connection("delete_document_by_id") as conn:
            async with conn.transaction():
                await conn.execute(
                    f"DELETE FROM {self._table} WHERE kb_id = %s AND document_id = %s",
                    [self._kb_id, document_id],
                )
                cursor = await conn.execute(
                    f"DELETE FROM {self._catalog_table} WHERE kb_id = %s AND id = %s",
                    [self._kb_id, document_id],
                )
                deleted = cursor.rowcount > 0
        logger.info(
            "pgvector_document_deleted", kb_id=self._kb_id, document_id=document_id, deleted=deleted
        )
        return deleted

    async def disable_document(self, document_id: str) -> bool:
        return await self._set_disabled(document_id, True)

    async def enable_document(self, document_id: str) -> bool:
        return await self._set_disabled(document_id, False)

    async def _set_disabled(self, document_id: str, disabled: bool) -> bool:
        sql = (
            f"UPDATE {self._catalog_table} SET disabled = %s, updated_at = %s "
            "WHERE kb_id = %s AND id = %s"
        )
        async with self._connection("set_disabled") as conn:
            cursor = await conn.execute(
                sql, [disabled, datetime.now(timezone.utc), self._kb_id, document_id]
            )
            return cursor.rowcount > 0


# ---------------------------------------------------------------------------
# Vector text format helpers ("[0.1,0.2,0.3]")
# ---------------------------------------------------------------------------


def _vector_literal(embedding: list[float]) -> str:
    return "[" + ",".join(repr(float(value)) for value in embedding) + "]"


def _parse_vector(text: str | None) -> list[float] | None:
    if not text:
        return None
    body = text.strip().lstrip("[").rstrip("]")
    if not body:
        return []
    return [float(value) for value in body.split(",")]
