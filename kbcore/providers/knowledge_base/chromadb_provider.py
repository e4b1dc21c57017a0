"""ChromaDB knowledge base provider.

One ChromaDB collection per knowledge base, cosine distance, embeddings
computed by the injected :class:`IEmbeddingProvider` and passed in
explicitly (the collection never embeds on its own).

ChromaDB metadata values must be ``str``/``int``/``float``/``bool``.  Each
row therefore stores:

* the scalar metadata values directly, so ``where`` filters can use them;
* ``_kb_metadata``: the full metadata as JSON, returned to callers as-is;
* ``_kb_source``: the document source, for source listing and deletion.

Filters go through :func:`kbcore.services.filters.chroma_translator.translate_filter`
and every hit is re-checked with the in-memory evaluator, so results match
the reference semantics wherever ChromaDB's own comparison is looser.
"""

from __future__ import annotations

import json
import os
from typing import Any

# Must be set before chromadb is imported.
os.environ.setdefault("ANONYMIZED_TELEMETRY", "False")

import chromadb
import structlog

from kbcore.interfaces.embedding_provider import IEmbeddingProvider
from kbcore.interfaces.knowledge_base_provider import IKnowledgeBaseProvider
from kbcore.models.filters import MetadataFilter
from kbcore.models.knowledge_base import (
    AddDocumentsResult,
    DeleteDocumentsResult,
    Document,
    SearchResult,
    SourceInfo,
)
from kbcore.providers.knowledge_base.embedding_guard import embed_texts
from kbcore.services.filters.chroma_translator import translate_filter
from kbcore.services.filters.evaluator import evaluate_filter
from kbcore.utils.errors import BackendError, KBCoreError
from kbcore.utils.validation import validate_knowledge_base_id, validate_search_params

logger = structlog.get_logger(logger_name=__name__)

_METADATA_KEY = "_kb_metadata"
_SOURCE_KEY = "_kb_source"
_PAGE_SIZE = 5000


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Placeholder so ChromaDB never loads its default embedding model."""

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError("kbcore passes pre-computed embeddings to ChromaDB")

    def name(self) -> str:
        return "noop_precomputed"


class ChromaDBKnowledgeBaseProvider(IKnowledgeBaseProvider):
    """Knowledge base backed by a ChromaDB collection.

    Parameters
    ----------
    kb_id:
        Knowledge base id.  The collection defaults to ``kb_<kb_id>``.
    embedding_provider:
        Embeds documents and queries.
    client:
        A ChromaDB client.  When omitted a ``PersistentClient`` is opened at
        *persist_directory*.
    persist_directory:
        On-disk location for the default client.
    collection_name:
        Overrides the collection name.
    batch_size:
        Rows per ``upsert`` call.
    """

    def __init__(
        self,
        kb_id: str,
        embedding_provider: IEmbeddingProvider,
        client: Any | None = None,
        persist_directory: str = "./data/chromadb",
        collection_name: str | None = None,
        batch_size: int = 500,
    ) -> None:
        validate_knowledge_base_id(kb_id)
        self._kb_id = kb_id
        self._embedding_provider = embedding_provider
        self._batch_size = batch_size
        if client is None:
            client = chromadb.PersistentClient(
                path=persist_directory,
                settings=chromadb.config.Settings(anonymized_telemetry=False),
            )
        self._client = client
        name = collection_name or f"kb_{kb_id}"
        try:
            self._collection = self._client.get_or_create_collection(
                name=name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            # Collection persisted with a different embedding function; embeddings
            # are always passed explicitly, so open it with whatever was stored.
            self._collection = self._client.get_or_create_collection(
                name=name,
                metadata={"hnsw:space": "cosine"},
            )

    @property
    def knowledge_base_id(self) -> str:
        return self._kb_id

    def get_provider_name(self) -> str:
        return "chromadb"

    def _backend_error(self, operation: str, exc: Exception) -> BackendError:
        logger.error("chromadb_operation_failed", kb_id=self._kb_id, operation=operation, error=str(exc))
        return BackendError(
            message=f"ChromaDB {operation} failed: {exc}",
            provider_name=self.get_provider_name(),
        )

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
        where = translate_filter(metadata_filter) if metadata_filter is not None else True
        if where is False:
            return []

        query_embedding = await embed_texts(
            self._embedding_provider, [query], self.get_provider_name()
        )

        try:
            count = self._collection.count()
            if count == 0:
                return []
            include = ["documents", "metadatas", "distances"]
            if include_embeddings:
                include.append("embeddings")
            kwargs: dict[str, Any] = {
                "query_embeddings": query_embedding,
                "n_results": min(top_k, count),
                "include": include,
            }
            if isinstance(where, dict):
                kwargs["where"] = where
            results = self._collection.query(**kwargs)
        except KBCoreError:
            raise
        except Exception as exc:
            raise self._backend_error("search", exc) from exc

        ids = results["ids"][0] if results.get("ids") else []
        documents = results["documents"][0] if results.get("documents") else [""] * len(ids)
        metadatas = results["metadatas"][0] if results.get("metadatas") else [{}] * len(ids)
        distances = results["distances"][0] if results.get("distances") else [0.0] * len(ids)
        embeddings = (
            results["embeddings"][0]
            if include_embeddings and results.get("embeddings") is not None
            else [None] * len(ids)
        )

        hits: list[SearchResult] = []
        for doc_id, text, raw_meta, distance, vector in zip(
            ids, documents, metadatas, distances, embeddings
        ):
            similarity = max(0.0, min(1.0, 1.0 - float(distance)))
            if similarity < similarity_threshold:
                continue
            metadata, source = _unpack_metadata(raw_meta)
            if metadata_filter is not None and not evaluate_filter(metadata_filter, metadata):
                continue
            hits.append(
                SearchResult(
                    id=doc_id,
                    content=text or "",
                    score=similarity,
                    metadata=metadata,
                    source=source,
                    embedding=[float(v) for v in vector] if vector is not None else None,
                )
            )
        hits.sort(key=lambda hit: hit.score, reverse=True)

        logger.info(
            "chromadb_search",
            kb_id=self._kb_id,
            raw_results=len(ids),
            results_count=len(hits),
            top_score=hits[0].score if hits else 0.0,
        )
        return hits[:top_k]

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

        errors: list[tuple[str, str]] = []
        rows: list[tuple[Document, list[float], dict[str, Any]]] = []
        for document, embedding in zip(documents, embeddings):
            try:
                rows.append((document, embedding, _pack_metadata(document)))
            except (TypeError, ValueError) as exc:
                errors.append((document.id, f"Metadata is not serializable: {exc}"))

        added = 0
        for start in range(0, len(rows), self._batch_size):
            batch = rows[start:start + self._batch_size]
            try:
                self._upsert(batch)
                added += len(batch)
            except Exception as exc:
                # Retry one row at a time so a single bad row does not sink the batch.
                logger.warning(
                    "chromadb_batch_upsert_failed",
                    kb_id=self._kb_id,
                    batch_size=len(batch),
                    error=str(exc),
                )
                for row in batch:
                    try:
                        self._upsert([row])
                        added += 1
                    except Exception as row_exc:
                        errors.append((row[0].id, str(row_exc)))

        for document_id, message in errors:
            logger.warning(
                "chromadb_document_rejected",
                kb_id=self._kb_id,
                document_id=document_id,
                error=message,
            )
        logger.info("chromadb_add_documents", kb_id=self._kb_id, added=added, failed=len(errors))
        if errors:
            return AddDocumentsResult.partial(added, errors)
        return AddDocumentsResult.success(added)

    def _upsert(self, rows: list[tuple[Document, list[float], dict[str, Any]]]) -> None:
        self._collection.upsert(
            ids=[document.id for document, _, _ in rows],
            embeddings=[embedding for _, embedding, _ in rows],
            documents=[document.content for document, _, _ in rows],
            metadatas=[metadata for _, _, metadata in rows],
        )

    async def delete_documents(self, ids: list[str]) -> DeleteDocumentsResult:
        if not ids:
            return DeleteDocumentsResult()
        try:
            existing = self._collection.get(ids=list(ids), include=["metadatas"])
            found = list(existing["ids"] or [])
            if found:
                self._collection.delete(ids=found)
        except Exception as exc:
            raise self._backend_error("delete_documents", exc) from exc
        return DeleteDocumentsResult(deleted=len(found), not_found=len(ids) - len(found))

    async def delete_by_filter(self, metadata_filter: MetadataFilter) -> DeleteDocumentsResult:
        where = translate_filter(metadata_filter)
        if where is False:
            return DeleteDocumentsResult()
        try:
            doomed = [
                doc_id
                for doc_id, raw_meta in self._iter_metadata(where if isinstance(where, dict) else None)
                if evaluate_filter(metadata_filter, _unpack_metadata(raw_meta)[0])
            ]
            for start in range(0, len(doomed), _PAGE_SIZE):
                self._collection.delete(ids=doomed[start:start + _PAGE_SIZE])
        except KBCoreError:
            raise
        except Exception as exc:
            raise self._backend_error("delete_by_filter", exc) from exc
        logger.info("chromadb_delete_by_filter", kb_id=self._kb_id, deleted=len(doomed))
        return DeleteDocumentsResult(deleted=len(doomed))

    async def delete_by_source(self, source: str) -> DeleteDocumentsResult:
        try:
            existing = self._collection.get(where={_SOURCE_KEY: source}, include=["metadatas"])
            ids = list(existing["ids"] or [])
            if ids:
                self._collection.delete(ids=ids)
        except Exception as exc:
            raise self._backend_error("delete_by_source", exc) from exc
        logger.info("chromadb_delete_by_source", kb_id=self._kb_id, source=source, deleted=len(ids))
        return DeleteDocumentsResult(deleted=len(ids))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_document(self, document_id: str) -> SearchResult | None:
        try:
            found = self._collection.get(
                ids=[document_id], include=["documents", "metadatas", "embeddings"]
            )
        except Exception as exc:
            raise self._backend_error("get_document", exc) from exc
        if not found["ids"]:
            return None
        metadata, source = _unpack_metadata(found["metadatas"][0])
        vector = found["embeddings"][0] if found.get("embeddings") is not None else None
        return SearchResult(
            id=found["ids"][0],
            content=found["documents"][0] or "",
            score=1.0,
            metadata=metadata,
            source=source,
            embedding=[float(v) for v in vector] if vector is not None else None,
        )

    async def list_by_source(self, source: str) -> list[SearchResult]:
        try:
            found = self._collection.get(
                where={_SOURCE_KEY: source}, include=["documents", "metadatas"]
            )
        except Exception as exc:
            raise self._backend_error("list_by_source", exc) from exc
        results: list[SearchResult] = []
        for doc_id, text, raw_meta in zip(found["ids"], found["documents"], found["metadatas"]):
            metadata, doc_source = _unpack_metadata(raw_meta)
            results.append(
                SearchResult(id=doc_id, content=text or "", score=1.0, metadata=metadata, source=doc_source)
            )
        return sorted(results, key=lambda result: result.id)

    async def list_sources(self) -> list[SourceInfo]:
        try:
            counts: dict[str, int] = {}
            for _, raw_meta in self._iter_metadata(None):
                source = (raw_meta or {}).get(_SOURCE_KEY)
                if source:
                    counts[source] = counts.get(source, 0) + 1
        except Exception as exc:
            raise self._backend_error("list_sources", exc) from exc
        return [SourceInfo(source=source, document_count=counts[source]) for source in sorted(counts)]

    def _iter_metadata(self, where: dict[str, Any] | None) -> list[tuple[str, dict[str, Any]]]:
        """Page through ids and metadata to stay under SQLite's bind-parameter limit."""
        rows: list[tuple[str, dict[str, Any]]] = []
        offset = 0
        while True:
            kwargs: dict[str, Any] = {"include": ["metadatas"], "limit": _PAGE_SIZE, "offset": offset}
            if where is not None:
                kwargs["where"] = where
            page = self._collection.get(**kwargs)
            ids = page["ids"] or []
            rows.extend(zip(ids, page["metadatas"] or [{}] * len(ids)))
            if len(ids) < _PAGE_SIZE:
                return rows
            offset += _PAGE_SIZE

    async def document_count(self) -> int:
        try:
            return self._collection.count()
        except Exception as exc:
            raise self._backend_error("document_count", exc) from exc

    async def health_check(self) -> bool:
        try:
            self._collection.count()
            return True
        except Exception as exc:
            logger.warning("chromadb_health_check_failed", kb_id=self._kb_id, error=str(exc))
            return False


# ---------------------------------------------------------------------------
# Metadata packing
# ---------------------------------------------------------------------------


def _pack_metadata(document: Document) -> dict[str, Any]:
    packed: dict[str, Any] = {
        key: value
        for key, value in document.metadata.items()
        if isinstance(value, (str, int, float, bool)) and not key.startswith("_kb_")
    }
    packed[_METADATA_KEY] = json.dumps(document.metadata)
    if document.source is not None:
        packed[_SOURCE_KEY] = document.source
    return packed


def _unpack_metadata(raw: dict[str, Any] | None) -> tuple[dict[str, Any], str | None]:
    raw = raw or {}
    source = raw.get(_SOURCE_KEY)
    encoded = raw.get(_METADATA_KEY)
    if isinstance(encoded, str):
        return json.loads(encoded), source
    metadata = {key: value for key, value in raw.items() if not key.startswith("_kb_")}
    return metadata, source
