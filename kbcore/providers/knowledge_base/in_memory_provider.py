"""In-memory knowledge base provider.

Keeps documents in an insertion-ordered dict guarded by an
``asyncio.Lock``.  Scoring uses cosine similarity over vectors from an
injected :class:`IEmbeddingProvider` when one is given, and a lexical
term-overlap score (share of query terms present in the document)
otherwise, so it works in tests and local runs without an embedding model.

Catalog records live in a second dict under the same lock; chunks of a
disabled catalog document are skipped by search.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Any

import numpy as np
import structlog

from kbcore.interfaces.embedding_provider import IEmbeddingProvider
from kbcore.interfaces.knowledge_base_provider import IKnowledgeBaseProvider
from kbcore.models.filters import MetadataFilter
from kbcore.models.knowledge_base import (
    AddDocumentsResult,
    CreateDocumentRequest,
    DeleteDocumentsResult,
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
from kbcore.services.filters.evaluator import evaluate_filter
from kbcore.utils.validation import validate_knowledge_base_id, validate_search_params

logger = structlog.get_logger(logger_name=__name__)

_TERM_RE = re.compile(r"\w+")


@dataclass(frozen=True)
class _StoredDocument:
    document: Document
    embedding: list[float] | None
    parent_id: str | None = None
    chunk_index: int | None = None


class InMemoryKnowledgeBaseProvider(IKnowledgeBaseProvider):
    """Knowledge base held entirely in process memory.

    Parameters
    ----------
    kb_id:
        Knowledge base id.
    embedding_provider:
        Optional embedding adapter.  Without one, search falls back to
        lexical term overlap.
    """

    def __init__(
        self,
        kb_id: str,
        embedding_provider: IEmbeddingProvider | None = None,
    ) -> None:
        validate_knowledge_base_id(kb_id)
        self._kb_id = kb_id
        self._embedding_provider = embedding_provider
        self._documents: dict[str, _StoredDocument] = {}
        self._catalog: dict[str, KnowledgeBaseDocument] = {}
        self._lock = asyncio.Lock()

    @property
    def knowledge_base_id(self) -> str:
        return self._kb_id

    def get_provider_name(self) -> str:
        return "in_memory"

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

        query_embedding: list[float] | None = None
        if self._embedding_provider is not None:
            query_embedding = await self._embedding_provider.embed_single(query)

        async with self._lock:
            disabled = {doc_id for doc_id, doc in self._catalog.items() if doc.disabled}
            stored = [
                entry for entry in self._documents.values() if entry.parent_id not in disabled
            ]

        scored: list[tuple[float, _StoredDocument]] = []
        for entry in stored:
            if metadata_filter is not None and not evaluate_filter(
                metadata_filter, entry.document.metadata
            ):
                continue
            if query_embedding is not None and entry.embedding is not None:
                score = _cosine_similarity(query_embedding, entry.embedding)
            else:
                score = _term_overlap(query, entry.document.content)
            if score >= similarity_threshold:
                scored.append((score, entry))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        results = [
            _to_result(entry, score, include_embeddings) for score, entry in scored[:top_k]
        ]
        logger.debug(
            "in_memory_search",
            kb_id=self._kb_id,
            candidates=len(stored),
            results_count=len(results),
        )
        return results

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add_documents(self, documents: list[Document]) -> AddDocumentsResult:
        if not documents:
            return AddDocumentsResult.success(0)

        errors: list[tuple[str, str]] = []
        accepted: list[Document] = []
        for document in documents:
            if not document.content.strip():
                errors.append((document.id, "Document content is empty"))
            else:
                accepted.append(document)

        embeddings: list[list[float] | None] = [None] * len(accepted)
        if self._embedding_provider is not None and accepted:
            embeddings = list(
                await embed_texts(
                    self._embedding_provider,
                    [document.content for document in accepted],
                    self.get_provider_name(),
                )
            )

        async with self._lock:
            for document, embedding in zip(accepted, embeddings):
                self._documents[document.id] = _StoredDocument(document, embedding)

        for document_id, message in errors:
            logger.warning(
                "in_memory_document_rejected",
                kb_id=self._kb_id,
                document_id=document_id,
                error=message,
            )
        logger.info(
            "in_memory_add_documents",
            kb_id=self._kb_id,
            added=len(accepted),
            failed=len(errors),
        )
        if errors:
            return AddDocumentsResult.partial(len(accepted), errors)
        return AddDocumentsResult.success(len(accepted))

    async def delete_documents(self, ids: list[str]) -> DeleteDocumentsResult:
        deleted = 0
        async with self._lock:
            for document_id in ids:
                if self._documents.pop(document_id, None) is not None:
                    deleted += 1
        return DeleteDocumentsResult(deleted=deleted, not_found=len(ids) - deleted)

    async def delete_by_filter(self, metadata_filter: MetadataFilter) -> DeleteDocumentsResult:
        async with self._lock:
            doomed = [
                document_id
                for document_id, entry in self._documents.items()
                if evaluate_filter(metadata_filter, entry.document.metadata)
            ]
            for document_id in doomed:
                del self._documents[document_id]
        logger.info("in_memory_delete_by_filter", kb_id=self._kb_id, deleted=len(doomed))
        return DeleteDocumentsResult(deleted=len(doomed))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_document(self, document_id: str) -> SearchResult | None:
        async with self._lock:
            entry = self._documents.get(document_id)
        if entry is None:
            return None
        return _to_result(entry, 1.0, include_embeddings=True)

    async def health_check(self) -> bool:
        return True

    async def document_count(self) -> int:
        async with self._lock:
            return len(self._documents)

    async def list_sources(self) -> list[SourceInfo]:
        counts: dict[str, int] = {}
        async with self._lock:
            for entry in self._documents.values():
                if entry.document.source is not None:
                    counts[entry.document.source] = counts.get(entry.document.source, 0) + 1
        return [SourceInfo(source=source, document_count=count) for source, count in counts.items()]

    async def list_by_source(self, source: str) -> list[SearchResult]:
        async with self._lock:
            entries = [e for e in self._documents.values() if e.document.source == source]
        return [_to_result(entry, 1.0, include_embeddings=False) for entry in entries]

    async def delete_by_source(self, source: str) -> DeleteDocumentsResult:
        async with self._lock:
            doomed = [
                document_id
                for document_id, entry in self._documents.items()
                if entry.document.source == source
            ]
            for document_id in doomed:
                del self._documents[document_id]
        return DeleteDocumentsResult(deleted=len(doomed))

    # ------------------------------------------------------------------
    # Document catalog
    # ------------------------------------------------------------------

    async def create_document(self, request: CreateDocumentRequest) -> KnowledgeBaseDocument:
        validate_create_request(request, self.get_provider_name())
        catalog_document = KnowledgeBaseDocument.from_request(self._kb_id, request)
        chunks = chunk_documents(catalog_document, request)

        embeddings: list[list[float] | None] = [None] * len(chunks)
        if self._embedding_provider is not None and chunks:
            embeddings = list(
                await embed_texts(
                    self._embedding_provider,
                    [chunk.content for chunk in chunks],
                    self.get_provider_name(),
                )
            )

        async with self._lock:
            self._catalog[catalog_document.id] = catalog_document
            for chunk, chunk_request, embedding in zip(chunks, request.chunks, embeddings):
                self._documents[chunk.id] = _StoredDocument(
                    chunk, embedding, catalog_document.id, chunk_request.chunk_index
                )

        logger.info(
            "in_memory_document_created",
            kb_id=self._kb_id,
            document_id=catalog_document.id,
            chunk_count=catalog_document.chunk_count,
        )
        return catalog_document

    async def get_document_by_id(self, document_id: str) -> KnowledgeBaseDocument | None:
        async with self._lock:
            return self._catalog.get(document_id)

    async def list_documents(self) -> list[DocumentSummary]:
        async with self._lock:
            documents = list(self._catalog.values())
        documents.sort(key=lambda document: document.created_at, reverse=True)
        return [document.summary() for document in documents]

    async def get_document_chunks(self, document_id: str) -> list[DocumentChunk]:
        async with self._lock:
            entries = [e for e in self._documents.values() if e.parent_id == document_id]
        entries.sort(key=lambda entry: entry.chunk_index or 0)
        return [
            DocumentChunk(
                id=entry.document.id,
                document_id=document_id,
                kb_id=self._kb_id,
                chunk_index=entry.chunk_index or 0,
                content=entry.document.content,
                embedding=entry.embedding,
                metadata=dict(entry.document.metadata),
            )
            for entry in entries
        ]

    async def delete_document_by_id(self, document_id: str) -> bool:
        async with self._lock:
            if self._catalog.pop(document_id, None) is None:
                return False
            doomed = [
                chunk_id
                for chunk_id, entry in self._documents.items()
                if entry.parent_id == document_id
            ]
            for chunk_id in doomed:
                del self._documents[chunk_id]
        logger.info(
            "in_memory_document_deleted",
            kb_id=self._kb_id,
            document_id=document_id,
            chunks_deleted=len(doomed),
        )
        return True

    async def disable_document(self, document_id: str) -> bool:
        return await self._set_disabled(document_id, True)

    async def enable_document(self, document_id: str) -> bool:
        return await self._set_disabled(document_id, False)

    async def _set_disabled(self, document_id: str, disabled: bool) -> bool:
        async with self._lock:
            document = self._catalog.get(document_id)
            if document is None:
                return False
            self._catalog[document_id] = document.with_disabled(disabled)
        return True


# ---------------------------------------------------------------------------
# Scoring helpers
# ---------------------------------------------------------------------------


def _cosine_similarity(left: list[float], right: list[float]) -> float:
    a = np.asarray(left, dtype=float)
    b = np.asarray(right, dtype=float)
    if a.shape != b.shape:
        return 0.0
    norm = float(np.linalg.norm(a) * np.linalg.norm(b))
    if norm == 0.0:
        return 0.0
    return max(0.0, min(1.0, float(np.dot(a, b)) / norm))


def _term_overlap(query: str, content: str) -> float:
    query_terms = set(_TERM_RE.findall(query.lower()))
    if not query_terms:
        return 0.0
    content_terms = set(_TERM_RE.findall(content.lower()))
    return len(query_terms & content_terms) / len(query_terms)


def _to_result(entry: _StoredDocument, score: float, include_embeddings: bool) -> SearchResult:
    document = entry.document
    embedding: Any = entry.embedding if include_embeddings else None
    return SearchResult(
        id=document.id,
        content=document.content,
        score=score,
        metadata=dict(document.metadata),
        embedding=embedding,
        source=document.source,
    )
