"""Abstract base class for knowledge base storage backends.

A knowledge base provider stores :class:`~kbcore.models.knowledge_base.Document`
records for one knowledge base and answers similarity searches narrowed by
a :data:`~kbcore.models.filters.MetadataFilter`.

Failure semantics shared by every implementation:

* A failure of the whole call (connectivity loss, malformed query,
  embedding count mismatch) raises
  :class:`~kbcore.utils.errors.BackendError`.
* A failure of one item inside ``add_documents`` is reported in
  :class:`~kbcore.models.knowledge_base.AddDocumentsResult` and never
  aborts sibling items.  Items already written stay written.
* Invalid arguments (search params, filters a backend cannot express)
  raise :class:`~kbcore.utils.errors.ValidationError`.


The document catalog (``create_document`` and friends) is optional: it
groups chunks under a parent :class:`~kbcore.models.knowledge_base.KnowledgeBaseDocument`
that can be listed, disabled (its chunks drop out of search) and deleted
as a unit.  Backends without it inherit implementations that raise
:class:`~kbcore.utils.errors.UnsupportedOperationError`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

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
from kbcore.utils.errors import UnsupportedOperationError


# Concrete implementations (kbcore/providers/knowledge_base/):
#   InMemoryKnowledgeBaseProvider  -- dict + asyncio lock, for tests and local runs
#   PgVectorKnowledgeBaseProvider  -- PostgreSQL + pgvector via psycopg 3
#   ChromaDBKnowledgeBaseProvider  -- embedded ChromaDB collection
class IKnowledgeBaseProvider(ABC):
    """Contract for knowledge base storage and retrieval backends.

    Implementations own their concurrency discipline: concurrent
    ``add_documents``, ``delete_documents`` and ``search`` calls on the same
    knowledge base must never corrupt state or observe half-written data.
    """

    @property
    @abstractmethod
    def knowledge_base_id(self) -> str:
        """Id of the knowledge base this provider serves."""

    @abstractmethod
    async def search(
        self,
        query: str,
        top_k: int = 10,
        similarity_threshold: float = 0.7,
        metadata_filter: MetadataFilter | None = None,
        include_embeddings: bool = False,
    ) -> list[SearchResult]:
        """Return the documents most similar to *query*.

        Parameters
        ----------
        query:
            Natural-language query text.
        top_k:
            Maximum number of results (1..1000).
        similarity_threshold:
            Minimum score in ``[0, 1]``; backends without native threshold
            support apply it after retrieval.
        metadata_filter:
            Optional filter every returned document's metadata satisfies.
        include_embeddings:
            Attach the stored vector to each result.

        Returns
        -------
        list[SearchResult]
            At most *top_k* results, all scoring at least
            *similarity_threshold*, sorted by descending score.
        """

    @abstractmethod
    async def add_documents(self, documents: list[Document]) -> AddDocumentsResult:
        """Upsert documents, best effort per item.

        Re-adding an existing id overwrites it.  Embedding the batch is a
        single call-level step: if the embedding output does not line up
        with the input the whole call fails.
        """

    @abstractmethod
    async def delete_documents(self, ids: list[str]) -> DeleteDocumentsResult:
        """Delete documents by id; unknown ids are counted in ``not_found``."""

    @abstractmethod
    async def delete_by_filter(self, metadata_filter: MetadataFilter) -> DeleteDocumentsResult:
        """Delete every document whose metadata satisfies *metadata_filter*."""

    @abstractmethod
    async def get_document(self, document_id: str) -> SearchResult | None:
        """Fetch one document by id (score 1.0), or ``None`` if missing."""

    @abstractmethod
    async def health_check(self) -> bool:
        """Return ``True`` if the backend is reachable.  Never raises."""

    @abstractmethod
    async def document_count(self) -> int:
        """Return the number of documents in this knowledge base."""

    @abstractmethod
    async def list_sources(self) -> list[SourceInfo]:
        """Return every distinct ``source`` with its document count."""

    @abstractmethod
    async def list_by_source(self, source: str) -> list[SearchResult]:
        """Return all documents stored with the given ``source``."""

    @abstractmethod
    async def delete_by_source(self, source: str) -> DeleteDocumentsResult:
        """Delete all documents stored with the given ``source``."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short backend identifier, e.g. ``"pgvector"``."""

    # ------------------------------------------------------------------
    # Document catalog
    # ------------------------------------------------------------------

    def _catalog_unsupported(self, operation: str) -> UnsupportedOperationError:
        return UnsupportedOperationError(
            message=f"{operation} is not supported by this backend",
            provider_name=self.get_provider_name(),
        )

    async def create_document(self, request: CreateDocumentRequest) -> KnowledgeBaseDocument:
        """Store a parent document and all of its chunks as one unit.

        Chunks get the ids ``{document.id}_chunk_{chunk_index}`` and carry
        the parent id under the ``document_id`` metadata key.
        """
        raise self._catalog_unsupported("create_document")

    async def get_document_by_id(self, document_id: str) -> KnowledgeBaseDocument | None:
        """Fetch a catalog record, or ``None`` if missing."""
        raise self._catalog_unsupported("get_document_by_id")

    async def list_documents(self) -> list[DocumentSummary]:
        """List catalog records, newest first."""
        raise self._catalog_unsupported("list_documents")

    async def get_document_chunks(self, document_id: str) -> list[DocumentChunk]:
        """Return a document's chunks ordered by ``chunk_index``."""
        raise self._catalog_unsupported("get_document_chunks")

    async def delete_document_by_id(self, document_id: str) -> bool:
        """Delete a catalog record and its chunks; ``False`` if it did not exist."""
        raise self._catalog_unsupported("delete_document_by_id")

    async def disable_document(self, document_id: str) -> bool:
        """Exclude a document's chunks from search; ``False`` if it does not exist."""
        raise self._catalog_unsupported("disable_document")

    async def enable_document(self, document_id: str) -> bool:
        """Re-include a disabled document in search; ``False`` if it does not exist."""
        raise self._catalog_unsupported("enable_document")
