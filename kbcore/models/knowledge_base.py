"""Provider-facing data models for knowledge base storage and retrieval.

Pydantic v2 models with frozen config: documents travel from the ingestion
pipeline into a provider, search results travel from the provider back to
the caller, and neither side mutates them in flight.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kbcore.utils.errors import ValidationError as KBValidationError
from kbcore.utils.validation import (
    MAX_TOP_K,
    validate_embedding_dimensions,
    validate_knowledge_base_id,
)


class KnowledgeBaseType(str, Enum):
    """Storage backends a knowledge base can be created on."""

    IN_MEMORY = "in_memory"
    PGVECTOR = "pgvector"
    CHROMADB = "chromadb"


class DistanceMetric(str, Enum):
    """Vector distance metric and its distance-to-similarity conversion.

    cosine: ``1 - distance``; euclidean: ``1 / (1 + distance)``;
    inner product: ``-distance`` (pgvector's ``<#>`` returns the negated dot
    product).  Every conversion is clamped to ``[0, 1]``.
    """

    COSINE = "cosine"
    EUCLIDEAN = "euclidean"
    INNER_PRODUCT = "inner_product"

    @property
    def sql_operator(self) -> str:
        return {
            DistanceMetric.COSINE: "<=>",
            DistanceMetric.EUCLIDEAN: "<->",
            DistanceMetric.INNER_PRODUCT: "<#>",
        }[self]

    @property
    def index_ops(self) -> str:
        return {
            DistanceMetric.COSINE: "vector_cosine_ops",
            DistanceMetric.EUCLIDEAN: "vector_l2_ops",
            DistanceMetric.INNER_PRODUCT: "vector_ip_ops",
        }[self]

    def to_similarity(self, distance: float) -> float:
        if self is DistanceMetric.COSINE:
            similarity = 1.0 - distance
        elif self is DistanceMetric.EUCLIDEAN:
            similarity = 1.0 / (1.0 + distance)
        else:
            similarity = -distance
        return max(0.0, min(1.0, similarity))


# ---------------------------------------------------------------------------
# Document / search value types
# ---------------------------------------------------------------------------


class Document(BaseModel):
    """A unit of text stored in a knowledge base.

    Chunk-derived documents use the id ``{document_id}_chunk_{index}``.
    Re-adding an existing id overwrites the stored document.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Unique document identifier within the knowledge base.")
    content: str = Field(description="Text content to embed and search.")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Ordered key to JSON-like value mapping used for filtering.",
    )
    source: str | None = Field(default=None, description="Originating source (parent document id).")

    def with_metadata(self, key: str, value: Any) -> Document:
        return self.model_copy(update={"metadata": {**self.metadata, key: value}})


class SearchResult(BaseModel):
    """One ranked hit returned by :meth:`IKnowledgeBaseProvider.search`."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Identifier of the matched document.")
    content: str = Field(description="Text content of the matched document.")
    score: float = Field(ge=0.0, le=1.0, description="Similarity score, higher is more relevant.")
    metadata: dict[str, Any] = Field(default_factory=dict)
    embedding: list[float] | None = Field(
        default=None, description="Stored embedding, only when requested."
    )
    source: str | None = None


class SearchParams(BaseModel):
    """Bundled ``search`` arguments with their defaults."""

    model_config = ConfigDict(frozen=True)

    top_k: int = Field(default=10, ge=1, le=MAX_TOP_K)
    similarity_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    include_embeddings: bool = False
    include_metadata: bool = True


class AddDocumentsResult(BaseModel):
    """Best-effort outcome of ``add_documents``.

    ``errors`` holds one ``(document_id, message)`` pair per rejected document.
    """

    model_config = ConfigDict(frozen=True)

    added: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    errors: list[tuple[str, str]] = Field(default_factory=list)

    @classmethod
    def success(cls, added: int) -> AddDocumentsResult:
        return cls(added=added)

    @classmethod
    def partial(cls, added: int, errors: list[tuple[str, str]]) -> AddDocumentsResult:
        return cls(added=added, failed=len(errors), errors=errors)

    @property
    def is_complete(self) -> bool:
        return self.failed == 0


class DeleteDocumentsResult(BaseModel):
    """Outcome of ``delete_documents`` / ``delete_by_filter``."""

    model_config = ConfigDict(frozen=True)

    deleted: int = Field(default=0, ge=0)
    not_found: int = Field(default=0, ge=0)


class SourceInfo(BaseModel):
    """Number of stored documents sharing one ``source``."""

    model_config = ConfigDict(frozen=True)

    source: str
    document_count: int = Field(ge=0)


# ---------------------------------------------------------------------------
# Document catalog
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CreateChunkRequest(BaseModel):
    """One chunk of a document registered through ``create_document``."""

    model_config = ConfigDict(frozen=True)

    content: str
    chunk_index: int = Field(ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)


class CreateDocumentRequest(BaseModel):
    """A parent document plus its chunks, stored together by ``create_document``."""

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    description: str | None = None
    source_filename: str | None = None
    content_type: str | None = None
    original_size_bytes: int | None = Field(default=None, ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)
    chunks: list[CreateChunkRequest] = Field(default_factory=list)


class DocumentSummary(BaseModel):
    """Listing row for :meth:`IKnowledgeBaseProvider.list_documents`."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str | None = None
    source_filename: str | None = None
    chunk_count: int = Field(default=0, ge=0)
    disabled: bool = False
    created_at: datetime


class KnowledgeBaseDocument(BaseModel):
    """Catalog record for a parent document whose chunks live in the knowledge base.

    Chunks of a disabled document stay stored but are excluded from search.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    kb_id: str
    title: str | None = None
    description: str | None = None
    source_filename: str | None = None
    content_type: str | None = None
    original_size_bytes: int | None = None
    chunk_count: int = Field(default=0, ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)
    disabled: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_request(cls, kb_id: str, request: CreateDocumentRequest) -> KnowledgeBaseDocument:
        return cls(
            kb_id=kb_id,
            title=request.title,
            description=request.description,
            source_filename=request.source_filename,
            content_type=request.content_type,
            original_size_bytes=request.original_size_bytes,
            chunk_count=len(request.chunks),
            metadata=dict(request.metadata),
        )

    def with_disabled(self, disabled: bool) -> KnowledgeBaseDocument:
        return self.model_copy(update={"disabled": disabled, "updated_at": _utcnow()})

    def summary(self) -> DocumentSummary:
        return DocumentSummary(
            id=self.id,
            title=self.title,
            source_filename=self.source_filename,
            chunk_count=self.chunk_count,
            disabled=self.disabled,
            created_at=self.created_at,
        )


class DocumentChunk(BaseModel):
    """A stored chunk read back through its parent document."""

    model_config = ConfigDict(frozen=True)

    id: str
    document_id: str
    kb_id: str
    chunk_index: int
    content: str
    embedding: list[float] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Knowledge base configuration
# ---------------------------------------------------------------------------


class KnowledgeBaseConfig(BaseModel):
    """Declarative description of a knowledge base for the provider factory."""

    model_config = ConfigDict(frozen=True)

    kb_id: str = Field(description="Knowledge base id (letters, digits, inner hyphens; max 50).")
    kb_type: KnowledgeBaseType = KnowledgeBaseType.IN_MEMORY
    embedding_dimensions: int = Field(default=1536, description="Vector size of the embedding model.")
    distance_metric: DistanceMetric = DistanceMetric.COSINE
    table_name: str = Field(default="kb_documents", description="pgvector table name.")
    collection_name: str | None = Field(
        default=None, description="ChromaDB collection name; defaults to kb_<kb_id>."
    )

    @field_validator("kb_id")
    @classmethod
    def _check_kb_id(cls, value: str) -> str:
        try:
            validate_knowledge_base_id(value)
        except KBValidationError as exc:
            raise ValueError(exc.message) from exc
        return value

    @field_validator("embedding_dimensions")
    @classmethod
    def _check_dimensions(cls, value: int) -> int:
        try:
            validate_embedding_dimensions(value)
        except KBValidationError as exc:
            raise ValueError(exc.message) from exc
        return value
