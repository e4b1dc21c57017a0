"""kbcore data models, re-exported for ``from kbcore.models import ...``.

    - chunking.py        -- ChunkingConfig, Chunk, ChunkMetadata, ChunkingType
    - filters.py         -- metadata filter DSL (conditions, groups, builder)
    - knowledge_base.py  -- Document, SearchResult, provider results, document catalog
    - ingestion.py       -- parser input/output and ingestion results
"""

from __future__ import annotations

from kbcore.models.chunking import Chunk, ChunkingConfig, ChunkingType, ChunkMetadata
from kbcore.models.filters import (
    FilterBuilder,
    FilterCondition,
    FilterConnector,
    FilterGroup,
    FilterOperator,
    MetadataFilter,
    filter_from_dict,
    filter_to_dict,
)
from kbcore.models.ingestion import (
    BatchIngestionResult,
    DocumentMetadata,
    IngestionConfig,
    IngestionError,
    IngestionResult,
    ParsedDocument,
    ParserInput,
    ParserType,
)
from kbcore.models.knowledge_base import (
    AddDocumentsResult,
    CreateChunkRequest,
    CreateDocumentRequest,
    DeleteDocumentsResult,
    DistanceMetric,
    Document,
    DocumentChunk,
    DocumentSummary,
    KnowledgeBaseConfig,
    KnowledgeBaseDocument,
    KnowledgeBaseType,
    SearchParams,
    SearchResult,
    SourceInfo,
)

__all__ = [
    "AddDocumentsResult",
    "BatchIngestionResult",
    "Chunk",
    "ChunkMetadata",
    "ChunkingConfig",
    "ChunkingType",
    "CreateChunkRequest",
    "CreateDocumentRequest",
    "DeleteDocumentsResult",
    "DistanceMetric",
    "Document",
    "DocumentChunk",
    "DocumentMetadata",
    "DocumentSummary",
    "FilterBuilder",
    "FilterCondition",
    "FilterConnector",
    "FilterGroup",
    "FilterOperator",
    "IngestionConfig",
    "IngestionError",
    "IngestionResult",
    "KnowledgeBaseConfig",
    "KnowledgeBaseDocument",
    "KnowledgeBaseType",
    "MetadataFilter",
    "ParsedDocument",
    "ParserInput",
    "ParserType",
    "SearchParams",
    "SearchResult",
    "SourceInfo",
    "filter_from_dict",
    "filter_to_dict",
]
