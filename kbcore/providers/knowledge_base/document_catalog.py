"""Shared pieces of the document catalog for providers that implement it.

A catalog document owns chunks stored as ordinary knowledge base
documents: id ``{document_id}_chunk_{chunk_index}``, ``source`` set to the
document id and the document id under the ``document_id`` metadata key,
so the chunk-level operations (filters, ``delete_by_source``) see them too.
"""

from __future__ import annotations

from kbcore.models.knowledge_base import CreateDocumentRequest, Document, KnowledgeBaseDocument
from kbcore.services.ingestion.document_ids import DOCUMENT_ID_KEY, make_chunk_id
from kbcore.utils.errors import ValidationError


def validate_create_request(request: CreateDocumentRequest, provider_name: str) -> None:
    """Reject requests that cannot be stored as one unit.

    Raises
    ------
    ValidationError
        If a chunk is empty or two chunks share a ``chunk_index``.
    """
    seen: set[int] = set()
    for chunk in request.chunks:
        if chunk.chunk_index in seen:
            raise ValidationError(
                message=f"Duplicate chunk_index {chunk.chunk_index} in document request",
                provider_name=provider_name,
            )
        seen.add(chunk.chunk_index)
        if not chunk.content.strip():
            raise ValidationError(
                message=f"Chunk {chunk.chunk_index} has empty content",
                provider_name=provider_name,
            )


def chunk_documents(
    document: KnowledgeBaseDocument, request: CreateDocumentRequest
) -> list[Document]:
    return [
        Document(
            id=make_chunk_id(document.id, chunk.chunk_index),
            content=chunk.content,
            metadata={**chunk.metadata, DOCUMENT_ID_KEY: document.id},
            source=document.id,
        )
        for chunk in request.chunks
    ]
