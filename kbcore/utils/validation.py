"""Input validation helpers shared by models, providers and the pipeline.

Each helper raises :class:`~kbcore.utils.errors.ValidationError` with a
message naming the offending field and returns nothing on success.
"""

from __future__ import annotations

import re

from kbcore.utils.errors import ValidationError

MAX_KNOWLEDGE_BASE_ID_LENGTH = 50
MAX_DOCUMENT_ID_LENGTH = 255
MAX_CHUNK_SIZE = 100_000
MAX_EMBEDDING_DIMENSIONS = 8192
MAX_TOP_K = 1000

CHUNK_ID_MARKER = "_chunk_"

_KB_ID_PATTERN = re.compile(r"^[a-zA-Z0-9](?:[a-zA-Z0-9-]*[a-zA-Z0-9])?$")
_SQL_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)?$")


def validate_knowledge_base_id(kb_id: str) -> None:
    """Knowledge base ids are alphanumeric with inner hyphens, at most 50 chars."""
    if not kb_id:
        raise ValidationError("Knowledge base id must not be empty")
    if len(kb_id) > MAX_KNOWLEDGE_BASE_ID_LENGTH:
        raise ValidationError(
            f"Knowledge base id must be at most {MAX_KNOWLEDGE_BASE_ID_LENGTH} characters"
        )
    if not _KB_ID_PATTERN.match(kb_id):
        raise ValidationError(
            "Knowledge base id must contain only letters, digits and inner hyphens"
        )


def validate_document_id(document_id: str) -> None:
    """Document ids are non-empty, at most 255 chars and never contain ``_chunk_``.

    Chunk ids are built as ``{document_id}_chunk_{index}`` and the index is
    recovered from the text after the last marker, so a marker inside the
    document id would make the mapping ambiguous.
    """
    if not document_id or not document_id.strip():
        raise ValidationError("Document id must not be empty")
    if len(document_id) > MAX_DOCUMENT_ID_LENGTH:
        raise ValidationError(
            f"Document id must be at most {MAX_DOCUMENT_ID_LENGTH} characters"
        )
    if CHUNK_ID_MARKER in document_id:
        raise ValidationError(
            f"Document id '{document_id}' must not contain the reserved substring "
            f"'{CHUNK_ID_MARKER}'"
        )


def validate_embedding_dimensions(dimensions: int) -> None:
    if dimensions < 1 or dimensions > MAX_EMBEDDING_DIMENSIONS:
        raise ValidationError(
            f"Embedding dimensions must be between 1 and {MAX_EMBEDDING_DIMENSIONS}"
        )


def validate_search_params(top_k: int, similarity_threshold: float) -> None:
    """Check the ``search`` arguments every provider accepts."""
    if top_k < 1 or top_k > MAX_TOP_K:
        raise ValidationError(f"top_k must be between 1 and {MAX_TOP_K}")
    if not 0.0 <= similarity_threshold <= 1.0:
        raise ValidationError("similarity_threshold must be between 0.0 and 1.0")


def validate_sql_identifier(identifier: str) -> None:
    """Table and column names are interpolated into SQL, so they must be plain identifiers."""
    if not _SQL_IDENTIFIER_PATTERN.match(identifier):
        raise ValidationError(f"Invalid SQL identifier: {identifier!r}")
