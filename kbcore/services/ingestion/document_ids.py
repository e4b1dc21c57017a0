"""Chunk id convention: ``{document_id}_chunk_{index}``."""

from __future__ import annotations

import uuid

from kbcore.models.ingestion import ParserInput
from kbcore.utils.validation import CHUNK_ID_MARKER

DOCUMENT_ID_KEY = "document_id"


def make_chunk_id(document_id: str, chunk_index: int) -> str:
    return f"{document_id}{CHUNK_ID_MARKER}{chunk_index}"


def extract_chunk_index(chunk_id: str) -> int | None:
    """Return the index after the last ``_chunk_`` marker, or ``None`` if there is none."""
    _, marker, suffix = chunk_id.rpartition(CHUNK_ID_MARKER)
    if not marker or not (suffix.isascii() and suffix.isdigit()):
        return None
    return int(suffix)


def resolve_document_id(parser_input: ParserInput, source_id: str | None) -> str:
    """Pick the document id: explicit source id, then filename, then a fresh UUID."""
    if source_id:
        return source_id
    if parser_input.filename:
        return parser_input.filename
    return str(uuid.uuid4())
