"""Data models for the parse -> chunk -> store ingestion pipeline.

Defines the raw parser input, parsed document, per-call ingestion config
and the per-document / per-batch result objects.  Results describe partial
success instead of raising: a document whose chunks were only partly
stored still yields an :class:`IngestionResult`, with one
:class:`IngestionError` per rejected chunk.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import PurePath
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from kbcore.models.chunking import (
    DEFAULT_CHUNK_OVERLAP,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MIN_CHUNK_SIZE,
    ChunkingConfig,
    ChunkingType,
)
from kbcore.utils.errors import ParseError


class ParserType(str, Enum):
    """Document formats with a built-in parser."""

    PLAIN_TEXT = "plain_text"
    MARKDOWN = "markdown"
    HTML = "html"
    JSON = "json"

    @property
    def extensions(self) -> tuple[str, ...]:
        return _PARSER_EXTENSIONS[self]

    @property
    def mime_types(self) -> tuple[str, ...]:
        return _PARSER_MIME_TYPES[self]


_PARSER_EXTENSIONS: dict[ParserType, tuple[str, ...]] = {
    ParserType.PLAIN_TEXT: ("txt", "text"),
    ParserType.MARKDOWN: ("md", "markdown"),
    ParserType.HTML: ("html", "htm"),
    ParserType.JSON: ("json",),
}

_PARSER_MIME_TYPES: dict[ParserType, tuple[str, ...]] = {
    ParserType.PLAIN_TEXT: ("text/plain",),
    ParserType.MARKDOWN: ("text/markdown", "text/x-markdown"),
    ParserType.HTML: ("text/html",),
    ParserType.JSON: ("application/json",),
}


# ---------------------------------------------------------------------------
# Parser input / output
# ---------------------------------------------------------------------------


class ParserInput(BaseModel):
    """Raw document handed to a parser: text or bytes plus optional hints."""

    model_config = ConfigDict(frozen=True)

    content: str | bytes = Field(description="Raw document body.")
    filename: str | None = Field(default=None, description="Original filename, if known.")
    mime_type: str | None = Field(default=None, description="Declared MIME type, if known.")
    metadata: dict[str, Any] = Field(
        default_factory=dict, description="Caller metadata carried into DocumentMetadata.custom."
    )

    @classmethod
    def from_text(cls, text: str, filename: str | None = None, **metadata: Any) -> ParserInput:
        return cls(content=text, filename=filename, metadata=metadata)

    @classmethod
    def from_bytes(cls, data: bytes, filename: str | None = None, **metadata: Any) -> ParserInput:
        return cls(content=data, filename=filename, metadata=metadata)

    @property
    def extension(self) -> str | None:
        if not self.filename:
            return None
        suffix = PurePath(self.filename).suffix
        return suffix[1:].lower() if suffix else None

    def as_text(self) -> str:
        """Return the body as text, decoding bytes as UTF-8.

        Raises
        ------
        ParseError
            If the bytes are not valid UTF-8.
        """
        if isinstance(self.content, str):
            return self.content
        try:
            return self.content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError(message=f"Invalid UTF-8 content: {exc}") from exc


class DocumentMetadata(BaseModel):
    """Metadata a parser extracts from a document."""

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    author: str | None = None
    created_at: datetime | None = None
    modified_at: datetime | None = None
    source: str | None = None
    mime_type: str | None = None
    custom: dict[str, Any] = Field(default_factory=dict)

    def to_metadata_dict(self) -> dict[str, Any]:
        """Flatten to the JSON-like mapping stored alongside each chunk."""
        data: dict[str, Any] = {}
        if self.title is not None:
            data["title"] = self.title
        if self.author is not None:
            data["author"] = self.author
        if self.created_at is not None:
            data["created_at"] = self.created_at.isoformat()
        if self.modified_at is not None:
            data["modified_at"] = self.modified_at.isoformat()
        if self.source is not None:
            data["source"] = self.source
        if self.mime_type is not None:
            data["mime_type"] = self.mime_type
        data.update(self.custom)
        return data

    def merge(self, other: DocumentMetadata) -> DocumentMetadata:
        """Return a copy where fields set on *other* win."""
        updates = {
            name: value
            for name, value in other.model_dump(exclude={"custom"}).items()
            if value is not None
        }
        updates["custom"] = {**self.custom, **other.custom}
        return self.model_copy(update=updates)


class ParsedDocument(BaseModel):
    """Plain text plus metadata produced by a parser."""

    model_config = ConfigDict(frozen=True)

    content: str
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)


# ---------------------------------------------------------------------------
# Ingestion config and results
# ---------------------------------------------------------------------------


class IngestionConfig(BaseModel):
    """Per-call ingestion settings.

    ``source_id`` pins the document id; ``metadata`` is merged into every
    chunk after the parser and chunk-position metadata.
    """

    model_config = ConfigDict(frozen=True)

    parser_type: ParserType | None = Field(
        default=None, description="Force a parser; detected from the filename when unset."
    )
    chunking_type: ChunkingType = ChunkingType.FIXED_SIZE
    chunk_size: int = DEFAULT_CHUNK_SIZE
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP
    min_chunk_size: int = DEFAULT_MIN_CHUNK_SIZE
    metadata: dict[str, Any] = Field(default_factory=dict)
    source_id: str | None = None

    @property
    def chunking_config(self) -> ChunkingConfig:
        return ChunkingConfig(
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            min_chunk_size=self.min_chunk_size,
        )

    def with_source_id(self, source_id: str) -> IngestionConfig:
        return self.model_copy(update={"source_id": source_id})


class IngestionError(BaseModel):
    """A failure tied to a whole document (``chunk_index`` None) or to one chunk."""

    model_config = ConfigDict(frozen=True)

    chunk_index: int | None = None
    message: str

    @classmethod
    def document(cls, message: str) -> IngestionError:
        return cls(chunk_index=None, message=message)

    @classmethod
    def chunk(cls, chunk_index: int | None, message: str) -> IngestionError:
        return cls(chunk_index=chunk_index, message=message)


class IngestionResult(BaseModel):
    """Outcome of ingesting one document."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    chunks_created: int = Field(default=0, ge=0)
    chunks_failed: int = Field(default=0, ge=0)
    errors: list[IngestionError] = Field(default_factory=list)

    @classmethod
    def success(cls, document_id: str, chunks_created: int) -> IngestionResult:
        return cls(document_id=document_id, chunks_created=chunks_created)

    @classmethod
    def failed(cls, document_id: str, message: str) -> IngestionResult:
        return cls(document_id=document_id, errors=[IngestionError.document(message)])

    @property
    def is_success(self) -> bool:
        return not self.errors and self.chunks_failed == 0

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


class BatchIngestionResult(BaseModel):
    """Per-document results of a batch, in input order, plus counts."""

    model_config = ConfigDict(frozen=True)

    total_documents: int = 0
    successful: int = 0
    failed: int = 0
    results: list[IngestionResult] = Field(default_factory=list)

    @classmethod
    def from_results(cls, results: list[IngestionResult]) -> BatchIngestionResult:
        successful = sum(1 for result in results if result.is_success)
        return cls(
            total_documents=len(results),
            successful=successful,
            failed=len(results) - successful,
            results=results,
        )

    @property
    def is_success(self) -> bool:
        return self.failed == 0

    @property
    def total_chunks_created(self) -> int:
        return sum(result.chunks_created for result in self.results)
