"""Value types produced and consumed by the chunking strategies.

These are frozen dataclasses rather than pydantic models: they are created
in tight loops inside the chunkers and their validation raises the
library's own :class:`~kbcore.utils.errors.ValidationError` directly.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from kbcore.utils.errors import ValidationError
from kbcore.utils.validation import MAX_CHUNK_SIZE

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200
DEFAULT_MIN_CHUNK_SIZE = 50


class ChunkingType(str, Enum):
    """Closed set of chunking strategies selectable through the factory."""

    FIXED_SIZE = "fixed_size"
    SENTENCE = "sentence"
    PARAGRAPH = "paragraph"
    RECURSIVE = "recursive"


@dataclass(frozen=True)
class ChunkingConfig:
    """Size parameters for one chunking call.

    Attributes
    ----------
    chunk_size:
        Target maximum chunk length in characters.
    chunk_overlap:
        Characters of trailing context carried into the next chunk.
    min_chunk_size:
        Candidate chunks shorter than this are dropped (unless that would
        leave the result empty).
    """

    chunk_size: int = DEFAULT_CHUNK_SIZE
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP
    min_chunk_size: int = DEFAULT_MIN_CHUNK_SIZE

    def with_min_chunk_size(self, min_chunk_size: int) -> ChunkingConfig:
        return replace(self, min_chunk_size=min_chunk_size)

    def with_overlap(self, chunk_overlap: int) -> ChunkingConfig:
        return replace(self, chunk_overlap=chunk_overlap)

    def validate(self) -> None:
        """Raise :class:`ValidationError` if the parameters are inconsistent."""
        if self.chunk_size <= 0:
            raise ValidationError("chunk_size must be greater than 0")
        if self.chunk_size > MAX_CHUNK_SIZE:
            raise ValidationError(f"chunk_size must be at most {MAX_CHUNK_SIZE}")
        if self.chunk_overlap < 0:
            raise ValidationError("chunk_overlap must not be negative")
        if self.chunk_overlap >= self.chunk_size:
            raise ValidationError("chunk_overlap must be less than chunk_size")
        if self.min_chunk_size < 0:
            raise ValidationError("min_chunk_size must not be negative")
        if self.min_chunk_size > self.chunk_size:
            raise ValidationError("min_chunk_size must be less than or equal to chunk_size")


@dataclass(frozen=True)
class ChunkMetadata:
    """Position of a chunk inside the (trimmed) source text."""

    chunk_index: int
    total_chunks: int
    char_start: int
    char_end: int

    def to_metadata_dict(self) -> dict[str, Any]:
        return {
            "chunk_index": self.chunk_index,
            "total_chunks": self.total_chunks,
            "char_start": self.char_start,
            "char_end": self.char_end,
        }


@dataclass(frozen=True)
class Chunk:
    """One bounded unit of text plus its position metadata."""

    content: str
    metadata: ChunkMetadata

    def __len__(self) -> int:
        return len(self.content)
