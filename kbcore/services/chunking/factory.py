"""Enum-keyed factory for chunking strategies."""

from __future__ import annotations

from kbcore.interfaces.chunking_strategy import IChunkingStrategy
from kbcore.models.chunking import ChunkingType
from kbcore.services.chunking.fixed_size_chunker import FixedSizeChunker
from kbcore.services.chunking.paragraph_chunker import ParagraphChunker
from kbcore.services.chunking.recursive_chunker import RecursiveChunker
from kbcore.services.chunking.sentence_chunker import SentenceChunker
from kbcore.utils.errors import ValidationError


class ChunkerFactory:
    """Creates a chunking strategy for a :class:`ChunkingType`."""

    @staticmethod
    def create(chunking_type: ChunkingType | str) -> IChunkingStrategy:
        try:
            kind = ChunkingType(chunking_type)
        except ValueError as exc:
            raise ValidationError(f"Unknown chunking type: {chunking_type!r}") from exc

        if kind is ChunkingType.FIXED_SIZE:
            return FixedSizeChunker()
        if kind is ChunkingType.SENTENCE:
            return SentenceChunker()
        if kind is ChunkingType.PARAGRAPH:
            return ParagraphChunker()
        return RecursiveChunker()

    @staticmethod
    def available_types() -> list[ChunkingType]:
        return list(ChunkingType)
