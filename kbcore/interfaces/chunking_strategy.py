"""Abstract base class for text chunking strategies."""

from __future__ import annotations

from abc import ABC, abstractmethod

from kbcore.models.chunking import Chunk, ChunkingConfig


# Concrete implementations (kbcore/services/chunking/):
#   FixedSizeChunker  -- sliding character window snapped to whitespace
#   SentenceChunker   -- greedy packing of sentences
#   ParagraphChunker  -- greedy packing of blank-line separated paragraphs
#   RecursiveChunker  -- headers, then paragraphs, sentences, words
class IChunkingStrategy(ABC):
    """Contract for splitting text into ordered, bounded chunks.

    Implementations are pure and synchronous: they hold no mutable state
    and may be called concurrently for independent documents.
    """

    @abstractmethod
    def chunk(self, content: str, config: ChunkingConfig) -> list[Chunk]:
        """Split *content* into chunks sized according to *config*.

        Parameters
        ----------
        content:
            Raw text.  Leading and trailing whitespace is ignored.
        config:
            Size parameters.  Validated before any processing.

        Returns
        -------
        list[Chunk]
            Chunks in document order with contiguous ``chunk_index`` values
            starting at 0 and a uniform ``total_chunks``.  Empty or
            whitespace-only content yields an empty list.

        Raises
        ------
        kbcore.utils.errors.ValidationError
            If *config* is invalid.
        kbcore.utils.errors.ChunkError
            If the strategy produced a chunk with invalid offsets.
        """

    @abstractmethod
    def get_strategy_name(self) -> str:
        """Return the strategy identifier, e.g. ``"fixed_size"``."""
