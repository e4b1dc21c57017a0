"""Shared template for the chunking strategies.

:class:`BaseChunker` owns the rules common to every strategy: config
validation, trimming, the empty and single-chunk shortcuts, the
``min_chunk_size`` filter with its whole-content fallback, index
assignment and offset checks.  Subclasses only produce candidate pieces.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import NamedTuple

import structlog

from kbcore.interfaces.chunking_strategy import IChunkingStrategy
from kbcore.models.chunking import Chunk, ChunkingConfig, ChunkMetadata
from kbcore.utils.errors import ChunkError

logger = structlog.get_logger(logger_name=__name__)


class Piece(NamedTuple):
    """A candidate chunk: its text and its ``[start, end)`` offsets."""

    content: str
    start: int
    end: int


class BaseChunker(IChunkingStrategy):
    """Template-method base for the concrete chunkers."""

    def chunk(self, content: str, config: ChunkingConfig) -> list[Chunk]:
        config.validate()

        text = content.strip()
        if not text:
            return []

        if len(text) <= config.chunk_size:
            return [Chunk(text, ChunkMetadata(0, 1, 0, len(text)))]

        pieces = [
            piece
            for piece in self._split(text, config)
            if piece.content and len(piece.content) >= config.min_chunk_size
        ]
        if not pieces:
            logger.debug(
                "chunking_fallback_whole_content",
                strategy=self.get_strategy_name(),
                length=len(text),
            )
            pieces = [Piece(text, 0, len(text))]

        total = len(pieces)
        chunks: list[Chunk] = []
        for index, piece in enumerate(pieces):
            if not 0 <= piece.start < piece.end <= len(text):
                raise ChunkError(
                    message=(
                        f"Chunk {index} has invalid offsets "
                        f"[{piece.start}, {piece.end}) for text of length {len(text)}"
                    ),
                    provider_name=self.get_strategy_name(),
                )
            chunks.append(Chunk(piece.content, ChunkMetadata(index, total, piece.start, piece.end)))
        return chunks

    @abstractmethod
    def _split(self, text: str, config: ChunkingConfig) -> list[Piece]:
        """Produce candidate pieces for *text* (already trimmed, longer than chunk_size)."""


class UnitPackingChunker(BaseChunker):
    """Greedy packer shared by the sentence and paragraph strategies.

    Units are packed into the current chunk while
    ``len(current) + len(separator) + len(unit) <= chunk_size``.  On overflow
    the current chunk is closed and, when ``chunk_overlap > 0``, the next one
    is seeded with the last ``chunk_overlap`` characters of the closed chunk.
    """

    separator: str = " "

    @abstractmethod
    def _split_units(self, text: str) -> list[tuple[int, int]]:
        """Return trimmed unit spans in document order."""

    def _split(self, text: str, config: ChunkingConfig) -> list[Piece]:
        units = self._split_units(text)
        separator = self.separator

        pieces: list[Piece] = []
        current = ""
        current_start = 0
        current_end = 0

        for unit_start, unit_end in units:
            unit = text[unit_start:unit_end]

            if not current:
                current, current_start, current_end = unit, unit_start, unit_end
                continue

            if len(current) + len(separator) + len(unit) <= config.chunk_size:
                current = f"{current}{separator}{unit}"
                current_end = unit_end
                continue

            pieces.append(Piece(current, current_start, current_end))

            overlap = current[-config.chunk_overlap:].lstrip() if config.chunk_overlap > 0 else ""
            if overlap:
                current = f"{overlap}{separator}{unit}"
                current_start = max(0, unit_start - len(overlap))
            else:
                current, current_start = unit, unit_start
            current_end = unit_end

        if current:
            pieces.append(Piece(current, current_start, current_end))

        return pieces
