"""Sliding-window chunker with word-boundary snapping."""

from __future__ import annotations

from kbcore.models.chunking import ChunkingConfig
from kbcore.services.chunking.base import BaseChunker, Piece
from kbcore.services.chunking.text_spans import (
    find_word_boundary_after,
    find_word_boundary_before,
    trim_span,
)


class FixedSizeChunker(BaseChunker):
    """Splits text into windows of ``chunk_size`` characters.

    The window advances by ``chunk_size - chunk_overlap``.  With
    ``respect_word_boundaries`` (the default) each window end is pulled back
    to the start of the word it would cut; if that leaves nothing (one long
    word) it is pushed forward to the end of that word instead.  Every piece
    is trimmed, so chunks never start or end with whitespace.

    Parameters
    ----------
    respect_word_boundaries:
        Snap window ends to whitespace.  When ``False`` windows end exactly
        at the target offset.
    """

    def __init__(self, respect_word_boundaries: bool = True) -> None:
        self._respect_word_boundaries = respect_word_boundaries

    def get_strategy_name(self) -> str:
        return "fixed_size"

    def _split(self, text: str, config: ChunkingConfig) -> list[Piece]:
        length = len(text)
        step = config.chunk_size - config.chunk_overlap
        pieces: list[Piece] = []
        start = 0

        while start < length:
            target_end = min(start + config.chunk_size, length)
            end = self._find_chunk_end(text, start, target_end)

            span = trim_span(text, start, end)
            if span is not None:
                pieces.append(Piece(text[span[0]:span[1]], span[0], span[1]))

            if end >= length:
                break

            start += step
            # Snapping can pull the end back past the next start; never skip text.
            if start >= end:
                start = end

        return pieces

    def _find_chunk_end(self, text: str, start: int, target_end: int) -> int:
        if not self._respect_word_boundaries or target_end >= len(text):
            return target_end
        boundary = find_word_boundary_before(text, target_end)
        if boundary <= start:
            return find_word_boundary_after(text, target_end)
        return boundary
