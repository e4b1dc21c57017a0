"""Hierarchical chunker: headers, then paragraphs, sentences and words.

Descent levels:

    0  markdown-style header lines (``#`` at line start)
    1  paragraphs (blank lines)
    2  sentences
    3  whitespace-delimited words, raw character windows for unbroken runs

At each level the text is split into units.  A single unit means the level
made no progress, so the same span drops to the next level.  Otherwise the
units are packed greedily into bins of at most ``chunk_size`` characters and
any bin still too large (a single oversized unit) is re-split one level
down.  Level 3 always terminates, which bounds the recursion depth at four.
"""

from __future__ import annotations

from typing import Callable

from kbcore.models.chunking import ChunkingConfig
from kbcore.services.chunking.base import BaseChunker, Piece
from kbcore.services.chunking.text_spans import (
    Span,
    split_headers,
    split_paragraphs,
    split_sentences,
    split_words,
)

_WORD_LEVEL = 3

_SPLITTERS: dict[int, Callable[[str, int, int], list[Span]]] = {
    0: split_headers,
    1: split_paragraphs,
    2: split_sentences,
}


class RecursiveChunker(BaseChunker):
    """Splits on the coarsest structure that yields chunks within ``chunk_size``."""

    def get_strategy_name(self) -> str:
        return "recursive"

    def _split(self, text: str, config: ChunkingConfig) -> list[Piece]:
        return self._descend(text, (0, len(text)), config, level=0)

    def _descend(self, text: str, span: Span, config: ChunkingConfig, level: int) -> list[Piece]:
        start, end = span
        if end - start <= config.chunk_size:
            return [Piece(text[start:end], start, end)]

        if level >= _WORD_LEVEL:
            return self._split_words(text, span, config)

        units = _SPLITTERS[level](text, start, end)
        if len(units) <= 1:
            return self._descend(text, span, config, level + 1)

        separator = "\n\n" if level < 2 else " "
        return self._pack(text, units, separator, config, level)

    def _pack(
        self,
        text: str,
        units: list[Span],
        separator: str,
        config: ChunkingConfig,
        level: int,
    ) -> list[Piece]:
        pieces: list[Piece] = []
        current: list[Span] = []
        current_length = 0

        def _flush() -> None:
            if not current:
                return
            if current_length > config.chunk_size:
                bin_span = (current[0][0], current[-1][1])
                pieces.extend(self._descend(text, bin_span, config, level + 1))
            else:
                content = separator.join(text[s:e] for s, e in current)
                pieces.append(Piece(content, current[0][0], current[-1][1]))

        for unit in units:
            unit_length = unit[1] - unit[0]
            if current and current_length + len(separator) + unit_length <= config.chunk_size:
                current.append(unit)
                current_length += len(separator) + unit_length
                continue
            _flush()
            current = [unit]
            current_length = unit_length
        _flush()

        return pieces

    def _split_words(self, text: str, span: Span, config: ChunkingConfig) -> list[Piece]:
        words: list[Span] = []
        for word_start, word_end in split_words(text, *span):
            # An unbroken run longer than a chunk is cut into raw windows.
            for window_start in range(word_start, word_end, config.chunk_size):
                words.append((window_start, min(window_start + config.chunk_size, word_end)))
        return self._pack(text, words, " ", config, _WORD_LEVEL)
