"""Sentence-aware chunker."""

from __future__ import annotations

from kbcore.services.chunking.base import UnitPackingChunker
from kbcore.services.chunking.text_spans import split_sentences


class SentenceChunker(UnitPackingChunker):
    """Packs whole sentences into chunks, joined by a single space.

    A sentence longer than ``chunk_size`` becomes a chunk of its own.
    """

    separator = " "

    def get_strategy_name(self) -> str:
        return "sentence"

    def _split_units(self, text: str) -> list[tuple[int, int]]:
        return split_sentences(text)
