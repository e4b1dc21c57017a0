"""Paragraph-aware chunker."""

from __future__ import annotations

from kbcore.services.chunking.base import UnitPackingChunker
from kbcore.services.chunking.text_spans import split_paragraphs


class ParagraphChunker(UnitPackingChunker):
    """Packs blank-line separated paragraphs into chunks joined by ``"\\n\\n"``."""

    separator = "\n\n"

    def get_strategy_name(self) -> str:
        return "paragraph"

    def _split_units(self, text: str) -> list[tuple[int, int]]:
        return split_paragraphs(text)
