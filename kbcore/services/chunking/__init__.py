"""Chunking strategies and their factory."""

from kbcore.services.chunking.factory import ChunkerFactory
from kbcore.services.chunking.fixed_size_chunker import FixedSizeChunker
from kbcore.services.chunking.paragraph_chunker import ParagraphChunker
from kbcore.services.chunking.recursive_chunker import RecursiveChunker
from kbcore.services.chunking.sentence_chunker import SentenceChunker

__all__ = [
    "ChunkerFactory",
    "FixedSizeChunker",
    "ParagraphChunker",
    "RecursiveChunker",
    "SentenceChunker",
]
