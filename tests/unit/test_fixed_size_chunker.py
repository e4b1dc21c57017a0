"""Unit tests for FixedSizeChunker."""

from __future__ import annotations

from kbcore.models.chunking import ChunkingConfig
from kbcore.services.chunking.fixed_size_chunker import FixedSizeChunker

PANGRAM = "The quick brown fox jumps over the lazy dog"


class TestFixedSizeChunker:
    def test_strategy_name(self) -> None:
        assert FixedSizeChunker().get_strategy_name() == "fixed_size"

    def test_snaps_to_word_boundaries(self) -> None:
        config = ChunkingConfig(chunk_size=20, chunk_overlap=5, min_chunk_size=1)
        chunks = FixedSizeChunker().chunk(PANGRAM, config)

        assert [c.content for c in chunks] == [
            "The quick brown fox",
            "fox jumps over the",
            "the lazy dog",
        ]
        assert [(c.metadata.char_start, c.metadata.char_end) for c in chunks] == [
            (0, 19),
            (16, 34),
            (31, 43),
        ]

    def test_content_matches_offsets(self, repeated_sentence_text, small_config) -> None:
        text = repeated_sentence_text.strip()
        for chunk in FixedSizeChunker().chunk(text, small_config):
            assert text[chunk.metadata.char_start:chunk.metadata.char_end] == chunk.content

    def test_chunks_within_chunk_size(self, repeated_sentence_text, small_config) -> None:
        chunks = FixedSizeChunker().chunk(repeated_sentence_text, small_config)
        assert all(len(c.content) <= small_config.chunk_size for c in chunks)

    def test_long_word_uses_raw_windows(self) -> None:
        text = "x" * 25
        config = ChunkingConfig(chunk_size=10, chunk_overlap=2, min_chunk_size=1)
        chunks = FixedSizeChunker().chunk(text, config)

        assert [(c.metadata.char_start, c.metadata.char_end) for c in chunks] == [
            (0, 10),
            (8, 18),
            (16, 25),
        ]

    def test_without_word_boundaries(self) -> None:
        config = ChunkingConfig(chunk_size=10, chunk_overlap=0, min_chunk_size=1)
        chunks = FixedSizeChunker(respect_word_boundaries=False).chunk("abcdefghij" * 3, config)
        assert [c.content for c in chunks] == ["abcdefghij"] * 3

    def test_without_word_boundaries_trims_cut_pieces(self) -> None:
        config = ChunkingConfig(chunk_size=20, chunk_overlap=0, min_chunk_size=1)
        chunks = FixedSizeChunker(respect_word_boundaries=False).chunk(PANGRAM, config)
        assert chunks[0].content == "The quick brown fox"
        assert all(c.content == c.content.strip() for c in chunks)

    def test_falls_back_to_whole_content_when_all_pieces_too_small(self) -> None:
        text = "a b c d e f g h i j k l m n o p"
        config = ChunkingConfig(chunk_size=10, chunk_overlap=0, min_chunk_size=10)
        chunks = FixedSizeChunker().chunk(text, config)

        assert len(chunks) == 1
        assert chunks[0].content == text
        assert chunks[0].metadata.char_start == 0
        assert chunks[0].metadata.char_end == len(text)
        assert chunks[0].metadata.total_chunks == 1

    def test_terminates_with_large_overlap(self) -> None:
        text = " ".join(["word"] * 200)
        config = ChunkingConfig(chunk_size=12, chunk_overlap=11, min_chunk_size=1)
        chunks = FixedSizeChunker().chunk(text, config)
        assert chunks
        assert chunks[-1].metadata.char_end == len(text)
