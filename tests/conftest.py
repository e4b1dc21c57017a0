"""Shared pytest fixtures for the kbcore test suite."""

from __future__ import annotations

import hashlib
from unittest.mock import AsyncMock, MagicMock

import pytest

from kbcore.interfaces.embedding_provider import IEmbeddingProvider
from kbcore.models.chunking import ChunkingConfig
from kbcore.models.knowledge_base import Document
from kbcore.providers.knowledge_base.in_memory_provider import InMemoryKnowledgeBaseProvider

# ---------------------------------------------------------------------------
# Embedding doubles
# ---------------------------------------------------------------------------


class HashingEmbeddingProvider(IEmbeddingProvider):
    """Deterministic bag-of-words embedder for tests.

    Each lower-cased word is hashed into one of ``dimension`` buckets, so
    texts sharing words have a high cosine similarity and identical texts
    score 1.0.
    """

    def __init__(self, dimension: int = 32) -> None:
        self._dimension = dimension
        self.calls: list[list[str]] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self._vector(text) for text in texts]

    async def embed_single(self, text: str) -> list[float]:
        return self._vector(text)

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "hashing"

    def is_available(self) -> bool:
        return True

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self._dimension
        for word in text.lower().split():
            digest = hashlib.md5(word.strip(".,!?").encode()).digest()
            vector[digest[0] % self._dimension] += 1.0
        return vector


@pytest.fixture
def hashing_embedder() -> HashingEmbeddingProvider:
    return HashingEmbeddingProvider()


@pytest.fixture
def mock_embedding_provider() -> MagicMock:
    """Embedding provider mock returning one constant 8-dim vector per text."""
    mock = MagicMock(spec=IEmbeddingProvider)
    mock.embed = AsyncMock(side_effect=lambda texts: [[0.1] * 8 for _ in texts])
    mock.embed_single = AsyncMock(return_value=[0.1] * 8)
    mock.get_dimension.return_value = 8
    mock.get_provider_name.return_value = "mock"
    mock.is_available.return_value = True
    return mock


# ---------------------------------------------------------------------------
# Chunking fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def small_config() -> ChunkingConfig:
    return ChunkingConfig(chunk_size=50, chunk_overlap=10, min_chunk_size=5)


@pytest.fixture
def repeated_sentence_text() -> str:
    return "The quick brown fox jumps over the lazy dog. " * 5


# ---------------------------------------------------------------------------
# Knowledge base fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def in_memory_provider() -> InMemoryKnowledgeBaseProvider:
    return InMemoryKnowledgeBaseProvider(kb_id="test-kb")


@pytest.fixture
def sample_documents() -> list[Document]:
    return [
        Document(
            id="guide_chunk_0",
            content="Install the gateway with pip and configure the API key.",
            metadata={"category": "docs", "version": 2, "lang": "en"},
            source="guide",
        ),
        Document(
            id="guide_chunk_1",
            content="Rotate the API key every ninety days.",
            metadata={"category": "docs", "version": 1, "lang": "en"},
            source="guide",
        ),
        Document(
            id="faq_chunk_0",
            content="Frequently asked questions about rate limits.",
            metadata={"category": "faq", "lang": "de"},
            source="faq",
        ),
    ]
