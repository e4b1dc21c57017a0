"""Unit tests for InMemoryKnowledgeBaseProvider."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from kbcore.models.filters import FilterCondition, FilterGroup
from kbcore.models.knowledge_base import CreateChunkRequest, CreateDocumentRequest, Document
from kbcore.providers.knowledge_base.in_memory_provider import InMemoryKnowledgeBaseProvider
from kbcore.utils.errors import BackendError, ValidationError


class TestInMemoryWrites:
    @pytest.mark.asyncio
    async def test_add_and_count(self, in_memory_provider, sample_documents) -> None:
        result = await in_memory_provider.add_documents(sample_documents)
        assert (result.added, result.failed) == (3, 0)
        assert await in_memory_provider.document_count() == 3

    @pytest.mark.asyncio
    async def test_add_empty_list(self, in_memory_provider) -> None:
        result = await in_memory_provider.add_documents([])
        assert result.added == 0

    @pytest.mark.asyncio
    async def test_upsert_overwrites(self, in_memory_provider) -> None:
        await in_memory_provider.add_documents([Document(id="a", content="old")])
        await in_memory_provider.add_documents([Document(id="a", content="new")])

        assert await in_memory_provider.document_count() == 1
        stored = await in_memory_provider.get_document("a")
        assert stored is not None
        assert stored.content == "new"

    @pytest.mark.asyncio
    async def test_partial_failure(self, in_memory_provider) -> None:
        documents = [
            Document(id="a", content="first"),
            Document(id="b", content="   "),
            Document(id="c", content="third"),
        ]
        result = await in_memory_provider.add_documents(documents)

        assert result.added == 2
        assert result.failed == 1
        assert result.errors == [("b", "Document content is empty")]
        assert await in_memory_provider.get_document("a") is not None
        assert await in_memory_provider.get_document("b") is None

    @pytest.mark.asyncio
    async def test_delete_documents(self, in_memory_provider, sample_documents) -> None:
        await in_memory_provider.add_documents(sample_documents)
        result = await in_memory_provider.delete_documents(["guide_chunk_0", "missing"])
        assert (result.deleted, result.not_found) == (1, 1)
        assert await in_memory_provider.document_count() == 2

    @pytest.mark.asyncio
    async def test_delete_by_filter(self, in_memory_provider, sample_documents) -> None:
        await in_memory_provider.add_documents(sample_documents)
        result = await in_memory_provider.delete_by_filter(FilterCondition.eq("category", "docs"))
        assert result.deleted == 2
        assert await in_memory_provider.document_count() == 1

    @pytest.mark.asyncio
    async def test_delete_by_empty_or_deletes_nothing(
        self, in_memory_provider, sample_documents
    ) -> None:
        await in_memory_provider.add_documents(sample_documents)
        result = await in_memory_provider.delete_by_filter(FilterGroup.or_([]))
        assert result.deleted == 0


class TestInMemorySearch:
    @pytest.mark.asyncio
    async def test_lexical_search_ranks_by_overlap(self, in_memory_provider, sample_documents) -> None:
        await in_memory_provider.add_documents(sample_documents)
        results = await in_memory_provider.search("rotate api key", top_k=5, similarity_threshold=0.1)

        assert results[0].id == "guide_chunk_1"
        assert results[0].score == pytest.approx(1.0)
        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_threshold_and_top_k(self, in_memory_provider, sample_documents) -> None:
        await in_memory_provider.add_documents(sample_documents)
        results = await in_memory_provider.search("api key rate", top_k=1, similarity_threshold=0.5)
        assert len(results) == 1
        assert all(r.score >= 0.5 for r in results)

    @pytest.mark.asyncio
    async def test_metadata_filter(self, in_memory_provider, sample_documents) -> None:
        await in_memory_provider.add_documents(sample_documents)
        metadata_filter = FilterGroup.or_(
            [
                FilterGroup.and_(
                    [FilterCondition.eq("category", "docs"), FilterCondition.gt("version", 1)]
                ),
                FilterCondition.eq("category", "faq"),
            ]
        )
        results = await in_memory_provider.search(
            "api key rate limits", top_k=10, similarity_threshold=0.0, metadata_filter=metadata_filter
        )
        assert {r.id for r in results} == {"guide_chunk_0", "faq_chunk_0"}

    @pytest.mark.asyncio
    async def test_embedding_search(self, hashing_embedder, sample_documents) -> None:
        provider = InMemoryKnowledgeBaseProvider(kb_id="emb", embedding_provider=hashing_embedder)
        await provider.add_documents(sample_documents)

        results = await provider.search(
            "Rotate the API key every ninety days.",
            top_k=3,
            similarity_threshold=0.0,
            include_embeddings=True,
        )
        assert results[0].id == "guide_chunk_1"
        assert results[0].score == pytest.approx(1.0)
        assert results[0].embedding is not None

    @pytest.mark.asyncio
    async def test_embeddings_omitted_by_default(self, hashing_embedder, sample_documents) -> None:
        provider = InMemoryKnowledgeBaseProvider(kb_id="emb", embedding_provider=hashing_embedder)
        await provider.add_documents(sample_documents)
        results = await provider.search("api key", similarity_threshold=0.0)
        assert all(r.embedding is None for r in results)

    @pytest.mark.asyncio
    async def test_invalid_params(self, in_memory_provider) -> None:
        with pytest.raises(ValidationError):
            await in_memory_provider.search("q", top_k=0)
        with pytest.raises(ValidationError):
            await in_memory_provider.search("q", similarity_threshold=2.0)


class TestInMemoryEmbeddingGuard:
    @pytest.mark.asyncio
    async def test_count_mismatch_fails_whole_call(self, mock_embedding_provider) -> None:
        mock_embedding_provider.embed = AsyncMock(return_value=[[0.1] * 8])
        provider = InMemoryKnowledgeBaseProvider(kb_id="docs", embedding_provider=mock_embedding_provider)

        with pytest.raises(BackendError, match="Embedding count mismatch"):
            await provider.add_documents(
                [Document(id="a", content="one"), Document(id="b", content="two")]
            )
        assert await provider.document_count() == 0

    @pytest.mark.asyncio
    async def test_embedding_exception_wrapped(self, mock_embedding_provider) -> None:
        mock_embedding_provider.embed = AsyncMock(side_effect=RuntimeError("model offline"))
        provider = InMemoryKnowledgeBaseProvider(kb_id="docs", embedding_provider=mock_embedding_provider)

        with pytest.raises(BackendError, match="model offline"):
            await provider.add_documents([Document(id="a", content="one")])


class TestInMemorySources:
    @pytest.mark.asyncio
    async def test_list_sources(self, in_memory_provider, sample_documents) -> None:
        await in_memory_provider.add_documents(sample_documents)
        sources = {info.source: info.document_count for info in await in_memory_provider.list_sources()}
        assert sources == {"guide": 2, "faq": 1}

    @pytest.mark.asyncio
    async def test_list_and_delete_by_source(self, in_memory_provider, sample_documents) -> None:
        await in_memory_provider.add_documents(sample_documents)
        listed = await in_memory_provider.list_by_source("guide")
        assert {r.id for r in listed} == {"guide_chunk_0", "guide_chunk_1"}

        result = await in_memory_provider.delete_by_source("guide")
        assert result.deleted == 2
        assert await in_memory_provider.document_count() == 1


class TestInMemoryMisc:
    def test_invalid_kb_id(self) -> None:
        with pytest.raises(ValidationError):
            InMemoryKnowledgeBaseProvider(kb_id="bad id")

    @pytest.mark.asyncio
    async def test_health_check(self, in_memory_provider) -> None:
        assert await in_memory_provider.health_check() is True

    @pytest.mark.asyncio
    async def test_get_document_missing(self, in_memory_provider) -> None:
        assert await in_memory_provider.get_document("nope") is None

    @pytest.mark.asyncio
    async def test_concurrent_writes(self, in_memory_provider) -> None:
        batches = [
            [Document(id=f"d{batch}_{i}", content=f"text {i}") for i in range(20)]
            for batch in range(5)
        ]
        await asyncio.gather(*(in_memory_provider.add_documents(b) for b in batches))
        assert await in_memory_provider.document_count() == 100


def _guide_request() -> CreateDocumentRequest:
    return CreateDocumentRequest(
        title="Gateway Guide",
        source_filename="guide.md",
        metadata={"team": "platform"},
        chunks=[
            CreateChunkRequest(content="Rotate the API key every ninety days.", chunk_index=1),
            CreateChunkRequest(content="Install the gateway with pip.", chunk_index=0),
        ],
    )


class TestInMemoryDocumentCatalog:
    @pytest.mark.asyncio
    async def test_create_document_stores_chunks(self, in_memory_provider) -> None:
        document = await in_memory_provider.create_document(_guide_request())

        assert document.kb_id == "test-kb"
        assert document.chunk_count == 2
        assert await in_memory_provider.get_document_by_id(document.id) == document

        stored = await in_memory_provider.get_document(f"{document.id}_chunk_0")
        assert stored is not None
        assert stored.source == document.id
        assert stored.metadata == {"document_id": document.id}

    @pytest.mark.asyncio
    async def test_chunks_ordered_by_index(self, hashing_embedder) -> None:
        provider = InMemoryKnowledgeBaseProvider(kb_id="kb", embedding_provider=hashing_embedder)
        document = await provider.create_document(_guide_request())

        chunks = await provider.get_document_chunks(document.id)

        assert [c.chunk_index for c in chunks] == [0, 1]
        assert chunks[0].content == "Install the gateway with pip."
        assert chunks[0].document_id == document.id
        assert chunks[0].embedding is not None

    @pytest.mark.asyncio
    async def test_disabled_document_excluded_from_search(self, in_memory_provider) -> None:
        document = await in_memory_provider.create_document(_guide_request())
        await in_memory_provider.add_documents([Document(id="loose", content="API key rotation")])

        assert await in_memory_provider.disable_document(document.id)
        results = await in_memory_provider.search("API key", similarity_threshold=0.1)
        assert [r.id for r in results] == ["loose"]
        assert (await in_memory_provider.get_document_by_id(document.id)).disabled

        assert await in_memory_provider.enable_document(document.id)
        results = await in_memory_provider.search("API key", similarity_threshold=0.1)
        assert {r.id for r in results} == {"loose", f"{document.id}_chunk_1"}

    @pytest.mark.asyncio
    async def test_list_documents_newest_first(self, in_memory_provider) -> None:
        first = await in_memory_provider.create_document(_guide_request())
        await asyncio.sleep(0.001)
        second = await in_memory_provider.create_document(CreateDocumentRequest(title="Empty"))

        summaries = await in_memory_provider.list_documents()

        assert [s.id for s in summaries] == [second.id, first.id]
        assert summaries[0].chunk_count == 0
        assert summaries[1].title == "Gateway Guide"

    @pytest.mark.asyncio
    async def test_delete_document_removes_chunks(self, in_memory_provider) -> None:
        document = await in_memory_provider.create_document(_guide_request())
        await in_memory_provider.add_documents([Document(id="loose", content="other")])

        assert await in_memory_provider.delete_document_by_id(document.id)
        assert await in_memory_provider.get_document_by_id(document.id) is None
        assert await in_memory_provider.get_document_chunks(document.id) == []
        assert await in_memory_provider.document_count() == 1
        assert not await in_memory_provider.delete_document_by_id(document.id)

    @pytest.mark.asyncio
    async def test_unknown_document(self, in_memory_provider) -> None:
        assert await in_memory_provider.get_document_by_id("nope") is None
        assert not await in_memory_provider.disable_document("nope")
        assert not await in_memory_provider.enable_document("nope")

    @pytest.mark.asyncio
    async def test_empty_chunk_rejects_whole_request(self, in_memory_provider) -> None:
        request = CreateDocumentRequest(
            chunks=[
                CreateChunkRequest(content="fine", chunk_index=0),
                CreateChunkRequest(content="   ", chunk_index=1),
            ]
        )
        with pytest.raises(ValidationError, match="Chunk 1 has empty content"):
            await in_memory_provider.create_document(request)
        assert await in_memory_provider.list_documents() == []
        assert await in_memory_provider.document_count() == 0
