"""Unit tests for kbcore.utils: errors, validation helpers, concurrency."""

from __future__ import annotations

import asyncio

import pytest

from kbcore.utils.concurrency import throttled_gather
from kbcore.utils.errors import (
    BackendError,
    ChunkError,
    ConfigurationError,
    KBCoreError,
    NotFoundError,
    ParseError,
    UnsupportedFilterError,
    ValidationError,
)
from kbcore.utils.validation import (
    validate_document_id,
    validate_embedding_dimensions,
    validate_knowledge_base_id,
    validate_search_params,
    validate_sql_identifier,
)


class TestErrors:
    def test_str_with_provider(self) -> None:
        error = BackendError(message="connection refused", provider_name="pgvector")
        assert str(error) == "[pgvector] connection refused"
        assert error.message == "connection refused"
        assert error.provider_name == "pgvector"

    def test_str_without_provider(self) -> None:
        assert str(ValidationError("bad config")) == "bad config"

    @pytest.mark.parametrize(
        "error_cls",
        [ValidationError, ParseError, ChunkError, BackendError, NotFoundError, ConfigurationError],
    )
    def test_hierarchy(self, error_cls) -> None:
        assert issubclass(error_cls, KBCoreError)

    def test_unsupported_filter_is_validation_error(self) -> None:
        assert issubclass(UnsupportedFilterError, ValidationError)


class TestValidation:
    @pytest.mark.parametrize("kb_id", ["a", "docs", "team-42-docs", "A1"])
    def test_valid_kb_ids(self, kb_id) -> None:
        validate_knowledge_base_id(kb_id)

    @pytest.mark.parametrize("kb_id", ["", "-a", "a-", "a_b", "a" * 51])
    def test_invalid_kb_ids(self, kb_id) -> None:
        with pytest.raises(ValidationError):
            validate_knowledge_base_id(kb_id)

    def test_document_id_rejects_chunk_marker(self) -> None:
        with pytest.raises(ValidationError, match="_chunk_"):
            validate_document_id("report_chunk_draft")

    def test_document_id_rejects_blank(self) -> None:
        with pytest.raises(ValidationError):
            validate_document_id("   ")

    def test_document_id_length(self) -> None:
        validate_document_id("a" * 255)
        with pytest.raises(ValidationError):
            validate_document_id("a" * 256)

    def test_embedding_dimensions(self) -> None:
        validate_embedding_dimensions(8192)
        with pytest.raises(ValidationError):
            validate_embedding_dimensions(8193)

    @pytest.mark.parametrize(("top_k", "threshold"), [(0, 0.5), (1001, 0.5), (5, -0.1), (5, 1.1)])
    def test_search_params(self, top_k, threshold) -> None:
        with pytest.raises(ValidationError):
            validate_search_params(top_k, threshold)

    def test_sql_identifier(self) -> None:
        validate_sql_identifier("public.kb_documents")
        with pytest.raises(ValidationError):
            validate_sql_identifier("kb; DROP TABLE x")


class TestThrottledGather:
    @pytest.mark.asyncio
    async def test_preserves_order(self) -> None:
        async def job(value: int, delay: float) -> int:
            await asyncio.sleep(delay)
            return value

        results = await throttled_gather(
            [job(1, 0.03), job(2, 0.0), job(3, 0.01)], max_concurrency=3
        )
        assert results == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_limits_concurrency(self) -> None:
        running = 0
        peak = 0

        async def job() -> None:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1

        await throttled_gather([job() for _ in range(6)], max_concurrency=2)
        assert peak == 2

    @pytest.mark.asyncio
    async def test_rejects_zero_concurrency(self) -> None:
        with pytest.raises(ValidationError):
            await throttled_gather([], max_concurrency=0)
