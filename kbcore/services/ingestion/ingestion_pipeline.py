"""Orchestrator for the parse -> chunk -> store ingestion pipeline.

:class:`IngestionPipeline` coordinates a parser, a chunking strategy and a
knowledge base provider without any of them knowing about each other.  For
each document it:

    1. resolves the document id (``source_id``, else filename, else UUID)
    2. parses the raw input
    3. chunks the parsed text
    4. merges metadata: parsed < chunk position < caller < ``document_id``
    5. stores one ``{document_id}_chunk_{i}`` document per chunk in a single
       ``add_documents`` call
    6. maps rejected chunk ids back to per-chunk ingestion errors

Parse and chunk failures produce a failed :class:`IngestionResult` for that
document.  Call-level backend errors propagate from :meth:`ingest`; in
:meth:`ingest_batch` they become that document's failed result so sibling
documents are unaffected.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

import structlog

from kbcore.models.filters import FilterCondition
from kbcore.models.ingestion import (
    BatchIngestionResult,
    IngestionConfig,
    IngestionError,
    IngestionResult,
    ParsedDocument,
    ParserInput,
)
from kbcore.models.knowledge_base import (
    CreateChunkRequest,
    CreateDocumentRequest,
    Document,
    KnowledgeBaseDocument,
)
from kbcore.services.chunking.factory import ChunkerFactory
from kbcore.services.ingestion.document_ids import (
    DOCUMENT_ID_KEY,
    extract_chunk_index,
    make_chunk_id,
    resolve_document_id,
)
from kbcore.services.ingestion.parser_factory import ParserFactory
from kbcore.utils.concurrency import throttled_gather
from kbcore.utils.errors import KBCoreError, ValidationError
from kbcore.utils.validation import validate_document_id

if TYPE_CHECKING:
    from kbcore.interfaces.chunking_strategy import IChunkingStrategy
    from kbcore.interfaces.document_parser import IDocumentParser
    from kbcore.interfaces.knowledge_base_provider import IKnowledgeBaseProvider
    from kbcore.models.chunking import Chunk

logger = structlog.get_logger(logger_name=__name__)


class IngestionPipeline:
    """Turns raw documents into stored, searchable chunks.

    Parameters
    ----------
    provider:
        Knowledge base the chunks are written to.
    parser:
        Parser used for every document.  When omitted the parser is chosen
        per document from ``IngestionConfig.parser_type`` or the input's
        MIME type / filename.
    chunker:
        Chunking strategy used for every document.  When omitted it is
        created from ``IngestionConfig.chunking_type``.
    max_concurrency:
        Default number of documents :meth:`ingest_batch` processes at once.
        ``1`` processes them strictly in order.
    default_config:
        Config used by calls that pass none, typically built from
        :class:`~kbcore.config.settings.Settings`.
    """

    def __init__(
        self,
        provider: IKnowledgeBaseProvider,
        parser: IDocumentParser | None = None,
        chunker: IChunkingStrategy | None = None,
        max_concurrency: int = 1,
        default_config: IngestionConfig | None = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValidationError("max_concurrency must be at least 1")
        self._provider = provider
        self._parser = parser
        self._chunker = chunker
        self._max_concurrency = max_concurrency
        self._default_config = default_config or IngestionConfig()

    @property
    def default_config(self) -> IngestionConfig:
        return self._default_config

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest(
        self,
        parser_input: ParserInput,
        config: IngestionConfig | None = None,
    ) -> IngestionResult:
        """Ingest one document.

        Raises
        ------
        ValidationError
            If the chunking parameters in *config* are invalid.
        BackendError
            If the provider call fails as a whole.
        """
        config = config or self._default_config
        chunking_config = config.chunking_config
        chunking_config.validate()

        start = time.monotonic()
        document_id = resolve_document_id(parser_input, config.source_id)
        log = logger.bind(document_id=document_id, kb_id=self._provider.knowledge_base_id)

        try:
            validate_document_id(document_id)
        except ValidationError as exc:
            log.warning("ingestion_invalid_document_id", error=exc.message)
            return IngestionResult.failed(document_id, exc.message)

        # Step 1: parse
        parser = self._parser or ParserFactory.for_input(parser_input, config.parser_type)
        try:
            parsed = await parser.parse(parser_input)
        except Exception as exc:
            log.warning("ingestion_parse_failed", parser=parser.get_provider_name(), error=str(exc))
            return IngestionResult.failed(document_id, f"Parsing failed: {exc}")

        # Step 2: chunk
        chunker = self._chunker or ChunkerFactory.create(config.chunking_type)
        try:
            chunks = chunker.chunk(parsed.content, chunking_config)
        except Exception as exc:
            log.warning("ingestion_chunk_failed", strategy=chunker.get_strategy_name(), error=str(exc))
            return IngestionResult.failed(document_id, f"Chunking failed: {exc}")

        if not chunks:
            log.info("ingestion_no_chunks")
            return IngestionResult.success(document_id, 0)

        # Step 3: package and store
        documents = [
            self._build_document(document_id, chunk, parsed, config.metadata) for chunk in chunks
        ]
        add_result = await self._provider.add_documents(documents)

        errors = [
            IngestionError.chunk(extract_chunk_index(chunk_id), message)
            for chunk_id, message in add_result.errors
        ]
        result = IngestionResult(
            document_id=document_id,
            chunks_created=add_result.added,
            chunks_failed=add_result.failed,
            errors=errors,
        )

        log.info(
            "ingestion_complete",
            chunks_created=result.chunks_created,
            chunks_failed=result.chunks_failed,
            strategy=chunker.get_strategy_name(),
            elapsed_ms=round((time.monotonic() - start) * 1000, 1),
        )
        return result

    async def ingest_batch(
        self,
        inputs: list[ParserInput],
        config: IngestionConfig | None = None,
        max_concurrency: int | None = None,
    ) -> BatchIngestionResult:
        """Ingest many documents; one document's failure never stops the rest.

        Results keep the input order regardless of concurrency.
        """
        config = config or self._default_config
        config.chunking_config.validate()
        limit = max_concurrency or self._max_concurrency

        if limit <= 1:
            results = [await self._ingest_isolated(item, config) for item in inputs]
        else:
            results = list(
                await throttled_gather(
                    [self._ingest_isolated(item, config) for item in inputs],
                    max_concurrency=limit,
                )
            )

        batch = BatchIngestionResult.from_results(results)
        logger.info(
            "batch_ingestion_complete",
            kb_id=self._provider.knowledge_base_id,
            total_documents=batch.total_documents,
            successful=batch.successful,
            failed=batch.failed,
            total_chunks=batch.total_chunks_created,
        )
        return batch

    async def update_document(
        self,
        document_id: str,
        parser_input: ParserInput,
        config: IngestionConfig | None = None,
    ) -> IngestionResult:
        """Replace a document: delete its chunks, then ingest under the same id."""
        config = config or self._default_config
        config.chunking_config.validate()
        deleted = await self.delete_document(document_id)
        logger.info("document_update_deleted_previous", document_id=document_id, deleted=deleted)
        return await self.ingest(parser_input, config.with_source_id(document_id))

    async def delete_document(self, document_id: str) -> int:
        """Delete every chunk whose ``document_id`` metadata matches; return the count."""
        result = await self._provider.delete_by_filter(
            FilterCondition.eq(DOCUMENT_ID_KEY, document_id)
        )
        return result.deleted

    async def create_document(
        self,
        parser_input: ParserInput,
        config: IngestionConfig | None = None,
        *,
        title: str | None = None,
        description: str | None = None,
    ) -> KnowledgeBaseDocument:
        """Parse and chunk *parser_input*, then register it in the provider's catalog.

        Unlike :meth:`ingest`, the document id is assigned by the provider
        and failures raise instead of producing a failed result.  The title
        falls back to the parsed title, then the filename.

        Raises
        ------
        ParseError
            If the input cannot be parsed.
        UnsupportedOperationError
            If the provider has no document catalog.
        """
        config = config or self._default_config
        chunking_config = config.chunking_config
        chunking_config.validate()

        parser = self._parser or ParserFactory.for_input(parser_input, config.parser_type)
        parsed = await parser.parse(parser_input)
        chunker = self._chunker or ChunkerFactory.create(config.chunking_type)
        chunks = chunker.chunk(parsed.content, chunking_config)

        parsed_metadata = parsed.metadata.to_metadata_dict()
        request = CreateDocumentRequest(
            title=title or parsed.metadata.title or parser_input.filename,
            description=description,
            source_filename=parser_input.filename,
            content_type=parsed.metadata.mime_type,
            original_size_bytes=_size_in_bytes(parser_input.content),
            metadata=dict(config.metadata),
            chunks=[
                CreateChunkRequest(
                    content=chunk.content,
                    chunk_index=chunk.metadata.chunk_index,
                    metadata={
                        **parsed_metadata,
                        **chunk.metadata.to_metadata_dict(),
                        **config.metadata,
                    },
                )
                for chunk in chunks
            ],
        )
        document = await self._provider.create_document(request)
        logger.info(
            "catalog_document_created",
            kb_id=self._provider.knowledge_base_id,
            document_id=document.id,
            chunk_count=document.chunk_count,
            strategy=chunker.get_strategy_name(),
        )
        return document

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _ingest_isolated(
        self, parser_input: ParserInput, config: IngestionConfig
    ) -> IngestionResult:
        # Pin the id up front so a failure is reported under the same id.
        document_id = resolve_document_id(parser_input, config.source_id)
        try:
            return await self.ingest(parser_input, config.with_source_id(document_id))
        except ValidationError:
            raise
        except KBCoreError as exc:
            logger.error("batch_document_failed", document_id=document_id, error=str(exc))
            return IngestionResult.failed(document_id, str(exc))

    @staticmethod
    def _build_document(
        document_id: str,
        chunk: Chunk,
        parsed: ParsedDocument,
        caller_metadata: dict[str, Any],
    ) -> Document:
        metadata: dict[str, Any] = {}
        metadata.update(parsed.metadata.to_metadata_dict())
        metadata.update(chunk.metadata.to_metadata_dict())
        metadata.update(caller_metadata)
        metadata[DOCUMENT_ID_KEY] = document_id
        return Document(
            id=make_chunk_id(document_id, chunk.metadata.chunk_index),
            content=chunk.content,
            metadata=metadata,
            source=document_id,
        )


def _size_in_bytes(content: str | bytes) -> int:
    if isinstance(content, bytes):
        return len(content)
    return len(content.encode("utf-8"))
