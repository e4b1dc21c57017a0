"""Enum-keyed factory for knowledge base providers.

Backend modules are imported inside their branch so a deployment that only
uses the in-memory backend never imports psycopg or chromadb.
"""

from __future__ import annotations

from typing import Any

import structlog

from kbcore.interfaces.embedding_provider import IEmbeddingProvider
from kbcore.interfaces.knowledge_base_provider import IKnowledgeBaseProvider
from kbcore.models.knowledge_base import KnowledgeBaseConfig, KnowledgeBaseType
from kbcore.providers.knowledge_base.in_memory_provider import InMemoryKnowledgeBaseProvider
from kbcore.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


class KnowledgeBaseFactory:
    """Builds providers for :class:`KnowledgeBaseConfig` descriptions.

    Parameters
    ----------
    embedding_provider:
        Shared embedding adapter.  Required by the pgvector and ChromaDB
        backends, optional for the in-memory one.
    pg_pool:
        Open ``psycopg_pool.AsyncConnectionPool`` for the pgvector backend.
    chroma_client:
        ChromaDB client; when omitted a persistent client is opened at
        *chroma_persist_dir*.
    chroma_persist_dir:
        Persistence directory for the default ChromaDB client.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider | None = None,
        pg_pool: Any | None = None,
        chroma_client: Any | None = None,
        chroma_persist_dir: str = "./data/chromadb",
    ) -> None:
        self._embedding_provider = embedding_provider
        self._pg_pool = pg_pool
        self._chroma_client = chroma_client
        self._chroma_persist_dir = chroma_persist_dir

    def create(self, config: KnowledgeBaseConfig) -> IKnowledgeBaseProvider:
        if config.kb_type is KnowledgeBaseType.IN_MEMORY:
            provider: IKnowledgeBaseProvider = InMemoryKnowledgeBaseProvider(
                kb_id=config.kb_id,
                embedding_provider=self._embedding_provider,
            )
        elif config.kb_type is KnowledgeBaseType.PGVECTOR:
            provider = self._create_pgvector(config)
        else:
            provider = self._create_chromadb(config)

        logger.info("knowledge_base_provider_created", kb_id=config.kb_id, kb_type=config.kb_type.value)
        return provider

    def _require_embedding(self, config: KnowledgeBaseConfig) -> IEmbeddingProvider:
        if self._embedding_provider is None:
            raise ConfigurationError(
                message=f"Knowledge base '{config.kb_id}' requires an embedding provider",
                provider_name=config.kb_type.value,
            )
        return self._embedding_provider

    def _create_pgvector(self, config: KnowledgeBaseConfig) -> IKnowledgeBaseProvider:
        from kbcore.providers.knowledge_base.pgvector_provider import (
            PgVectorKnowledgeBaseProvider,
        )

        if self._pg_pool is None:
            raise ConfigurationError(
                message=f"Knowledge base '{config.kb_id}' requires a PostgreSQL connection pool",
                provider_name="pgvector",
            )
        return PgVectorKnowledgeBaseProvider(
            kb_id=config.kb_id,
            pool=self._pg_pool,
            embedding_provider=self._require_embedding(config),
            dimensions=config.embedding_dimensions,
            distance_metric=config.distance_metric,
            table_name=config.table_name,
        )

    def _create_chromadb(self, config: KnowledgeBaseConfig) -> IKnowledgeBaseProvider:
        from kbcore.providers.knowledge_base.chromadb_provider import (
            ChromaDBKnowledgeBaseProvider,
        )

        return ChromaDBKnowledgeBaseProvider(
            kb_id=config.kb_id,
            embedding_provider=self._require_embedding(config),
            client=self._chroma_client,
            persist_directory=self._chroma_persist_dir,
            collection_name=config.collection_name,
        )
