"""Composition root for kbcore.

Builds the default knowledge base provider from :class:`Settings`, registers
it in a :class:`KnowledgeBaseRegistry` and wires an :class:`IngestionPipeline`
in front of it.  Chunking and search defaults come from
:func:`~kbcore.config.loader.load_config` (YAML under ``KBCORE_*`` settings).
Collaborators that need external resources (embedding provider, PostgreSQL
pool, ChromaDB client) are injected by the caller; this module never opens
network connections on import.
"""

from __future__ import annotations

from typing import Any

import structlog

from kbcore.config.loader import load_config
from kbcore.config.settings import Settings
from kbcore.interfaces.embedding_provider import IEmbeddingProvider
from kbcore.models.chunking import ChunkingType
from kbcore.models.ingestion import IngestionConfig
from kbcore.models.knowledge_base import KnowledgeBaseConfig, KnowledgeBaseType, SearchParams
from kbcore.services.ingestion.ingestion_pipeline import IngestionPipeline
from kbcore.services.knowledge_base.provider_factory import KnowledgeBaseFactory
from kbcore.services.knowledge_base.registry import KnowledgeBaseRegistry
from kbcore.utils.errors import ConfigurationError
from kbcore.utils.logging import configure_logging

_logger = structlog.get_logger(logger_name=__name__)


def build_knowledge_base_config(app_settings: Settings) -> KnowledgeBaseConfig:
    """Describe the default knowledge base from settings."""
    return KnowledgeBaseConfig(
        kb_id=app_settings.kb_id,
        kb_type=app_settings.kb_type,
        embedding_dimensions=app_settings.embedding_dimensions,
        distance_metric=app_settings.distance_metric,
        table_name=app_settings.pg_table,
    )


def build_ingestion_config(config: dict[str, Any]) -> IngestionConfig:
    """Default ingestion config from the ``chunking`` section of :func:`load_config`."""
    chunking = config.get("chunking", {})
    defaults = IngestionConfig()
    return IngestionConfig(
        chunking_type=ChunkingType(chunking.get("type", defaults.chunking_type.value)),
        chunk_size=chunking.get("chunk_size", defaults.chunk_size),
        chunk_overlap=chunking.get("chunk_overlap", defaults.chunk_overlap),
        min_chunk_size=chunking.get("min_chunk_size", defaults.min_chunk_size),
    )


def build_search_params(config: dict[str, Any]) -> SearchParams:
    """Default search arguments from the ``search`` section of :func:`load_config`."""
    search = config.get("search", {})
    defaults = SearchParams()
    return SearchParams(
        top_k=search.get("top_k", defaults.top_k),
        similarity_threshold=search.get("similarity_threshold", defaults.similarity_threshold),
    )


async def create_pg_pool(app_settings: Settings) -> Any:
    """Open a psycopg async connection pool for ``KBCORE_PG_DSN``.

    Raises
    ------
    ConfigurationError
        If no DSN is configured.
    """
    from psycopg_pool import AsyncConnectionPool

    if not app_settings.pg_dsn:
        raise ConfigurationError(
            message="KBCORE_PG_DSN must be set for the pgvector backend",
            provider_name="pgvector",
        )
    pool = AsyncConnectionPool(
        app_settings.pg_dsn,
        min_size=app_settings.pg_pool_min_size,
        max_size=app_settings.pg_pool_max_size,
        open=False,
    )
    await pool.open()
    _logger.info("pg_pool_opened", max_size=app_settings.pg_pool_max_size)
    return pool


async def build_components(
    app_settings: Settings | None = None,
    embedding_provider: IEmbeddingProvider | None = None,
    pg_pool: Any | None = None,
    chroma_client: Any | None = None,
    configure_logs: bool = False,
    config_path: str = "config/config.yaml",
) -> dict[str, Any]:
    """Wire settings, registry, default provider and ingestion pipeline.

    Args:
        app_settings: Settings to use; read from the environment when omitted.
        embedding_provider: Embedding adapter shared by all providers.
        pg_pool: Open psycopg pool, required when the default backend is pgvector.
        chroma_client: ChromaDB client; a persistent client is opened when omitted.
        configure_logs: Install the structlog configuration first.
        config_path: YAML defaults merged under the settings by :func:`load_config`.

    Returns:
        Dict with ``settings``, ``config``, ``factory``, ``registry``,
        ``provider``, ``pipeline`` and ``search_params``.  The pipeline's
        default ingestion config and ``search_params`` come from the
        ``chunking`` and ``search`` sections of the merged config.
    """
    app_settings = app_settings or Settings()
    config = load_config(config_path, settings=app_settings)
    if configure_logs:
        configure_logging(
            log_level=app_settings.log_level,
            json_output=(app_settings.app_env == "production"),
        )

    factory = KnowledgeBaseFactory(
        embedding_provider=embedding_provider,
        pg_pool=pg_pool,
        chroma_client=chroma_client,
        chroma_persist_dir=app_settings.chromadb_persist_dir,
    )
    kb_config = build_knowledge_base_config(app_settings)
    provider = factory.create(kb_config)

    if kb_config.kb_type is KnowledgeBaseType.PGVECTOR:
        await provider.ensure_schema()  # type: ignore[attr-defined]

    registry = KnowledgeBaseRegistry()
    await registry.register(provider)

    pipeline = IngestionPipeline(
        provider=provider,
        max_concurrency=app_settings.ingest_max_concurrency,
        default_config=build_ingestion_config(config),
    )
    search_params = build_search_params(config)

    _logger.info(
        "components_built",
        kb_id=kb_config.kb_id,
        kb_type=kb_config.kb_type.value,
        embeddings=embedding_provider.get_provider_name() if embedding_provider else None,
    )
    return {
        "settings": app_settings,
        "config": config,
        "factory": factory,
        "registry": registry,
        "provider": provider,
        "pipeline": pipeline,
        "search_params": search_params,
    }
